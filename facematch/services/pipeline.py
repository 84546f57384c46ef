"""Request pipeline: sniff, normalise, extract, then enroll or resolve."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from facematch.face.encode import FaceEncoder
from facematch.imgproc.normalize import ImageNormalizer
from facematch.imgproc.sniff import ImageKind, sniff
from facematch.metrics.prometheus_exporter import enroll_total, resolve_total, store_entries
from facematch.recognition.resolver import Identified, IdentityResolver, MatchResult
from facematch.recognition.store import Embedding, EmbeddingStore
from facematch.services.failures import FailureKind, StageFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EnrollResult:
    """Acknowledgement of a stored sample."""

    label: str
    entries: int


class RecognitionPipeline:
    """Runs every request through the ingestion stages independently.

    Each stage either hands its value to the next one or returns a
    ``StageFailure`` that ends the request.
    """

    def __init__(
        self,
        *,
        store: EmbeddingStore,
        resolver: IdentityResolver,
        normalizer: ImageNormalizer,
        encoder: FaceEncoder,
        max_upload_bytes: int,
        extraction_timeout: float,
        extraction_workers: int = 4,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._normalizer = normalizer
        self._encoder = encoder
        self._max_upload_bytes = max_upload_bytes
        self._extraction_timeout = extraction_timeout
        # timed-out calls hold their worker until the model returns
        self._executor = ThreadPoolExecutor(
            max_workers=extraction_workers,
            thread_name_prefix="face-extract",
        )
        store_entries.set(store.size())

    @property
    def store(self) -> EmbeddingStore:
        return self._store

    @property
    def resolver(self) -> IdentityResolver:
        return self._resolver

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    def close(self) -> None:
        """Release extraction workers without waiting for stuck model calls."""

        self._executor.shutdown(wait=False, cancel_futures=True)

    def validate(self, body: object) -> ImageKind | StageFailure:
        """Check the payload and return its sniffed kind."""

        if not isinstance(body, (bytes, bytearray, memoryview)) or len(body) == 0:
            return StageFailure(FailureKind.INVALID_INPUT, "Request body is empty or invalid.")
        if len(body) > self._max_upload_bytes:
            return StageFailure(
                FailureKind.PAYLOAD_TOO_LARGE,
                f"Request body exceeds the {self._max_upload_bytes} byte limit.",
            )

        kind = sniff(bytes(body))
        if kind is None:
            return StageFailure(FailureKind.UNRECOGNIZED_FORMAT, "Request body contains no valid image.")
        return kind

    async def extract(self, body: object) -> Embedding | StageFailure:
        """Run the payload through every stage up to the embedding."""

        kind = self.validate(body)
        if isinstance(kind, StageFailure):
            return kind
        data = bytes(body)  # type: ignore[arg-type]

        normalized = await asyncio.to_thread(self._normalizer.normalize, data, kind)
        if isinstance(normalized, StageFailure):
            return normalized

        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, self._encoder.encode, normalized),
                timeout=self._extraction_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Descriptor extraction exceeded %.1fs", self._extraction_timeout)
            return StageFailure(
                FailureKind.EXTRACTION_TIMEOUT,
                f"Face extraction did not finish within {self._extraction_timeout:g} seconds.",
            )

    async def enroll(self, body: object, label: str | None) -> EnrollResult | StageFailure:
        """Store the face found in *body* under *label*."""

        if label is None or not label.strip():
            result: EnrollResult | StageFailure = StageFailure(FailureKind.INVALID_INPUT, "Label is required.")
        else:
            embedding = await self.extract(body)
            if isinstance(embedding, StageFailure):
                result = embedding
            else:
                label = label.strip()
                self._store.enroll(label, embedding)
                entries = self._store.size()
                store_entries.set(entries)
                logger.info("Enrolled sample for %r (%d entries)", label, entries)
                result = EnrollResult(label=label, entries=entries)

        self._record(enroll_total, result, success="enrolled")
        return result

    async def resolve(self, body: object) -> MatchResult | StageFailure:
        """Identify the face found in *body* against the store."""

        embedding = await self.extract(body)
        if isinstance(embedding, StageFailure):
            result: MatchResult | StageFailure = embedding
        else:
            result = self._resolver.resolve(embedding)
            if isinstance(result, Identified):
                logger.info("Resolved face to %r at distance %.4f", result.label, result.distance)
            else:
                logger.info("Resolved face to unknown")

        outcome = "identified" if isinstance(result, Identified) else "unknown"
        self._record(resolve_total, result, success=outcome)
        return result

    @staticmethod
    def _record(counter, result: object, *, success: str) -> None:
        if isinstance(result, StageFailure):
            if result.is_internal:
                logger.error("Request failed with %s: %s", result.kind.value, result.reason)
            else:
                logger.info("Request rejected with %s: %s", result.kind.value, result.reason)
            counter.labels(outcome=result.kind.value).inc()
        else:
            counter.labels(outcome=success).inc()
