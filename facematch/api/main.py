"""FastAPI entrypoint and HTTP routes."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from facematch import __version__
from facematch.api.schemas import (
    DetectResponse,
    EnrollResponse,
    ErrorResponse,
    ResolveResponse,
    StatsResponse,
)
from facematch.config.settings import Settings, get_settings
from facematch.face.encode import FaceEncoder
from facematch.face.model import FaceModel, InsightFaceModel
from facematch.imgproc.heif import HeifTranscoder
from facematch.imgproc.normalize import ImageNormalizer, Transcoder
from facematch.recognition.resolver import Identified, IdentityResolver
from facematch.recognition.store import EmbeddingStore
from facematch.services.failures import FailureKind, StageFailure
from facematch.services.pipeline import RecognitionPipeline

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    FailureKind.INVALID_INPUT: 400,
    FailureKind.PAYLOAD_TOO_LARGE: 413,
    FailureKind.UNRECOGNIZED_FORMAT: 415,
    FailureKind.CONVERSION_FAILURE: 422,
    FailureKind.DECODE_FAILURE: 422,
    FailureKind.NO_FACE_DETECTED: 422,
    FailureKind.EXTRACTION_TIMEOUT: 504,
    FailureKind.INTERNAL_FAILURE: 500,
}


def failure_response(failure: StageFailure) -> JSONResponse:
    """Render a stage failure with its mapped status code."""

    body = ErrorResponse(error=failure.kind, message=failure.reason)
    return JSONResponse(status_code=_STATUS_BY_KIND[failure.kind], content=body.model_dump(mode="json"))


async def read_body(request: Request, limit: int) -> bytes | StageFailure:
    """Buffer the request body, stopping as soon as it exceeds *limit* bytes."""

    too_large = StageFailure(FailureKind.PAYLOAD_TOO_LARGE, f"Request body exceeds the {limit} byte limit.")
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        return too_large

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            return too_large
    return bytes(body)


def build_pipeline(
    settings: Settings,
    *,
    model: FaceModel,
    transcoder: Transcoder | None = None,
    store: EmbeddingStore | None = None,
) -> RecognitionPipeline:
    """Wire the pipeline stages around a single owned store."""

    if store is None:
        store = EmbeddingStore(settings.embedding_dimension)
    if transcoder is None:
        transcoder = HeifTranscoder(settings.heif_jpeg_quality)
    return RecognitionPipeline(
        store=store,
        resolver=IdentityResolver(store, threshold=settings.match_threshold),
        normalizer=ImageNormalizer(transcoder),
        encoder=FaceEncoder(model, settings.embedding_dimension),
        max_upload_bytes=settings.max_upload_bytes,
        extraction_timeout=settings.extraction_timeout,
        extraction_workers=settings.extraction_workers,
    )


def create_app(
    settings: Settings | None = None,
    *,
    model: FaceModel | None = None,
    transcoder: Transcoder | None = None,
    store: EmbeddingStore | None = None,
) -> FastAPI:
    """Initialise the FastAPI application."""

    settings = settings or get_settings()
    face_model = model if model is not None else InsightFaceModel.from_settings(settings)
    pipeline = build_pipeline(settings, model=face_model, transcoder=transcoder, store=store)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        # a load failure propagates and aborts startup
        await asyncio.to_thread(face_model.load)
        logger.info("Face model ready; accepting requests.")
        try:
            yield
        finally:
            pipeline.close()

    app = FastAPI(
        title="Face Match API",
        version=__version__,
        docs_url="/docs" if settings.environment != "prod" else None,
        redoc_url="/redoc" if settings.environment != "prod" else None,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline
    app.mount("/metrics", make_asgi_app())

    @app.exception_handler(Exception)
    async def unhandled_error(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving request")
        return failure_response(StageFailure(FailureKind.INTERNAL_FAILURE, f"Internal Server Error: {exc}"))

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple health endpoint used for readiness probes."""

        return {"status": "ok"}

    @app.get("/stats", tags=["system"], response_model=StatsResponse)
    async def stats() -> StatsResponse:
        return StatsResponse(
            entries=pipeline.store.size(),
            threshold=pipeline.resolver.threshold,
            dimension=pipeline.store.dimension,
        )

    @app.post(
        "/enroll",
        tags=["faces"],
        response_model=EnrollResponse,
        responses={400: {"model": ErrorResponse}, 415: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    )
    async def enroll(request: Request, label: str | None = Query(default=None)):
        """Store the face in the raw request body under ``label``."""

        body = await read_body(request, pipeline.max_upload_bytes)
        if isinstance(body, StageFailure):
            return failure_response(body)
        result = await pipeline.enroll(body, label)
        if isinstance(result, StageFailure):
            return failure_response(result)
        return EnrollResponse(message=f"Enrolled '{result.label}'.")

    @app.post(
        "/resolve",
        tags=["faces"],
        response_model=ResolveResponse,
        responses={400: {"model": ErrorResponse}, 415: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    )
    async def resolve(request: Request):
        """Identify the face in the raw request body."""

        body = await read_body(request, pipeline.max_upload_bytes)
        if isinstance(body, StageFailure):
            return failure_response(body)
        result = await pipeline.resolve(body)
        if isinstance(result, StageFailure):
            return failure_response(result)
        if isinstance(result, Identified):
            return ResolveResponse(label=result.label, distance=result.distance)
        return ResolveResponse(label=result.label)

    @app.post("/detect-and-recognize", tags=["faces"], response_model=DetectResponse)
    async def detect(request: Request):
        """Validate that the body is a supported image without touching the model."""

        body = await read_body(request, pipeline.max_upload_bytes)
        if isinstance(body, StageFailure):
            return failure_response(body)
        kind = pipeline.validate(body)
        if isinstance(kind, StageFailure):
            return failure_response(kind)
        return DetectResponse(message=f"Successfully validated image with mime type: {kind.mime}")

    return app


app = create_app()
