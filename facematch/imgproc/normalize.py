"""Format normalisation ahead of descriptor extraction."""

from __future__ import annotations

import logging
from typing import Protocol

from facematch.imgproc.sniff import ImageKind
from facematch.services.failures import FailureKind, StageFailure

logger = logging.getLogger(__name__)


class Transcoder(Protocol):
    """Converts a non-decodable image kind into decodable bytes.

    Implementations raise on corrupt or unsupported payloads.
    """

    def transcode(self, data: bytes, kind: ImageKind) -> bytes:
        ...


class ImageNormalizer:
    """Passes JPEG/PNG through and transcodes HEIC/HEIF exactly once."""

    def __init__(self, transcoder: Transcoder) -> None:
        self._transcoder = transcoder

    def normalize(self, data: bytes, kind: ImageKind) -> bytes | StageFailure:
        """Return bytes ready for decoding, or a conversion failure."""

        if kind.is_decodable:
            return data

        try:
            converted = self._transcoder.transcode(data, kind)
        except Exception as exc:
            logger.info("Conversion of %s payload failed: %s", kind.mime, exc)
            return StageFailure(FailureKind.CONVERSION_FAILURE, str(exc) or "Image conversion failed.")

        if not converted:
            return StageFailure(FailureKind.CONVERSION_FAILURE, f"Conversion of {kind.mime} produced no data.")
        return converted
