"""HEIC/HEIF to JPEG transcoding backed by pillow-heif."""

from __future__ import annotations

import logging
from io import BytesIO

import pillow_heif
from PIL import Image, ImageOps

from facematch.imgproc.sniff import ImageKind

logger = logging.getLogger(__name__)

pillow_heif.register_heif_opener()


class TranscodeError(RuntimeError):
    """Raised when a HEIC/HEIF payload cannot be converted."""


class HeifTranscoder:
    """Converts HEIC/HEIF images into baseline JPEG bytes."""

    def __init__(self, jpeg_quality: int = 95) -> None:
        self._jpeg_quality = jpeg_quality

    def transcode(self, data: bytes, kind: ImageKind) -> bytes:
        """Return JPEG bytes equivalent to the HEIC/HEIF *data*."""

        if kind not in (ImageKind.HEIC, ImageKind.HEIF):
            raise TranscodeError(f"Cannot transcode {kind.mime} with the HEIF transcoder.")

        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                rgb = ImageOps.exif_transpose(img).convert("RGB")
            buffer = BytesIO()
            rgb.save(buffer, format="JPEG", quality=self._jpeg_quality)
        except (OSError, ValueError, RuntimeError) as exc:
            raise TranscodeError(f"Failed to convert {kind.mime} payload: {exc}") from exc

        logger.debug("Transcoded %s payload of %d bytes to JPEG", kind.mime, len(data))
        return buffer.getvalue()
