"""Face encoding helpers."""

from __future__ import annotations

import logging
from io import BytesIO

import numpy as np
from PIL import Image, ImageOps

from facematch.face.model import FaceModel
from facematch.recognition.store import Embedding
from facematch.services.failures import FailureKind, StageFailure

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Raised when bytes that passed sniffing cannot be decoded."""


def decode_image(data: bytes) -> np.ndarray:
    """Decode *data* into an upright BGR ``uint8`` array."""

    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            rgb = ImageOps.exif_transpose(img).convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Image could not be decoded: {exc}") from exc

    return np.ascontiguousarray(np.asarray(rgb, dtype=np.uint8)[:, :, ::-1])


class FaceEncoder:
    """Turns decodable image bytes into exactly one embedding."""

    def __init__(self, model: FaceModel, dimension: int) -> None:
        self._model = model
        self._dimension = dimension

    def encode(self, image_bytes: bytes) -> Embedding | StageFailure:
        """Return the embedding representing the person's face."""

        try:
            image = decode_image(image_bytes)
        except ImageDecodeError as exc:
            return StageFailure(FailureKind.DECODE_FAILURE, str(exc))

        try:
            vector = self._model.describe(image)
        except Exception as exc:
            logger.exception("Face model raised while describing an image")
            return StageFailure(FailureKind.INTERNAL_FAILURE, f"Face model failed: {exc}")

        if vector is None:
            return StageFailure(FailureKind.NO_FACE_DETECTED, "No face detected in the image.")
        return self._validate(vector)

    def _validate(self, vector: object) -> Embedding | StageFailure:
        try:
            values = np.asarray(vector, dtype=np.float64)
        except (TypeError, ValueError):
            return StageFailure(FailureKind.INTERNAL_FAILURE, "Face model returned a non-numeric embedding.")

        if values.ndim != 1 or values.shape[0] != self._dimension:
            logger.error(
                "Face model returned embedding of shape %s, expected (%d,)",
                values.shape,
                self._dimension,
            )
            return StageFailure(
                FailureKind.INTERNAL_FAILURE,
                f"Face model returned embedding of shape {values.shape}, expected ({self._dimension},).",
            )
        if not np.all(np.isfinite(values)):
            return StageFailure(FailureKind.INTERNAL_FAILURE, "Face model returned a non-finite embedding.")
        return tuple(values.tolist())
