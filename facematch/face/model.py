"""Face detection and embedding backends."""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol

import numpy as np

from facematch.config.settings import Settings

logger = logging.getLogger(__name__)


class FaceModel(Protocol):
    """Interface for the face recognition backend.

    ``describe`` receives a BGR ``uint8`` array and returns the embedding of
    the single selected face, or ``None`` when no face is present.
    """

    def load(self) -> None:
        ...

    def describe(self, image: np.ndarray) -> np.ndarray | None:
        ...


def _face_rank(face: Any) -> tuple[float, float]:
    x1, y1, x2, y2 = (float(v) for v in face.bbox[:4])
    return float(face.det_score), (x2 - x1) * (y2 - y1)


class InsightFaceModel:
    """ArcFace embeddings through InsightFace ``FaceAnalysis``."""

    def __init__(
        self,
        name: str = "buffalo_l",
        root: str = "~/.insightface",
        ctx_id: int = -1,
        detection_size: int = 640,
    ) -> None:
        self._name = name
        self._root = os.path.expanduser(root)
        self._ctx_id = ctx_id
        self._detection_size = detection_size
        self._analysis: Any = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "InsightFaceModel":
        return cls(
            name=settings.model_name,
            root=settings.model_root,
            ctx_id=settings.model_ctx_id,
            detection_size=settings.detection_size,
        )

    @property
    def loaded(self) -> bool:
        return self._analysis is not None

    def load(self) -> None:
        """Load detector and recognizer weights. Blocking; call once at startup."""

        from insightface.app import FaceAnalysis

        logger.info("Loading InsightFace model pack %s from %s", self._name, self._root)
        analysis = FaceAnalysis(
            name=self._name,
            root=self._root,
            allowed_modules=["detection", "recognition"],
        )
        analysis.prepare(
            ctx_id=self._ctx_id,
            det_size=(self._detection_size, self._detection_size),
        )
        self._analysis = analysis

    def describe(self, image: np.ndarray) -> np.ndarray | None:
        if self._analysis is None:
            raise RuntimeError("Face model has not been loaded.")

        faces = self._analysis.get(image)
        if not faces:
            return None
        # most confident detection wins, larger box breaks ties
        face = max(faces, key=_face_rank)
        return np.asarray(face.normed_embedding, dtype=np.float64)
