"""Nearest-neighbour identity resolution over the embedding store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from facematch.recognition.store import EmbeddingStore

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown"


@dataclass(frozen=True, slots=True)
class Identified:
    label: str
    distance: float


@dataclass(frozen=True, slots=True)
class Unknown:
    """No stored sample lies within the threshold.

    ``nearest_distance`` is ``None`` when the store was empty.
    """

    nearest_distance: float | None = None

    @property
    def label(self) -> str:
        return UNKNOWN_LABEL


MatchResult = Union[Identified, Unknown]


class IdentityResolver:
    """Exact linear scan using Euclidean distance and an inclusive threshold."""

    def __init__(self, store: EmbeddingStore, threshold: float = 0.6) -> None:
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        self._store = store
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def resolve(self, query: Sequence[float]) -> MatchResult:
        """Return the closest enrolled label, or ``Unknown``.

        Ties on the minimum distance go to the earliest enrolled sample.
        """

        entries = self._store.snapshot()
        if not entries:
            return Unknown()

        vector = np.asarray(query, dtype=np.float64)
        if vector.shape != (self._store.dimension,):
            raise ValueError(
                f"Query dimension mismatch: expected ({self._store.dimension},), got {vector.shape}"
            )

        matrix = np.asarray([entry.embedding for entry in entries], dtype=np.float64)
        distances = np.linalg.norm(matrix - vector, axis=1)
        # argmin returns the first index among equal minima
        best = int(np.argmin(distances))
        distance = float(distances[best])

        if distance <= self._threshold:
            return Identified(label=entries[best].label, distance=distance)
        logger.debug("Nearest sample at %.4f exceeds threshold %.4f", distance, self._threshold)
        return Unknown(nearest_distance=distance)
