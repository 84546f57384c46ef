"""Thread-safe, append-only collection of labeled embeddings."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Sequence

Embedding = tuple[float, ...]


@dataclass(frozen=True, slots=True)
class LabeledEmbedding:
    """An enrolled face sample."""

    label: str
    embedding: Embedding


class EmbeddingStore:
    """In-memory store of enrolled samples.

    A label may be enrolled many times; every sample takes part in matching.
    All access goes through one lock, so a snapshot either contains a new
    entry in full or does not contain it at all.
    """

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self._dimension = dimension
        self._entries: list[LabeledEmbedding] = []
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return self._dimension

    def enroll(self, label: str, embedding: Sequence[float]) -> LabeledEmbedding:
        """Append a new sample and return the stored value."""

        if not isinstance(label, str) or not label.strip():
            raise ValueError("label must be a non-empty string")
        values = tuple(float(v) for v in embedding)
        if len(values) != self._dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self._dimension}, got {len(values)}"
            )

        entry = LabeledEmbedding(label=label, embedding=values)
        with self._lock:
            self._entries.append(entry)
        return entry

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> tuple[LabeledEmbedding, ...]:
        """Return a point-in-time, immutable view in enrollment order."""

        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        return self.size()
