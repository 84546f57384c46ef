"""Embedding storage and nearest-neighbour identity matching."""

from .resolver import UNKNOWN_LABEL, Identified, IdentityResolver, MatchResult, Unknown
from .store import Embedding, EmbeddingStore, LabeledEmbedding

__all__ = [
    "UNKNOWN_LABEL",
    "Embedding",
    "EmbeddingStore",
    "Identified",
    "IdentityResolver",
    "LabeledEmbedding",
    "MatchResult",
    "Unknown",
]
