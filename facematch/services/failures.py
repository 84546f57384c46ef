"""Failure kinds shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    """Terminal outcomes that abort the ingestion pipeline."""

    INVALID_INPUT = "invalid_input"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNRECOGNIZED_FORMAT = "unrecognized_format"
    CONVERSION_FAILURE = "conversion_failure"
    DECODE_FAILURE = "decode_failure"
    NO_FACE_DETECTED = "no_face_detected"
    EXTRACTION_TIMEOUT = "extraction_timeout"
    INTERNAL_FAILURE = "internal_failure"


_INTERNAL_KINDS = frozenset({FailureKind.INTERNAL_FAILURE, FailureKind.EXTRACTION_TIMEOUT})


@dataclass(frozen=True, slots=True)
class StageFailure:
    """A stage result describing why processing stopped."""

    kind: FailureKind
    reason: str

    @property
    def is_internal(self) -> bool:
        """``True`` for collaborator faults rather than caller mistakes."""

        return self.kind in _INTERNAL_KINDS
