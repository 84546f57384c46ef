"""Response bodies returned by the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel

from facematch.services.failures import FailureKind


class EnrollResponse(BaseModel):
    success: bool = True
    message: str


class ResolveResponse(BaseModel):
    success: bool = True
    label: str
    distance: float | None = None


class DetectResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: FailureKind
    message: str


class StatsResponse(BaseModel):
    entries: int
    threshold: float
    dimension: int
