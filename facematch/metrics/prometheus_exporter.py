"""Prometheus exporter helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge


enroll_total = Counter(
    "facematch_enroll_total",
    "Total number of enroll requests by outcome.",
    ["outcome"],
)

resolve_total = Counter(
    "facematch_resolve_total",
    "Total number of resolve requests by outcome.",
    ["outcome"],
)

store_entries = Gauge(
    "facematch_store_entries",
    "Number of labeled embeddings currently held in memory.",
)
