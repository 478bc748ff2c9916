"""Prometheus metrics for provider routing."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── Provider attempts ────────────────────────────────────────
PROVIDER_ATTEMPTS = Counter(
    "llm_router_attempts_total",
    "Provider attempts made by the router",
    ["provider", "outcome"],  # success / failure / skipped_quota
)

PROVIDER_LATENCY = Histogram(
    "llm_router_request_latency_seconds",
    "Latency of a single provider attempt",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# ── Queries ──────────────────────────────────────────────────
QUERIES_TOTAL = Counter(
    "llm_router_queries_total",
    "Router queries by final status",
    ["status"],  # success / exhausted / cancelled
)

# ── Tool relay ───────────────────────────────────────────────
TOOL_CALLS_TOTAL = Counter(
    "llm_router_tool_calls_total",
    "Tool calls executed by the relay",
    ["outcome"],  # success / failure
)
