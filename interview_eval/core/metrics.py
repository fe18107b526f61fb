"""Prometheus metrics for the evaluation pipeline."""

from prometheus_client import Counter, Histogram, Info

# --- Metrics ---

APP_INFO = Info("interview_eval", "Interview evaluation pipeline info")
APP_INFO.info({"version": "1.0.0", "name": "interview_eval"})

PROVIDER_CALLS = Counter(
    "interview_eval_provider_calls_total",
    "LLM provider invocations",
    ["provider", "outcome"],  # outcome: success | error
)

PROVIDER_LATENCY = Histogram(
    "interview_eval_provider_latency_seconds",
    "LLM provider round-trip latency in seconds",
    ["provider"],
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 60, 120],
)

CACHE_LOOKUPS = Counter(
    "interview_eval_cache_lookups_total",
    "Cache-aside lookups",
    ["result"],  # hit | miss | error
)

EVALUATIONS = Counter(
    "interview_eval_evaluations_total",
    "Orchestrated evaluation runs by outcome",
    ["kind", "outcome"],  # kind: evaluation | questions; outcome: provider name | all_failed | timeout
)
