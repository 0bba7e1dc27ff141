"""Prometheus metrics for the generation dispatcher."""

from prometheus_client import Counter, Histogram, Info, generate_latest

# --- Metrics ---

APP_INFO = Info("app", "Generation dispatcher info")
APP_INFO.info({"version": "1.0.0", "name": "direitai_generation"})

GENERATION_ATTEMPTS = Counter(
    "generation_attempts_total",
    "Provider attempts by outcome",
    ["provider", "model", "outcome"],
)

ATTEMPT_DURATION = Histogram(
    "generation_attempt_duration_seconds",
    "Duration of a single provider attempt in seconds",
    ["provider"],
    buckets=[0.25, 0.5, 1, 2.5, 5, 10, 15, 25, 40, 60],
)

DISPATCH_EXHAUSTED = Counter(
    "generation_exhausted_total",
    "Requests for which every candidate failed",
)

FALLBACK_RESPONSES = Counter(
    "generation_fallback_responses_total",
    "Canned responses served after exhaustion",
)

QUOTA_REJECTIONS = Counter(
    "generation_quota_rejections_total",
    "Requests rejected by the daily quota gate",
    ["plan", "feature", "reason"],
)


def metrics_payload() -> tuple[bytes, str]:
    """Prometheus exposition body and its content type."""
    return generate_latest(), "text/plain; version=0.0.4; charset=utf-8"
