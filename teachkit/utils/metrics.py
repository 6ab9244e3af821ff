"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
generations_started_total = Counter(
    "generations_started_total",
    "Generations that won the atomic payment consumption",
)

generations_completed_total = Counter(
    "generations_completed_total",
    "Generations that produced a package",
)

generations_failed_total = Counter(
    "generations_failed_total",
    "Generations that failed after the payment was consumed",
    ["stage"],  # content, audio, storage
)

payment_rejections_total = Counter(
    "payment_rejections_total",
    "Generation requests rejected before consumption",
    ["code"],
)

image_degradations_total = Counter(
    "image_degradations_total",
    "Packages produced without images because image synthesis failed",
)

package_record_failures_total = Counter(
    "package_record_failures_total",
    "Package rows that could not be inserted after artifacts were saved",
)

synthesis_requests_total = Counter(
    "synthesis_requests_total",
    "Content synthesis provider calls",
    ["capability", "provider", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
generation_duration_seconds = Histogram(
    "generation_duration_seconds",
    "Time from payment consumption to package completion",
    buckets=[5, 10, 30, 60, 120, 300, 600],
)

synthesis_duration_seconds = Histogram(
    "synthesis_duration_seconds",
    "Content synthesis provider call duration",
    ["capability"],
    buckets=[1, 5, 10, 30, 60, 120, 300],
)

# Gauges
active_generations = Gauge(
    "active_generations",
    "Currently running generations",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
