"""
Synthesis runner: call-with-retry, failure classification, circuit breaker and observability.
Retry budget comes from settings (synthesis_retry_max_attempts); delays are jittered and
Retry-After is honoured on 429.
"""
import logging
import random
import time
from typing import Any, Callable, TypeVar

import pybreaker

from teachkit.services.synthesis.base import SynthesisError
from teachkit.services.synthesis.failure_types import classify_failure
from teachkit.utils.metrics import synthesis_duration_seconds, synthesis_requests_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(
    call: Callable[[], T],
    settings: Any,
    *,
    capability: str,
    provider_name: str,
    breaker: pybreaker.CircuitBreaker | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run one provider call under the retry budget.
    Raises the last SynthesisError once retries are exhausted or the failure is not retriable.
    """
    max_attempts = max(1, int(getattr(settings, "synthesis_retry_max_attempts", 2)))
    backoff_seconds = getattr(settings, "synthesis_retry_backoff_seconds", 2.0)
    respect_retry_after = getattr(settings, "synthesis_retry_respect_retry_after", True)

    attempt = 0
    while True:
        attempt += 1
        started = time.monotonic()
        try:
            result = breaker.call(call) if breaker is not None else call()
        except pybreaker.CircuitBreakerError as e:
            synthesis_requests_total.labels(
                capability=capability, provider=provider_name, status="circuit_open"
            ).inc()
            logger.warning(
                "synthesis_circuit_open",
                extra={"capability": capability, "provider": provider_name},
            )
            raise SynthesisError(
                f"{capability} provider temporarily unavailable",
                detail={"circuit_open": True},
            ) from e
        except SynthesisError as e:
            synthesis_duration_seconds.labels(capability=capability).observe(time.monotonic() - started)
            synthesis_requests_total.labels(
                capability=capability, provider=provider_name, status="error"
            ).inc()
            detail = e.detail
            http_status = detail.get("http_status")
            failure_type, retry_allowed = classify_failure(http_status, detail)
            detail["failure_type"] = failure_type.value
            logger.warning(
                "synthesis_attempt_failed",
                extra={
                    "capability": capability,
                    "provider": provider_name,
                    "attempt": attempt,
                    "failure_type": failure_type.value,
                    "error": str(e),
                },
            )
            if not retry_allowed or attempt >= max_attempts:
                raise

            delay = backoff_seconds
            if http_status == 429 and respect_retry_after and detail.get("retry_after"):
                try:
                    delay = float(detail["retry_after"])
                except (TypeError, ValueError):
                    pass
            delay += random.uniform(0, 1)
            logger.info(
                "synthesis_retry_scheduled",
                extra={
                    "capability": capability,
                    "attempt": attempt,
                    "delay_seconds": round(delay, 2),
                    "failure_type": failure_type.value,
                },
            )
            sleep(delay)
            continue

        synthesis_duration_seconds.labels(capability=capability).observe(time.monotonic() - started)
        synthesis_requests_total.labels(
            capability=capability, provider=provider_name, status="ok"
        ).inc()
        if attempt > 1:
            logger.info(
                "synthesis_success_after_retry",
                extra={"capability": capability, "provider": provider_name, "attempt": attempt},
            )
        return result
