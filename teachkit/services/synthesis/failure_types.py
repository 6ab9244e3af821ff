"""
Failure normalization for the synthesis runner.
Classifies provider and transport failures for retry policy and observability.
"""
from enum import Enum
from typing import Any


class FailureType(str, Enum):
    TRANSPORT_TRANSIENT = "transport_transient"  # 429, 5xx, timeout, connection reset
    PROMPT_BLOCKED = "prompt_blocked"  # promptFeedback.blockReason
    RESPONSE_BLOCKED = "response_blocked"  # SAFETY / OTHER (one retry allowed)
    RESPONSE_BLOCKED_STRICT = "response_blocked_strict"  # BLOCKLIST / SPII / PROHIBITED_CONTENT
    MALFORMED_RESPONSE = "malformed_response"  # 200 OK but unusable payload
    CLIENT_NON_RETRIABLE = "client_non_retriable"  # 4xx except 429, missing config
    CIRCUIT_OPEN = "circuit_open"


STRICT_FINISH_REASONS = frozenset({
    "BLOCKLIST",
    "SPII",
    "PROHIBITED_CONTENT",
    "RECITATION",
})

RETRYABLE_FINISH_REASONS = frozenset({
    "SAFETY",
    "OTHER",
})


def classify_failure(
    http_status: int | None,
    detail: dict[str, Any],
) -> tuple[FailureType, bool]:
    """Return (failure_type, retry_allowed) for a failed provider call."""
    if detail.get("circuit_open"):
        return (FailureType.CIRCUIT_OPEN, False)
    if detail.get("unsupported") or detail.get("not_configured"):
        return (FailureType.CLIENT_NON_RETRIABLE, False)

    if http_status is not None:
        if http_status == 429:
            return (FailureType.TRANSPORT_TRANSIENT, True)
        if 500 <= http_status < 600:
            return (FailureType.TRANSPORT_TRANSIENT, True)
        if 400 <= http_status < 500:
            return (FailureType.CLIENT_NON_RETRIABLE, False)

    prompt_feedback = detail.get("prompt_feedback") or {}
    if detail.get("block_reason") or prompt_feedback.get("blockReason"):
        return (FailureType.PROMPT_BLOCKED, False)

    finish_reason = (detail.get("finish_reason") or "").strip().upper()
    if finish_reason in STRICT_FINISH_REASONS:
        return (FailureType.RESPONSE_BLOCKED_STRICT, False)
    if finish_reason in RETRYABLE_FINISH_REASONS:
        return (FailureType.RESPONSE_BLOCKED, True)
    if finish_reason and finish_reason != "STOP":
        return (FailureType.RESPONSE_BLOCKED_STRICT, False)

    # Models occasionally return broken JSON; a second sample usually parses
    if detail.get("malformed"):
        return (FailureType.MALFORMED_RESPONSE, True)

    if detail:
        return (FailureType.RESPONSE_BLOCKED, False)

    # No detail (network error, timeout)
    return (FailureType.TRANSPORT_TRANSIENT, True)
