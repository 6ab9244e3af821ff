"""
Error taxonomy for the generation transaction.

Every error carries an HTTP status, a stable machine code, a message that is
safe to show to the end user, and an operator ``detail`` dict (ids, amounts)
that goes to logs only.
"""
from typing import Any


class GenerationError(Exception):
    status_code = 500
    code = "internal_error"
    public_message = "Something went wrong"

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.public_message
        self.reason = reason
        self.detail = detail or {}
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.reason:
            body["reason"] = self.reason
        return body


class InvalidArgument(GenerationError):
    """Malformed caller input; message is shown verbatim."""

    status_code = 400
    code = "invalid_argument"
    public_message = "Invalid request"


class Unauthenticated(GenerationError):
    status_code = 401
    code = "unauthenticated"
    public_message = "Unauthorized - Please sign in"


class PaymentRequired(GenerationError):
    status_code = 402
    code = "payment_required"
    public_message = "Payment required - Please pay to generate content"


class PaymentInvalid(GenerationError):
    """Amount or currency mismatch. Treated as an abuse signal."""

    status_code = 403
    code = "payment_invalid"
    public_message = "Invalid payment"


class Forbidden(GenerationError):
    status_code = 403
    code = "forbidden"
    public_message = "Access denied"


class PaymentAlreadyUsed(GenerationError):
    status_code = 403
    code = "payment_already_used"
    public_message = (
        "This payment has already been used. "
        "Please create a new payment for each generation."
    )


class NotFound(GenerationError):
    status_code = 404
    code = "not_found"
    public_message = "Not found"


class GenerationFailed(GenerationError):
    """Content or audio synthesis failed after the payment was consumed."""

    status_code = 500
    code = "generation_failed"
    public_message = (
        "Content generation failed. Your payment was used; "
        "please contact support for a refund."
    )


class PartialDegradation(GenerationError):
    """Non-fatal: optional artifacts (images) could not be produced. Never returned to callers."""

    status_code = 200
    code = "partial_degradation"
    public_message = "Some optional materials could not be generated"
