"""
Stripe implementation of PaymentLedger.
"""
import logging
from datetime import datetime, timezone
from typing import Any

import stripe

from teachkit.core.config import settings
from teachkit.services.ledger.base import (
    IntentNotFound,
    LedgerError,
    LedgerEvent,
    LedgerIntent,
    PaymentLedger,
    WebhookError,
)

logger = logging.getLogger(__name__)

INTENT_EVENTS = frozenset({
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
})


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a StripeObject or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _customer_id(value: Any) -> str | None:
    """PaymentIntent.customer is an id, or a Customer object when expanded."""
    if value is None or isinstance(value, str):
        return value
    return _field(value, "id")


def to_ledger_intent(obj: Any) -> LedgerIntent:
    return LedgerIntent(
        id=_field(obj, "id"),
        status=_field(obj, "status"),
        amount=int(_field(obj, "amount", 0)),
        currency=(_field(obj, "currency") or "").lower(),
        customer=_customer_id(_field(obj, "customer")),
        client_secret=_field(obj, "client_secret"),
        metadata=dict(_field(obj, "metadata") or {}),
    )


class StripeLedger(PaymentLedger):
    """Stripe PaymentIntents as the payment ledger."""

    def __init__(self, secret_key: str | None = None, webhook_secret: str | None = None) -> None:
        self.secret_key = secret_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        stripe.api_key = self.secret_key

    def ensure_customer(self, email: str, name: str | None = None) -> str:
        try:
            customers = stripe.Customer.list(email=email, limit=1)
            if customers.data:
                return customers.data[0].id
            customer = stripe.Customer.create(
                email=email,
                name=name or email.split("@")[0],
                metadata={"created_at": datetime.now(timezone.utc).isoformat()},
            )
            return customer.id
        except stripe.StripeError as e:
            raise LedgerError(f"Stripe customer lookup failed: {e}") from e

    def customer_exists(self, customer_id: str) -> bool:
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.InvalidRequestError:
            return False
        except stripe.StripeError as e:
            raise LedgerError(f"Stripe customer retrieve failed: {e}") from e
        return not _field(customer, "deleted", False)

    def customer_email(self, customer_id: str) -> str | None:
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.StripeError as e:
            raise LedgerError(f"Stripe customer retrieve failed: {e}") from e
        if _field(customer, "deleted", False):
            return None
        return _field(customer, "email")

    def create_intent(
        self,
        amount: int,
        currency: str,
        customer: str,
        metadata: dict[str, str] | None = None,
    ) -> LedgerIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                customer=customer,
                metadata=metadata or {},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            raise LedgerError(f"Stripe payment intent creation failed: {e}") from e
        return to_ledger_intent(intent)

    def retrieve_intent(self, intent_id: str) -> LedgerIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.InvalidRequestError as e:
            raise IntentNotFound(intent_id) from e
        except stripe.StripeError as e:
            raise LedgerError(f"Stripe payment intent retrieve failed: {e}") from e
        return to_ledger_intent(intent)

    def parse_webhook(self, payload: bytes, signature: str | None) -> LedgerEvent:
        if not self.webhook_secret:
            raise WebhookError("STRIPE_WEBHOOK_SECRET not configured")
        if not signature:
            raise WebhookError("Missing stripe-signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise WebhookError(f"Invalid payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookError(f"Invalid signature: {e}") from e

        event_type = _field(event, "type")
        intent = None
        if event_type in INTENT_EVENTS:
            intent = to_ledger_intent(_field(_field(event, "data"), "object"))
        return LedgerEvent(id=_field(event, "id"), type=event_type, intent=intent)


def get_ledger() -> PaymentLedger:
    return StripeLedger()
