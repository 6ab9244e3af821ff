"""
Payment ledger interface: the external processor that is the source of truth
for whether money was captured. Implementations normalise processor objects
into LedgerIntent / LedgerEvent so business logic never sees SDK types.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LedgerIntent:
    id: str
    status: str  # requires_payment_method, processing, succeeded, canceled, ...
    amount: int
    currency: str
    customer: str | None
    client_secret: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class LedgerEvent:
    id: str
    type: str
    intent: LedgerIntent | None


class LedgerError(Exception):
    """Processor call failed for a reason other than a missing intent."""


class IntentNotFound(LedgerError):
    pass


class WebhookError(LedgerError):
    """Webhook payload or signature rejected."""


class PaymentLedger(ABC):
    @abstractmethod
    def ensure_customer(self, email: str, name: str | None = None) -> str:
        """Return a billing customer id for this email, creating one if needed."""
        pass

    @abstractmethod
    def customer_exists(self, customer_id: str) -> bool:
        pass

    @abstractmethod
    def customer_email(self, customer_id: str) -> str | None:
        pass

    @abstractmethod
    def create_intent(
        self,
        amount: int,
        currency: str,
        customer: str,
        metadata: dict[str, str] | None = None,
    ) -> LedgerIntent:
        pass

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> LedgerIntent:
        """Raises IntentNotFound if the processor has no such intent."""
        pass

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str | None) -> LedgerEvent:
        """Verify signature and parse. Raises WebhookError."""
        pass
