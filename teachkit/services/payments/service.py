"""
Local payment rows: creation, status sync from the ledger, and the one-way
redemption marker (used_at).
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teachkit.core.config import settings
from teachkit.core.errors import InvalidArgument, NotFound, PaymentRequired
from teachkit.models.payment import Payment
from teachkit.models.user import User
from teachkit.services.ledger.base import IntentNotFound, LedgerEvent, LedgerIntent, PaymentLedger
from teachkit.services.users.service import UserService

logger = logging.getLogger(__name__)

EVENT_STATUSES = {
    "payment_intent.succeeded": "succeeded",
    "payment_intent.payment_failed": "failed",
    "payment_intent.canceled": "canceled",
}


class PaymentService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_intent(self, intent_id: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(Payment.stripe_payment_intent_id == intent_id)
            .one_or_none()
        )

    def get_for_user(self, intent_id: str, user_id: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(
                Payment.stripe_payment_intent_id == intent_id,
                Payment.user_id == user_id,
            )
            .one_or_none()
        )

    def record_intent(self, user: User, intent: LedgerIntent, topic: str | None) -> Payment:
        payment = Payment(
            user_id=user.id,
            stripe_payment_intent_id=intent.id,
            stripe_customer_id=intent.customer,
            amount=intent.amount,
            currency=intent.currency,
            status="pending",
            topic=topic,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def create_intent(self, email: str, name: str | None, topic: str, ledger: PaymentLedger) -> LedgerIntent:
        """Create a ledger intent for the unit price and its pending local row."""
        topic = (topic or "").strip()
        if not topic:
            raise InvalidArgument("Topic is required")
        user, customer_id = UserService(self.db).resolve_billing_customer(email, name, ledger)
        intent = ledger.create_intent(
            settings.unit_price_amount,
            settings.unit_price_currency,
            customer_id,
            metadata={"userId": user.id, "topic": topic[: settings.topic_max_length]},
        )
        self.record_intent(user, intent, topic[: settings.topic_max_length])
        logger.info(
            "payment_intent_created",
            extra={"user_id": user.id, "payment_intent_id": intent.id, "amount": intent.amount, "currency": intent.currency},
        )
        return intent

    def set_status(self, intent_id: str, status: str) -> bool:
        """Sync ledger status onto the local row. Never touches used_at."""
        result = self.db.execute(
            update(Payment)
            .where(Payment.stripe_payment_intent_id == intent_id)
            .values(status=status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount > 0

    def verify(self, user: User, intent_id: str, ledger: PaymentLedger) -> LedgerIntent:
        """Client-side confirmation: mark the caller's row succeeded once the ledger agrees."""
        if not intent_id:
            raise InvalidArgument("Payment intent ID is required")
        if self.get_for_user(intent_id, user.id) is None:
            raise NotFound("Payment not found")
        try:
            intent = ledger.retrieve_intent(intent_id)
        except IntentNotFound:
            raise PaymentRequired("Payment not found", reason="payment_not_found") from None
        if intent.status != "succeeded":
            raise PaymentRequired(
                "Payment not completed",
                reason="payment_not_succeeded",
                detail={"status": intent.status},
            )
        self.set_status(intent_id, "succeeded")
        return intent

    def apply_webhook_event(self, event: LedgerEvent, ledger: PaymentLedger) -> None:
        status = EVENT_STATUSES.get(event.type)
        if status is None or event.intent is None:
            logger.info("webhook_event_ignored", extra={"event_type": event.type})
            return

        intent = event.intent
        if status == "succeeded" and intent.customer:
            email = ledger.customer_email(intent.customer)
            if email:
                UserService(self.db).get_or_create(email, stripe_customer_id=intent.customer)
            else:
                logger.warning(
                    "webhook_customer_without_email",
                    extra={"payment_intent_id": intent.id, "customer": intent.customer},
                )

        updated = self.set_status(intent.id, status)
        logger.info(
            "webhook_payment_synced",
            extra={"payment_intent_id": intent.id, "event_type": event.type, "state": status, "count": int(updated)},
        )

    def consume(self, intent_id: str, user_id: str) -> bool:
        """
        Atomically mark the payment redeemed.

        Single conditional UPDATE ... WHERE used_at IS NULL; exactly one concurrent
        caller sees rowcount 1. Commits before returning so the redemption is durable
        before any synthesis work starts.
        """
        now = datetime.now(timezone.utc)
        result = self.db.execute(
            update(Payment)
            .where(
                Payment.stripe_payment_intent_id == intent_id,
                Payment.user_id == user_id,
                Payment.used_at.is_(None),
            )
            .values(
                used_at=now,
                status="succeeded",
                generation_status="running",
                generation_error=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def mark_generation(
        self,
        payment_id: str,
        status: str,
        error: str | None = None,
        generation_id: str | None = None,
    ) -> None:
        self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(
                generation_status=status,
                generation_error=error,
                generation_id=generation_id,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def claim_generation_id(self, payment_id: str, generation_id: str) -> bool:
        """
        Reserve a generation id for this payment before any artifact is written.
        payments.generation_id is unique, so a second payment asking for the same
        id loses with an IntegrityError and must pick another.
        """
        try:
            self.db.execute(
                update(Payment)
                .where(Payment.id == payment_id)
                .values(generation_id=generation_id, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

    def recent_redemptions(self, user_id: str, window_seconds: int = 60) -> int:
        since = datetime.now(timezone.utc) - timedelta(seconds=window_seconds)
        return (
            self.db.query(func.count(Payment.id))
            .filter(Payment.user_id == user_id, Payment.used_at.isnot(None), Payment.used_at >= since)
            .scalar()
        ) or 0
