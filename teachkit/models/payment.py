"""
Payment model: one row per Stripe payment intent.
used_at is the redemption marker: NULL = not yet spent on a generation.
It goes from NULL to a timestamp at most once, via PaymentService.consume.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from teachkit.db.base import Base

PAYMENT_STATUSES = ("pending", "succeeded", "failed", "canceled")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="payments_amount_positive"),
        CheckConstraint("currency = LOWER(currency)", name="payments_currency_lowercase"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    stripe_payment_intent_id = Column(String, unique=True, nullable=False)
    stripe_customer_id = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)                       # minor units (pence)
    currency = Column(String, nullable=False, default="gbp")
    status = Column(String, nullable=False, default="pending")     # pending / succeeded / failed / canceled
    topic = Column(String, nullable=True)                          # topic hint at creation, audit only
    used_at = Column(DateTime(timezone=True), nullable=True, index=True)
    # Written only by the generation coordinator: running / completed / failed
    generation_status = Column(String, nullable=True)
    generation_error = Column(String, nullable=True)
    generation_id = Column(String, nullable=True, unique=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
