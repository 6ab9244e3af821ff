"""
Package model: durable record of one completed generation.
file_id is the generation id shared by every artifact filename of the package.
payment_id is a nullable back-reference to the funding payment.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String

from teachkit.db.base import Base, JSONType


class Package(Base):
    __tablename__ = "packages"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_id = Column(String, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True, unique=True)
    topic = Column(String, nullable=False)
    file_id = Column(String, nullable=False, unique=True)
    # {"presentation": ..., "audio": ..., "worksheet": ..., "answerSheet": ..., "images": [...]}
    files = Column(JSONType, nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
