import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from teachkit.api.session import SessionData, read_session
from teachkit.core.errors import GenerationError, NotFound, Unauthenticated
from teachkit.db.session import get_db
from teachkit.models.user import User
from teachkit.services.generation.coordinator import GenerationCoordinator, build_coordinator
from teachkit.services.ledger.base import PaymentLedger
from teachkit.services.ledger.stripe_ledger import get_ledger
from teachkit.services.users.service import UserService
from teachkit.storage.base import Storage
from teachkit.storage.local import get_storage

logger = logging.getLogger(__name__)


async def get_session_data(request: Request) -> SessionData | None:
    return await read_session(request)


def get_current_email(session: SessionData | None = Depends(get_session_data)) -> str:
    if session is None or not session.email:
        raise Unauthenticated()
    return session.email


def get_current_user(
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
) -> User:
    user = UserService(db).get_by_email(email)
    if user is None:
        raise NotFound("User not found", reason="user_not_found")
    return user


def get_payment_ledger() -> PaymentLedger:
    return get_ledger()


def get_artifact_storage() -> Storage:
    return get_storage()


def get_coordinator(
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
    storage: Storage = Depends(get_artifact_storage),
) -> GenerationCoordinator:
    try:
        return build_coordinator(db, ledger, storage)
    except ValueError as e:
        logger.error("synthesis_misconfigured", extra={"error": str(e)})
        raise GenerationError("Content generation is not available right now") from e
