"""
Generation endpoints. Handlers are plain ``def`` so FastAPI runs them in the
threadpool; a slow synthesis call never blocks other requests.
"""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from teachkit.api.deps import get_coordinator, get_current_email, get_current_user
from teachkit.core.config import settings
from teachkit.core.errors import GenerationFailed, NotFound
from teachkit.db.session import get_db
from teachkit.models.user import User
from teachkit.schemas.generation import (
    GenerateAcceptedOut,
    GenerateIn,
    GenerateOut,
    GenerationStatusOut,
    PackageFiles,
)
from teachkit.services.generation.coordinator import GenerationCoordinator
from teachkit.services.payments.service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/generate", tags=["generation"])


def _is_stale(used_at: datetime) -> bool:
    if used_at.tzinfo is None:
        used_at = used_at.replace(tzinfo=timezone.utc)
    age = datetime.now(timezone.utc) - used_at
    return age > timedelta(seconds=settings.generation_stale_after_seconds)


@router.post("", response_model=GenerateOut)
def generate(
    body: GenerateIn = Body(...),
    email: str = Depends(get_current_email),
    coordinator: GenerationCoordinator = Depends(get_coordinator),
):
    result = coordinator.generate(email, body.topic, body.payment_intent_id)
    return GenerateOut(
        files=PackageFiles.model_validate(result.files),
        package_id=result.package_id,
        generation_id=result.generation_id,
    )


@router.post("/async", response_model=GenerateAcceptedOut, status_code=status.HTTP_202_ACCEPTED)
def generate_async(
    body: GenerateIn = Body(...),
    email: str = Depends(get_current_email),
    coordinator: GenerationCoordinator = Depends(get_coordinator),
):
    """Validate and spend the payment now; production continues on a worker."""
    from teachkit.workers.tasks.generate_package import generate_package

    consumed = coordinator.authorize_and_consume(email, body.topic, body.payment_intent_id)
    try:
        generate_package.delay(consumed.to_dict())
    except Exception as e:
        # Spent but never queued: status checks must report it as failed
        raise coordinator.abandon(consumed, "enqueue", e) from e
    return GenerateAcceptedOut(payment_intent_id=consumed.payment_intent_id, status="running")


@router.get("/{payment_intent_id}/status", response_model=GenerationStatusOut)
def generation_status(
    payment_intent_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment = PaymentService(db).get_for_user(payment_intent_id, user.id)
    if payment is None:
        raise NotFound("Payment not found")
    if payment.used_at is None:
        state = "unused"
    else:
        state = payment.generation_status or "running"
    if state == "running" and _is_stale(payment.used_at):
        # The worker was killed before it could record an outcome
        raise GenerationFailed(reason="timeout", detail={"payment_id": payment.id})
    if state == "failed":
        raise GenerationFailed(reason=(payment.generation_error or "").split(":", 1)[0] or None)
    return GenerationStatusOut(
        payment_intent_id=payment_intent_id,
        status=state,
        generation_id=payment.generation_id if state == "completed" else None,
        used_at=payment.used_at,
    )
