"""
Payment intent lifecycle: create, client-side verify, and ledger webhooks.
"""
import logging

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from teachkit.api.deps import get_current_user, get_payment_ledger, get_session_data
from teachkit.api.session import SessionData
from teachkit.core.errors import GenerationError, InvalidArgument, Unauthenticated
from teachkit.db.session import get_db
from teachkit.models.user import User
from teachkit.schemas.payments import PaymentCreateIn, PaymentCreateOut, PaymentVerifyIn, PaymentVerifyOut
from teachkit.services.ledger.base import LedgerError, PaymentLedger, WebhookError
from teachkit.services.payments.service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/payment/create", response_model=PaymentCreateOut)
def create_payment(
    body: PaymentCreateIn = Body(...),
    session: SessionData | None = Depends(get_session_data),
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
):
    if session is None:
        raise Unauthenticated()
    try:
        intent = PaymentService(db).create_intent(session.email, session.name, body.topic or "", ledger)
    except LedgerError as e:
        logger.error("payment_create_failed", extra={"error": str(e)})
        raise GenerationError("Failed to create payment") from e
    return PaymentCreateOut(client_secret=intent.client_secret, payment_intent_id=intent.id)


@router.post("/payment/verify", response_model=PaymentVerifyOut)
def verify_payment(
    body: PaymentVerifyIn = Body(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
):
    try:
        PaymentService(db).verify(user, body.payment_intent_id or "", ledger)
    except LedgerError as e:
        logger.error("payment_verify_failed", extra={"user_id": user.id, "error": str(e)})
        raise GenerationError("Failed to verify payment") from e
    return PaymentVerifyOut(verified=True)


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    ledger: PaymentLedger = Depends(get_payment_ledger),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = ledger.parse_webhook(payload, signature)
    except WebhookError as e:
        logger.warning("webhook_rejected", extra={"error": str(e)})
        raise InvalidArgument("Webhook signature verification failed") from e

    await run_in_threadpool(PaymentService(db).apply_webhook_event, event, ledger)
    return {"received": True}
