"""
Celery task: produce the package for a payment that the API already consumed.
"""
import logging

from sqlalchemy.orm import Session

from teachkit.core.celery_app import celery_app
from teachkit.core.errors import GenerationFailed
from teachkit.db.session import SessionLocal
from teachkit.services.generation.coordinator import ConsumedPayment, build_coordinator
from teachkit.services.payments.service import PaymentService

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="teachkit.workers.tasks.generate_package.generate_package",
    time_limit=1800,
    soft_time_limit=1780,
)
def generate_package(self, consumed: dict) -> dict:
    """Run synthesis, assembly and package recording. The outcome lands on the payment row."""
    db: Session = SessionLocal()
    payment = ConsumedPayment(**consumed)
    try:
        coordinator = build_coordinator(db)
        result = coordinator.produce(payment)
        return {
            "ok": True,
            "generation_id": result.generation_id,
            "package_id": result.package_id,
        }
    except GenerationFailed as e:
        logger.error(
            "generate_package_failed",
            extra={"payment_id": payment.payment_id, "reason": e.reason, "user_id": payment.user_id},
        )
        return {"ok": False, "reason": e.reason}
    except ValueError as e:
        # Providers misconfigured after consumption; record so status checks report it
        logger.error("generate_package_misconfigured", extra={"payment_id": payment.payment_id, "error": str(e)})
        PaymentService(db).mark_generation(payment.payment_id, "failed", error=f"config: {e}"[:500])
        return {"ok": False, "reason": "config"}
    finally:
        db.close()
