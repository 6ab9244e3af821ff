"""
Generation transaction: spend one payment, produce one package.

    Received -> Validated -> PaymentConsumed -> ContentSynthesized -> ArtifactsAssembled
             -> AudioProduced -> ImagesAttempted -> PackagePersisted -> Completed

Every check that can reject the request runs before the atomic consumption, so a
rejected request leaves the payment untouched and can be retried. Once the payment
is consumed it stays consumed: content or audio failures end in GenerationFailed,
image failures only drop the images, and a failed package insert is logged but
still returns the files.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import pybreaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from teachkit.core.config import settings as app_settings
from teachkit.core.errors import (
    Forbidden,
    GenerationError,
    GenerationFailed,
    InvalidArgument,
    NotFound,
    PartialDegradation,
    PaymentAlreadyUsed,
    PaymentInvalid,
    PaymentRequired,
)
from teachkit.services.artifacts.assembler import ArtifactAssembler
from teachkit.services.audit.service import AuditService
from teachkit.services.generation import naming
from teachkit.services.ledger.base import IntentNotFound, LedgerError, LedgerIntent, PaymentLedger
from teachkit.services.packages.service import PackageService
from teachkit.services.payments.service import PaymentService
from teachkit.services.synthesis import (
    Capability,
    ContentSynthesisProvider,
    SynthesisError,
    SynthesisProviderFactory,
    image_prompts,
    prepare_narration,
    run_with_retry,
)
from teachkit.services.users.service import UserService
from teachkit.storage.base import Storage
from teachkit.utils.metrics import (
    active_generations,
    generation_duration_seconds,
    generations_completed_total,
    generations_failed_total,
    generations_started_total,
    image_degradations_total,
    payment_rejections_total,
)

logger = logging.getLogger(__name__)

GENERATION_ID_CLAIM_ATTEMPTS = 5


class GenerationState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    PAYMENT_CONSUMED = "payment_consumed"
    CONTENT_SYNTHESIZED = "content_synthesized"
    ARTIFACTS_ASSEMBLED = "artifacts_assembled"
    AUDIO_PRODUCED = "audio_produced"
    IMAGES_ATTEMPTED = "images_attempted"
    PACKAGE_PERSISTED = "package_persisted"
    COMPLETED = "completed"
    # terminal failures
    REJECTED = "rejected"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_CONFLICT = "payment_conflict"
    GENERATION_FAILED = "generation_failed"


@dataclass
class ConsumedPayment:
    """Everything production needs once the payment has been spent. Serializable for Celery."""
    user_id: str
    payment_id: str
    payment_intent_id: str
    topic: str

    def to_dict(self) -> dict[str, str]:
        return {
            "user_id": self.user_id,
            "payment_id": self.payment_id,
            "payment_intent_id": self.payment_intent_id,
            "topic": self.topic,
        }


@dataclass
class GenerationResult:
    generation_id: str
    files: dict[str, Any]
    package_id: str | None = None
    images_degraded: bool = False
    state: GenerationState = GenerationState.COMPLETED
    history: list[GenerationState] = field(default_factory=list)


class GenerationCoordinator:
    def __init__(
        self,
        db: Session,
        ledger: PaymentLedger,
        storage: Storage,
        lesson_provider: ContentSynthesisProvider,
        audio_provider: ContentSynthesisProvider,
        image_provider: ContentSynthesisProvider,
        *,
        assembler: ArtifactAssembler | None = None,
        settings: Any = None,
        breakers: dict[Capability, pybreaker.CircuitBreaker] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.storage = storage
        self.providers = {
            Capability.LESSON: lesson_provider,
            Capability.AUDIO: audio_provider,
            Capability.IMAGE: image_provider,
        }
        self.assembler = assembler or ArtifactAssembler()
        self.settings = settings or app_settings
        self.breakers = breakers or {}
        self.sleep = sleep
        self.payments = PaymentService(db)
        self.packages = PackageService(db)
        self.audit = AuditService(db)
        self.state = GenerationState.RECEIVED
        self.history: list[GenerationState] = [GenerationState.RECEIVED]

    def _advance(self, state: GenerationState, **extra: Any) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("generation_state", extra={"state": state.value, **extra})

    def _reject(self, state: GenerationState, exc: GenerationError, level: int = logging.INFO, **extra: Any) -> GenerationError:
        self._advance(state)
        payment_rejections_total.labels(code=exc.code).inc()
        logger.log(
            level,
            "generation_rejected",
            extra={"state": state.value, "code": exc.code, "reason": exc.reason, **exc.detail, **extra},
        )
        return exc

    # ---- validation and consumption ----------------------------------------

    def _validate_topic(self, topic: Any) -> str:
        if not isinstance(topic, str) or not topic.strip():
            raise InvalidArgument("Topic is required")
        topic = topic.strip()
        if len(topic) < self.settings.topic_min_length:
            raise InvalidArgument(f"Topic must be at least {self.settings.topic_min_length} characters")
        if len(topic) > self.settings.topic_max_length:
            raise InvalidArgument(f"Topic must be at most {self.settings.topic_max_length} characters")
        return topic

    def _validate_reference(self, payment_reference: Any) -> str:
        if not isinstance(payment_reference, str) or not payment_reference.strip():
            raise PaymentRequired(reason="payment_reference_missing")
        payment_reference = payment_reference.strip()
        if len(payment_reference) > self.settings.payment_reference_max_length:
            raise PaymentRequired(reason="payment_reference_invalid")
        return payment_reference

    def _retrieve_intent(self, intent_id: str, user_id: str) -> LedgerIntent:
        try:
            intent = self.ledger.retrieve_intent(intent_id)
        except IntentNotFound:
            raise self._reject(
                GenerationState.PAYMENT_REJECTED,
                PaymentRequired(reason="payment_not_found", detail={"payment_intent_id": intent_id}),
                user_id=user_id,
            ) from None
        except LedgerError as e:
            logger.error(
                "payment_ledger_unavailable",
                extra={"user_id": user_id, "payment_intent_id": intent_id, "error": str(e)},
            )
            raise GenerationError("Payment verification is temporarily unavailable, please retry") from e
        if intent.status != "succeeded":
            raise self._reject(
                GenerationState.PAYMENT_REJECTED,
                PaymentRequired(
                    reason="payment_not_succeeded",
                    detail={"payment_intent_id": intent_id, "status": intent.status},
                ),
                user_id=user_id,
            )
        return intent

    def authorize_and_consume(self, email: str, topic: Any, payment_reference: Any) -> ConsumedPayment:
        """
        Validate the request and spend the payment.
        Raises before consumption on any rejection; returns only after the atomic update won.
        """
        user = UserService(self.db).get_by_email(email) if email else None
        if user is None:
            raise self._reject(GenerationState.REJECTED, NotFound("User not found", reason="user_not_found"))

        try:
            topic = self._validate_topic(topic)
            intent_id = self._validate_reference(payment_reference)
        except GenerationError as e:
            raise self._reject(GenerationState.REJECTED, e, user_id=user.id) from None

        intent = self._retrieve_intent(intent_id, user.id)

        expected_amount = self.settings.unit_price_amount
        expected_currency = self.settings.unit_price_currency.lower()
        if intent.amount != expected_amount or intent.currency.lower() != expected_currency:
            detail = {
                "payment_intent_id": intent_id,
                "amount": intent.amount,
                "currency": intent.currency,
                "expected_amount": expected_amount,
                "expected_currency": expected_currency,
            }
            self.audit.security_event(user.id, "payment_amount_mismatch", intent_id, detail)
            raise self._reject(
                GenerationState.PAYMENT_REJECTED,
                PaymentInvalid(detail=detail),
                level=logging.ERROR,
                user_id=user.id,
            )

        if not user.stripe_customer_id or intent.customer != user.stripe_customer_id:
            detail = {
                "payment_intent_id": intent_id,
                "customer": intent.customer,
                "expected_customer": user.stripe_customer_id,
            }
            self.audit.security_event(user.id, "payment_customer_mismatch", intent_id, detail)
            raise self._reject(
                GenerationState.PAYMENT_REJECTED,
                Forbidden(detail=detail),
                level=logging.WARNING,
                user_id=user.id,
            )

        payment = self.payments.get_for_user(intent_id, user.id)
        if payment is None:
            detail = {"payment_intent_id": intent_id}
            self.audit.security_event(user.id, "payment_not_owned", intent_id, detail)
            raise self._reject(
                GenerationState.PAYMENT_CONFLICT,
                Forbidden(detail=detail),
                level=logging.WARNING,
                user_id=user.id,
            )
        self._advance(GenerationState.VALIDATED, user_id=user.id)

        if not self.payments.consume(intent_id, user.id):
            detail = {"payment_intent_id": intent_id, "payment_id": payment.id}
            self.audit.security_event(user.id, "payment_reuse_attempt", intent_id, detail)
            raise self._reject(
                GenerationState.PAYMENT_CONFLICT,
                PaymentAlreadyUsed(detail=detail),
                level=logging.WARNING,
                user_id=user.id,
            )

        self._advance(GenerationState.PAYMENT_CONSUMED, user_id=user.id)
        generations_started_total.inc()
        logger.info(
            "generation_payment_consumed",
            extra={"user_id": user.id, "payment_id": payment.id, "payment_intent_id": intent_id},
        )
        self._warn_on_burst(user.id)
        return ConsumedPayment(
            user_id=user.id,
            payment_id=payment.id,
            payment_intent_id=intent_id,
            topic=topic,
        )

    def _warn_on_burst(self, user_id: str) -> None:
        count = self.payments.recent_redemptions(user_id)
        if count > self.settings.generation_rate_warn_per_minute:
            logger.warning("generation_rate_high", extra={"user_id": user_id, "count": count})

    # ---- production ---------------------------------------------------------

    def _synthesize(self, capability: Capability, call: Callable[[], Any]) -> Any:
        provider = self.providers[capability]
        return run_with_retry(
            call,
            self.settings,
            capability=capability.value,
            provider_name=provider.name,
            breaker=self.breakers.get(capability),
            sleep=self.sleep,
        )

    def _fail(self, consumed: ConsumedPayment, stage: str, exc: Exception) -> GenerationFailed:
        self._advance(GenerationState.GENERATION_FAILED)
        generations_failed_total.labels(stage=stage).inc()
        logger.error(
            "generation_failed",
            extra={
                "user_id": consumed.user_id,
                "payment_id": consumed.payment_id,
                "payment_intent_id": consumed.payment_intent_id,
                "reason": stage,
                "error": str(exc),
            },
        )
        try:
            self.payments.mark_generation(consumed.payment_id, "failed", error=f"{stage}: {exc}"[:500])
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("generation_status_write_failed", extra={"payment_id": consumed.payment_id})
        return GenerationFailed(reason=stage, detail={"payment_id": consumed.payment_id})

    def _images(self, consumed: ConsumedPayment, slides: list) -> tuple[list[bytes], bool]:
        images: list[bytes] = []
        failures = 0
        last_error: Exception | None = None
        provider = self.providers[Capability.IMAGE]
        for prompt in image_prompts(consumed.topic, slides, self.settings.image_count):
            # Any image failure only degrades the package
            try:
                images.append(self._synthesize(Capability.IMAGE, lambda p=prompt: provider.generate_image(p)))
            except Exception as e:
                failures += 1
                last_error = e
        if failures:
            image_degradations_total.inc()
            degradation = PartialDegradation(detail={"failed": failures, "produced": len(images)})
            logger.warning(
                "generation_images_degraded",
                extra={
                    "user_id": consumed.user_id,
                    "payment_id": consumed.payment_id,
                    "code": degradation.code,
                    "count": failures,
                    "error": str(last_error),
                },
            )
        return images, failures > 0

    def _claim_generation_id(self, consumed: ConsumedPayment) -> str:
        # Same topic in the same millisecond on another payment: take the next millisecond
        timestamp_ms = int(time.time() * 1000)
        for offset in range(GENERATION_ID_CLAIM_ATTEMPTS):
            generation_id = naming.build_generation_id(consumed.topic, timestamp_ms + offset)
            if self.payments.claim_generation_id(consumed.payment_id, generation_id):
                return generation_id
            logger.warning(
                "generation_id_taken",
                extra={"payment_id": consumed.payment_id, "generation_id": generation_id},
            )
        raise self._fail(consumed, "storage", RuntimeError("No free generation id"))

    def abandon(self, consumed: ConsumedPayment, stage: str, exc: Exception) -> GenerationFailed:
        """Record a consumed payment whose production never started; returns the error to raise."""
        return self._fail(consumed, stage, exc)

    def produce(self, consumed: ConsumedPayment) -> GenerationResult:
        """Run synthesis and assembly for an already-consumed payment."""
        started = time.monotonic()
        active_generations.inc()
        try:
            return self._produce(consumed, started)
        except GenerationFailed:
            raise
        except Exception as e:
            raise self._fail(consumed, "internal", e) from e
        finally:
            active_generations.dec()

    def _produce(self, consumed: ConsumedPayment, started: float) -> GenerationResult:
        topic = consumed.topic
        lesson_provider = self.providers[Capability.LESSON]
        audio_provider = self.providers[Capability.AUDIO]

        try:
            lesson = self._synthesize(Capability.LESSON, lambda: lesson_provider.generate_lesson(topic))
        except SynthesisError as e:
            raise self._fail(consumed, "content", e) from e
        self._advance(GenerationState.CONTENT_SYNTHESIZED)

        try:
            documents = self.assembler.assemble(topic, lesson)
        except ValueError as e:
            raise self._fail(consumed, "content", e) from e
        self._advance(GenerationState.ARTIFACTS_ASSEMBLED)

        # No text fallback: a package without narration is a failed package
        try:
            narration = prepare_narration(lesson.script, self.settings.narration_max_chars)
            audio = self._synthesize(Capability.AUDIO, lambda: audio_provider.synthesize_audio(narration))
        except (SynthesisError, ValueError) as e:
            raise self._fail(consumed, "audio", e) from e
        self._advance(GenerationState.AUDIO_PRODUCED)

        images, images_degraded = self._images(consumed, lesson.slides)
        self._advance(GenerationState.IMAGES_ATTEMPTED, count=len(images))

        generation_id = self._claim_generation_id(consumed)
        blobs: list[tuple[str, str, bytes]] = [
            ("presentation", naming.presentation_filename(generation_id), documents.presentation),
            ("audio", naming.audio_filename(generation_id), audio),
            ("worksheet", naming.worksheet_filename(generation_id), documents.worksheet),
            ("answerSheet", naming.answers_filename(generation_id), documents.answer_sheet),
        ]
        files: dict[str, Any] = {"images": []}
        try:
            for key, filename, content in blobs:
                self.storage.save(filename, content)
                files[key] = filename
            for n, content in enumerate(images, start=1):
                filename = naming.image_filename(generation_id, n)
                self.storage.save(filename, content)
                files["images"].append(filename)
        except OSError as e:
            raise self._fail(consumed, "storage", e) from e

        package = self.packages.record(
            consumed.user_id, consumed.payment_id, topic, generation_id, files
        )
        if package is not None:
            self._advance(GenerationState.PACKAGE_PERSISTED, package_id=package.id)

        try:
            self.payments.mark_generation(consumed.payment_id, "completed", generation_id=generation_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("generation_status_write_failed", extra={"payment_id": consumed.payment_id})

        self._advance(GenerationState.COMPLETED)
        generations_completed_total.inc()
        generation_duration_seconds.observe(time.monotonic() - started)
        logger.info(
            "generation_completed",
            extra={
                "user_id": consumed.user_id,
                "payment_id": consumed.payment_id,
                "generation_id": generation_id,
                "package_id": package.id if package is not None else None,
                "count": len(files["images"]),
            },
        )
        return GenerationResult(
            generation_id=generation_id,
            files=files,
            package_id=package.id if package is not None else None,
            images_degraded=images_degraded,
            history=list(self.history),
        )

    def generate(self, email: str, topic: Any, payment_reference: Any) -> GenerationResult:
        consumed = self.authorize_and_consume(email, topic, payment_reference)
        return self.produce(consumed)


def build_coordinator(
    db: Session,
    ledger: PaymentLedger | None = None,
    storage: Storage | None = None,
) -> GenerationCoordinator:
    """Wire a coordinator from settings. Misconfigured providers fail here, before any payment is spent."""
    from teachkit.services.circuit_breaker import synthesis_breaker
    from teachkit.services.ledger.stripe_ledger import get_ledger
    from teachkit.storage.local import get_storage

    providers = {
        capability: SynthesisProviderFactory.create_for(capability, app_settings)
        for capability in Capability
    }
    return GenerationCoordinator(
        db,
        ledger or get_ledger(),
        storage or get_storage(),
        providers[Capability.LESSON],
        providers[Capability.AUDIO],
        providers[Capability.IMAGE],
        breakers={capability: synthesis_breaker(capability.value) for capability in Capability},
    )
