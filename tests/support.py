"""
Test doubles and row builders shared by the test modules.
"""
import os
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from teachkit.db.base import Base
from teachkit.models import audit_log  # noqa: F401
from teachkit.models.package import Package
from teachkit.models.payment import Payment
from teachkit.models.user import User
from teachkit.services.ledger.base import (
    IntentNotFound,
    LedgerEvent,
    LedgerIntent,
    PaymentLedger,
    WebhookError,
)
from teachkit.services.synthesis.base import (
    Capability,
    ContentSynthesisProvider,
    LessonContent,
    Question,
    Slide,
    SynthesisError,
)
from teachkit.storage.base import Storage, validate_filename

VALID_SIGNATURE = "t=1,v1=valid"


def make_lesson() -> LessonContent:
    return LessonContent(
        slides=[
            Slide(title="Introduction to World War II", content=["It began in 1939.", "It ended in 1945."]),
            Slide(title="Key Events", content=["Invasion of Poland", "D-Day landings"]),
        ],
        script="Welcome to today's lesson on **World War II**. It reshaped the world.",
        questions=[
            Question(
                question="When did the war begin?",
                type="multiple-choice",
                correct_answer="1939",
                options=["1914", "1939", "1945", "1950"],
            ),
            Question(question="Name one major event.", type="short-answer", correct_answer="D-Day"),
            Question(question="Discuss the causes of the war.", type="essay", correct_answer="Open answer."),
        ],
    )


class FakeProvider(ContentSynthesisProvider):
    """Synthesis double; set ``fail`` to a set of capabilities that should raise."""

    name = "fake"

    def __init__(self, fail: set | None = None) -> None:
        super().__init__({})
        self.fail = set(fail or ())
        self.calls: dict[Capability, int] = {c: 0 for c in Capability}
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return True

    def capabilities(self) -> frozenset:
        return frozenset(Capability)

    def _hit(self, capability: Capability) -> None:
        with self._lock:
            self.calls[capability] += 1
        if capability in self.fail:
            raise SynthesisError(f"{capability.value} backend down", detail={"http_status": 400})

    def generate_lesson(self, topic: str) -> LessonContent:
        self._hit(Capability.LESSON)
        return make_lesson()

    def synthesize_audio(self, script: str) -> bytes:
        self._hit(Capability.AUDIO)
        return b"ID3-fake-mp3"

    def generate_image(self, prompt: str) -> bytes:
        self._hit(Capability.IMAGE)
        return b"\x89PNG-fake"


class FakeLedger(PaymentLedger):
    def __init__(self) -> None:
        self.intents: dict[str, LedgerIntent] = {}
        self.customers: dict[str, str] = {}
        self.next_event: LedgerEvent | None = None

    def add_intent(self, intent_id: str, customer: str, amount: int = 100, currency: str = "gbp", status: str = "succeeded") -> LedgerIntent:
        intent = LedgerIntent(id=intent_id, status=status, amount=amount, currency=currency, customer=customer)
        self.intents[intent_id] = intent
        return intent

    def ensure_customer(self, email: str, name: str | None = None) -> str:
        for customer_id, known in self.customers.items():
            if known == email:
                return customer_id
        customer_id = f"cus_{uuid4().hex[:10]}"
        self.customers[customer_id] = email
        return customer_id

    def customer_exists(self, customer_id: str) -> bool:
        return customer_id in self.customers

    def customer_email(self, customer_id: str) -> str | None:
        return self.customers.get(customer_id)

    def create_intent(self, amount, currency, customer, metadata=None) -> LedgerIntent:
        intent_id = f"pi_{uuid4().hex[:12]}"
        intent = LedgerIntent(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            customer=customer,
            client_secret=f"{intent_id}_secret",
            metadata=dict(metadata or {}),
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id: str) -> LedgerIntent:
        if intent_id not in self.intents:
            raise IntentNotFound(intent_id)
        return self.intents[intent_id]

    def parse_webhook(self, payload: bytes, signature: str | None) -> LedgerEvent:
        if signature != VALID_SIGNATURE or self.next_event is None:
            raise WebhookError("Invalid signature")
        return self.next_event


class MemoryStorage(Storage):
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def save(self, filename: str, content: bytes) -> str:
        validate_filename(filename)
        with self._lock:
            self.blobs[filename] = content
        return filename

    def read(self, filename: str) -> bytes:
        validate_filename(filename)
        if filename not in self.blobs:
            raise FileNotFoundError(filename)
        return self.blobs[filename]

    def exists(self, filename: str) -> bool:
        return filename in self.blobs


def add_user(db, email: str, customer: str | None = None) -> User:
    user = User(email=email, stripe_customer_id=customer)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_payment(db, user: User, intent_id: str, amount: int = 100, currency: str = "gbp", status: str = "pending") -> Payment:
    payment = Payment(
        user_id=user.id,
        stripe_payment_intent_id=intent_id,
        stripe_customer_id=user.stripe_customer_id or "cus_none",
        amount=amount,
        currency=currency,
        status=status,
        topic="World War II",
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def add_package(db, user: User, generation_id: str, created_at: datetime | None = None, topic: str = "Topic") -> Package:
    pkg = Package(
        user_id=user.id,
        topic=topic,
        file_id=generation_id,
        files={
            "presentation": f"{generation_id}.pptx",
            "audio": f"{generation_id}.mp3",
            "worksheet": f"{generation_id}_worksheet.docx",
            "answerSheet": f"{generation_id}_answers.pdf",
            "images": [f"{generation_id}_image_1.png"],
        },
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(pkg)
    db.commit()
    db.refresh(pkg)
    return pkg


def minutes_ago(n: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=n)


class DatabaseTestCase(unittest.TestCase):
    """TestCase with a fresh file-backed SQLite database, a fake ledger and in-memory storage."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = create_engine(
            f"sqlite:///{os.path.join(self._tmp.name, 'teachkit.db')}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=self.engine)
        self.session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)
        self.db = self.session_factory()
        self.ledger = FakeLedger()
        self.storage = MemoryStorage()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()
        self._tmp.cleanup()
