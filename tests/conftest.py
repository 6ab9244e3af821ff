"""
Shared fixtures. Required settings are seeded before any teachkit module is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_dummy")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("GEMINI_API_KEY", "gemini-test")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from teachkit.db.base import Base
from teachkit.models import audit_log, package, payment, user  # noqa: F401

from support import FakeLedger, MemoryStorage


@pytest.fixture
def engine(tmp_path):
    # File-backed so that several threads/sessions see the same database
    eng = create_engine(
        f"sqlite:///{tmp_path / 'teachkit.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def storage():
    return MemoryStorage()

