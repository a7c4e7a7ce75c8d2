from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from grievance.core import accounts
from grievance.core.classifier import Classifier
from grievance.core.db import Base, init_db
from grievance.core.errors import CollaboratorError
from grievance.core.lifecycle import TicketLifecycle
from grievance.schemas.classification import Classification


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class StubClassifier(Classifier):
    """Returns a fixed classification and remembers what it was asked."""
    name = "stub"

    def __init__(self, **fields):
        base = {
            "category": "it",
            "sub_category": "network",
            "department": "it",
            "urgency": "high",
            "urgency_score": 0.8,
            "summary": "WiFi outage",
            "suggested_action": "Dispatch network team",
            "keywords": ["wifi", "library"],
            "sentiment": "frustrated",
            "confidence": 0.9,
        }
        base.update(fields)
        self.result = Classification(**base)
        self.calls = []

    def classify(self, text, location="", timestamp=None):
        self.calls.append((text, location, timestamp))
        return self.result


class FailingClassifier(Classifier):
    name = "failing"

    def __init__(self, error: Exception = None):
        self.error = error or CollaboratorError("upstream timed out")

    def classify(self, text, location="", timestamp=None):
        raise self.error


@pytest.fixture(scope="function")
def engine(tmp_path):
    # Setup a file-backed SQLite database so several connections can share it
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test_grievance.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    yield engine
    # Drop the tables after the test
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def student(db_session):
    return accounts.signup(db_session, "asha@campus.edu", "s3cret-pass", "Asha Rao", hostel_block="C")


@pytest.fixture
def stub_classifier():
    return StubClassifier()


@pytest.fixture
def lifecycle(db_session, stub_classifier, clock):
    return TicketLifecycle(db_session, stub_classifier, clock=clock, enforce_graph=True)
