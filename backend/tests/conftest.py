"""
Pytest configuration and shared fixtures

The environment is set before anything from proctorhub is imported: a SQLite
database in a temporary directory, inline Celery tasks, no analytics caching
and an unreachable Redis so cache calls degrade to misses.
"""
import os
import shutil
import tempfile
from datetime import datetime, timedelta

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="proctorhub-tests-")

os.environ["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(_TMP_DIR, 'proctoring.db')}"
os.environ["RECORDINGS_DIR"] = os.path.join(_TMP_DIR, "recordings")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["ANALYTICS_CACHE_TTL"] = "0"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"


class FakeClock:
    """Deterministic replacement for get_utc_now"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


ALL_CHECKS = {"camera": True, "microphone": True, "screen": True, "browser": True}


@pytest.fixture(autouse=True)
def database():
    from proctorhub.core.database import Base, engine
    import proctorhub.models  # noqa: F401

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def db(database):
    from proctorhub.core.database import SessionLocal

    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, 0))


@pytest.fixture
def service(db, clock):
    from proctorhub.services.proctoring_service import ProctoringService

    return ProctoringService(db, clock=clock)


@pytest.fixture
def reporting(db):
    from proctorhub.services.reporting_service import ReportingService

    return ReportingService(db)


@pytest.fixture
def start_session(service):
    """Initialize and start a session, returning its id"""
    from proctorhub.schemas.proctoring import ProctorConfig, SystemCheck

    counter = {"n": 0}

    def _start(assignment_id="assignment-1", student_id=None, **config):
        counter["n"] += 1
        record = service.initialize(
            assignment_id=assignment_id,
            student_id=student_id or f"student-{counter['n']}",
            config=ProctorConfig(**config),
        )
        service.start(record.id, SystemCheck(**ALL_CHECKS))
        return record.id

    return _start


@pytest.fixture
def client(database):
    from fastapi.testclient import TestClient
    from proctorhub.main import app

    return TestClient(app)


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TMP_DIR, ignore_errors=True)
