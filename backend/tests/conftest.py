import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, delete

from app import app
from db import create_db_and_tables, engine, get_session
from models import StorageSlot
from schemas import LogRecord
from storage import LogStore


@pytest.fixture(scope="function")
def test_session():
    """Create a test database session."""
    create_db_and_tables()
    with Session(engine) as session:
        session.exec(delete(StorageSlot))
        session.commit()
        yield session
        # Clean up all test data after test
        session.rollback()
        session.exec(delete(StorageSlot))
        session.commit()


@pytest.fixture(scope="function")
def store(test_session):
    return LogStore(test_session)


@pytest.fixture(scope="function")
def client(test_session):
    """Create a test client with dependency override."""

    def get_test_session():
        yield test_session

    app.dependency_overrides[get_session] = get_test_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_record():
    """Build a LogRecord with sensible defaults; keyword arguments override them."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "id": f"rec-{counter['n']}",
            "timestamp": "2024-01-15T09:00:00+00:00",
            "date": "2024-01-15",
            "time_of_day": "morning",
            "source": "Vape",
            "unit_type": "puffs",
            "amount": 10,
            "estimated_mg": 3.0,
        }
        fields.update(overrides)
        return LogRecord(**fields)

    return _make
