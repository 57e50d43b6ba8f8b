"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all PillPal tests.
Fixtures include an in-memory snapshot store, a controllable clock,
services wired to both, sample medications, and an API test client.
"""

import os
import sys
from datetime import datetime, timedelta
from typing import Generator, Dict, Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base
from api.schemas.medication import Medication, MedicationCreate, TaperingStep
from services.storage_service import SnapshotStore
from services.undo_service import UndoService
from services.medication_service import MedicationService
from services.adherence_service import AdherenceService
from actions.reminder_engine import NotificationBehaviorTracker, ReminderEngine
from tools.dose_classifier import MissedDoseDetector, SessionMissedDoseScan
from tools.interaction_checker import InteractionChecker, InteractionMonitor
from api import deps
from app import app


# Monday evening; 08:00 and 20:00 doses are both already due
FIXED_NOW = datetime(2024, 1, 1, 21, 0)


class FakeClock:
    """Callable clock that tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ==================== STORAGE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def store(session_factory) -> SnapshotStore:
    """Snapshot store backed by the in-memory database"""
    return SnapshotStore(session_factory)


# ==================== CLOCK & SERVICE FIXTURES ====================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture
def behavior_tracker(store) -> NotificationBehaviorTracker:
    return NotificationBehaviorTracker(store)


@pytest.fixture
def medication_service(store, clock, behavior_tracker) -> MedicationService:
    """Medication service with isolated storage and a controllable clock"""
    return MedicationService(
        store=store,
        undo_service=UndoService(clock=clock),
        behavior_tracker=behavior_tracker,
        clock=clock
    )


@pytest.fixture
def adherence_service() -> AdherenceService:
    return AdherenceService()


@pytest.fixture
def delivered() -> list:
    """Collects reminders handed to the delivery callable"""
    return []


@pytest.fixture
def reminder_engine(medication_service, behavior_tracker, delivered) -> ReminderEngine:
    return ReminderEngine(
        medication_service=medication_service,
        behavior_tracker=behavior_tracker,
        deliver=delivered.append
    )


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def sample_medication_data() -> Dict[str, Any]:
    """Sample data for a twice-daily medication"""
    return {
        "name": "Metformin",
        "dosage": "500mg",
        "frequency": "Twice daily",
        "food": "with_food",
        "times": ["08:00", "20:00"],
        "quantity": 30,
        "refill_threshold": 5
    }


@pytest.fixture
def make_medication() -> Callable[..., Medication]:
    """Factory for in-memory Medication records"""
    counter = {"n": 0}

    def _make(**overrides) -> Medication:
        counter["n"] += 1
        data = {
            "id": f"med-{counter['n']}",
            "name": "Metformin",
            "dosage": "500mg",
            "times": ["08:00", "20:00"],
        }
        data.update(overrides)
        return Medication(**data)

    return _make


@pytest.fixture
def tapering_medication(make_medication) -> Medication:
    """Prednisone taper starting on FIXED_NOW's date: 3, 2, 1 tablets"""
    return make_medication(
        name="Prednisone",
        dosage="5mg",
        times=[],
        tapering_schedule=[
            TaperingStep(day=1, tablets=3),
            TaperingStep(day=2, tablets=2),
            TaperingStep(day=3, tablets=1),
        ],
        start_date=FIXED_NOW.date()
    )


@pytest.fixture
def stored_medication(medication_service, sample_medication_data) -> Medication:
    """A medication persisted through the service"""
    return medication_service.add_medication(MedicationCreate(**sample_medication_data))


# ==================== MOCK FIXTURES ====================

@pytest.fixture
def mock_llm_service():
    """Mock LLM service for testing without API calls"""
    mock = MagicMock()
    mock.generate = AsyncMock(return_value="")
    mock.generate_json = AsyncMock(return_value={
        "has_interactions": False,
        "summary": "No significant interactions found.",
        "details": []
    })
    return mock


@pytest.fixture
def interaction_monitor(mock_llm_service) -> InteractionMonitor:
    return InteractionMonitor(InteractionChecker(mock_llm_service))


# ==================== API FIXTURES ====================

@pytest.fixture(scope="function")
def client(
    medication_service,
    adherence_service,
    reminder_engine,
    interaction_monitor,
    clock
) -> Generator[TestClient, None, None]:
    """
    FastAPI test client with services and clock overridden

    The lifespan is not entered, so no reminder loop or on-disk database
    is started.
    """
    session_scan = SessionMissedDoseScan(MissedDoseDetector())

    app.dependency_overrides[deps.get_medication_service] = lambda: medication_service
    app.dependency_overrides[deps.get_adherence_service] = lambda: adherence_service
    app.dependency_overrides[deps.get_reminder_engine] = lambda: reminder_engine
    app.dependency_overrides[deps.get_interaction_monitor] = lambda: interaction_monitor
    app.dependency_overrides[deps.get_session_scan] = lambda: session_scan
    app.dependency_overrides[deps.get_now] = lambda: clock()

    yield TestClient(app)

    app.dependency_overrides.clear()
