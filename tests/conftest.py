"""
Global pytest configuration and fixtures for Lifeline testing.
"""
import tempfile
from pathlib import Path

import pytest

from lifeline.core.database import DatabaseManager
from lifeline.models.emergency import Contact, Hospital, Location
from lifeline.services.emergency.event_store import InMemoryEventRepository
from lifeline.services.emergency.lifecycle import LifecycleEmitter
from lifeline.services.emergency.orchestrator import EscalationOrchestrator
from tests.mocks.emergency_mocks import (
    TEST_TICK_INTERVAL, EventRecorder, RecordingDialer, RecordingTexter
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def contacts():
    """Three contacts in priority order."""
    return [
        Contact(id="c1", name="Alice", phone="+15550001", relationship="Sister"),
        Contact(id="c2", name="Bob", phone="+15550002"),
        Contact(id="c3", name="Carol", phone="+15550003"),
    ]


@pytest.fixture
def location():
    return Location(lat=37.7, lng=-122.4)


@pytest.fixture
def hospital():
    return Hospital(name="Gen Hospital", phone="+1555", patient_id="A1")


@pytest.fixture
def dialer():
    return RecordingDialer()


@pytest.fixture
def texter():
    return RecordingTexter()


@pytest.fixture
def repository():
    return InMemoryEventRepository()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def emitter(recorder):
    emitter = LifecycleEmitter()
    emitter.subscribe_all(recorder)
    return emitter


@pytest.fixture
def orchestrator(dialer, texter, repository, emitter):
    """Orchestrator with fast ticks and no call feedback delay."""
    return EscalationOrchestrator(
        dialer=dialer,
        texter=texter,
        repository=repository,
        emitter=emitter,
        tick_interval=TEST_TICK_INTERVAL,
        feedback_delay=0,
        user_id="user-1"
    )


@pytest.fixture
def database(temp_dir):
    """SQLite database with the emergency schema applied."""
    db = DatabaseManager(str(temp_dir / "test.db"))
    yield db
    db.close()


@pytest.fixture
def fast_emergency_config():
    """Emergency settings suitable for tests."""
    return {
        "countdown_seconds": 2,
        "tick_interval_seconds": TEST_TICK_INTERVAL,
        "call_feedback_delay_seconds": 0,
        "require_location_for_text": True,
        "event_type": "panic_button"
    }
