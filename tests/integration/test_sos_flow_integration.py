"""
Integration tests for the complete SOS flow

Runs the service against the SQLite event store, and the drill entry
point end to end with a temporary configuration directory.
"""

import asyncio
import logging

import pytest
import yaml

from lifeline.main import main
from lifeline.models.emergency import ContactChannel, ContactStatus, EmergencyEventType
from lifeline.services.emergency.channels import (
    LoggingDialerChannel, LoggingTextChannel, StaticHospitalProvider, StaticLocationProvider
)
from lifeline.services.emergency.contacts import (
    CircleContact, EmergencyProfile, LocationCircle, build_emergency_contacts
)
from lifeline.services.emergency.emergency_service import EmergencyResponseService
from lifeline.services.emergency.event_store import SQLiteEventRepository


@pytest.fixture
def restore_root_logging():
    """The drill reconfigures root logging; put it back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def drill_config_dir(temp_dir):
    config_dir = temp_dir / "config"
    config_dir.mkdir()
    config = {
        "emergency": {
            "tick_interval_seconds": 0.01,
            "call_feedback_delay_seconds": 0,
        },
        "database": {"path": str(temp_dir / "drill.db")},
        "logging": {
            "level": "DEBUG",
            "file": str(temp_dir / "logs" / "lifeline.log"),
            "console": False,
        },
    }
    (config_dir / "config.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")
    return config_dir


class TestSOSFlowIntegration:
    """Profile and circle contacts through to a stored, resolved event"""

    @pytest.mark.asyncio
    async def test_full_flow_with_sqlite(self, database, location, hospital, fast_emergency_config):
        profile = EmergencyProfile("user-1", "Mom", "+15550100")
        circle = LocationCircle(
            id="home", name="Home", latitude=37.7, longitude=-122.4, radius=150.0,
            contacts=[
                CircleContact(id="cc-1", contact_name="Neighbor", contact_phone="no-number"),
                CircleContact(id="cc-2", contact_name="Roommate", contact_phone="+15550300"),
            ]
        )
        contacts = build_emergency_contacts(profile, circle)
        dialer = LoggingDialerChannel()
        texter = LoggingTextChannel()
        repository = SQLiteEventRepository(database)
        service = EmergencyResponseService(
            dialer, texter, repository, config=fast_emergency_config, user_id="user-1"
        )
        banner = []
        service.set_status_callback(banner.append)
        await service.start()

        outcome = await service.trigger_sos(
            contacts,
            location_provider=StaticLocationProvider(location),
            hospital_provider=StaticHospitalProvider(hospital)
        )
        await service.stop()

        assert [(a.contact.id, a.status, a.channel) for a in outcome.actions] == [
            ("profile-contact", ContactStatus.SUCCESS, ContactChannel.TEXT),
            ("cc-1", ContactStatus.TEXTING, ContactChannel.TEXT),
            ("cc-2", ContactStatus.SUCCESS, ContactChannel.TEXT),
        ]
        assert dialer.opened == ["+15550100", "+15550300"]
        assert texter.sent == [(["+15550100", "no-number", "+15550300"], outcome.message)]

        stored = await repository.get(outcome.event.id)
        assert stored.event_type == EmergencyEventType.PANIC_BUTTON
        assert stored.location == location
        assert stored.sms_content == outcome.message
        assert stored.sms_sent_to == ["+15550100", "no-number", "+15550300"]
        assert "Hospital Information:\nGen Hospital" in stored.sms_content

        await service.resolve_event(outcome.event.id)
        history = await service.get_event_history("user-1")
        assert len(history) == 1
        assert history[0].is_resolved()
        assert banner[-1] == "SOS complete: 2 of 3 contact(s) reached by phone"

    @pytest.mark.asyncio
    async def test_cancelled_flow_stores_nothing(self, database, contacts, fast_emergency_config):
        repository = SQLiteEventRepository(database)
        dialer = LoggingDialerChannel()
        service = EmergencyResponseService(
            dialer, LoggingTextChannel(), repository, config=fast_emergency_config
        )

        task = asyncio.create_task(service.trigger_sos(contacts, countdown_seconds=50))
        await asyncio.sleep(0.015)
        assert service.cancel_sos() is True

        outcome = await task
        assert outcome.cancelled
        assert dialer.opened == []
        assert await repository.list_events() == []
        assert database.get_stats()['emergency_events'] == 0


class TestDrillCommand:
    """The lifeline drill entry point"""

    def test_drill_runs_to_completion(self, drill_config_dir, temp_dir, capsys, restore_root_logging):
        exit_code = main([
            "--config-dir", str(drill_config_dir),
            "--contact", "Alice:+15550001",
            "--contact", "Bob:+15550002",
            "--lat", "37.7", "--lng", "-122.4",
            "--hospital", "Gen Hospital:+1555:A1",
            "--countdown", "1",
        ])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert "SOS activated" in output
        assert "Alice (+15550001): success via text" in output
        assert "Text sent to 2 recipient(s)" in output
        assert (temp_dir / "drill.db").exists()

    def test_drill_cancel_after(self, drill_config_dir, capsys, restore_root_logging):
        exit_code = main([
            "--config-dir", str(drill_config_dir),
            "--contact", "Alice:+15550001",
            "--countdown", "5",
            "--cancel-after", "0",
        ])

        output = capsys.readouterr().out
        assert exit_code == 0
        assert "SOS cancelled before activation" in output

    def test_drill_without_contacts_fails(self, drill_config_dir, capsys, restore_root_logging):
        exit_code = main(["--config-dir", str(drill_config_dir), "--countdown", "0"])

        assert exit_code == 1
        assert "No emergency contacts configured" in capsys.readouterr().err

    def test_malformed_contact_is_a_usage_error(self, drill_config_dir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config-dir", str(drill_config_dir), "--contact", "Alice"])

        assert exc_info.value.code == 2
        assert "NAME:PHONE" in capsys.readouterr().err
