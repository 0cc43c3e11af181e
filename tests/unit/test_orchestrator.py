"""
Unit tests for the SOS escalation orchestrator
"""

import asyncio
from unittest.mock import patch

import pytest

from lifeline.models.emergency import (
    ContactChannel, ContactStatus, EmergencyEventType, EscalationStatus, LifecycleEvent
)
from lifeline.services.emergency.errors import (
    EscalationInProgressError, EventPersistenceError, NoEmergencyContactsError
)
from lifeline.services.emergency.event_store import InMemoryEventRepository
from lifeline.services.emergency.orchestrator import EscalationOrchestrator
from tests.mocks.emergency_mocks import (
    TEST_TICK_INTERVAL, FixedHospitalProvider, FixedLocationProvider,
    RecordingDialer, RecordingTexter
)


class FailingRepository(InMemoryEventRepository):
    async def save(self, event):
        raise RuntimeError("disk full")


async def start_trigger(orchestrator, contacts, **kwargs):
    """Start a trigger and let it reach the armed countdown"""
    task = asyncio.create_task(orchestrator.trigger(contacts, **kwargs))
    await asyncio.sleep(0)
    return task


class TestTriggerActivation:
    """Test a trigger that runs through to escalation"""

    @pytest.mark.asyncio
    async def test_activation_notifies_and_records(self, orchestrator, contacts, location,
                                                   hospital, dialer, texter, repository):
        outcome = await orchestrator.trigger(
            contacts,
            location_provider=FixedLocationProvider(location),
            hospital_provider=FixedHospitalProvider(hospital),
            countdown_seconds=2
        )

        assert outcome.status == EscalationStatus.ACTIVATED
        assert outcome.activated and not outcome.cancelled
        assert dialer.opened == ["+15550001", "+15550002", "+15550003"]
        assert len(texter.sent) == 1
        assert outcome.location == location
        assert outcome.hospital == hospital
        assert "https://maps.google.com/?q=37.7,-122.4" in outcome.message
        assert "Patient Card ID: A1" in outcome.message

        event = outcome.event
        assert repository.events == {event.id: event}
        assert event.user_id == "user-1"
        assert event.event_type == EmergencyEventType.MANUAL
        assert event.location == location
        assert event.sms_content == outcome.message
        assert event.sms_sent_to == ["+15550001", "+15550002", "+15550003"]
        assert event.resolved_at is None

    @pytest.mark.asyncio
    async def test_one_fails_one_succeeds(self, repository, texter, contacts, location):
        dialer = RecordingDialer(unreachable={"+15550001"})
        orchestrator = EscalationOrchestrator(
            dialer, texter, repository, tick_interval=TEST_TICK_INTERVAL, feedback_delay=0
        )

        outcome = await orchestrator.trigger(
            contacts[:2], location_provider=FixedLocationProvider(location), countdown_seconds=1
        )

        assert [(a.status, a.channel) for a in outcome.actions] == [
            (ContactStatus.TEXTING, ContactChannel.TEXT),
            (ContactStatus.SUCCESS, ContactChannel.TEXT),
        ]
        assert texter.sent[0][0] == ["+15550001", "+15550002"]

    @pytest.mark.asyncio
    async def test_location_is_read_on_activation(self, orchestrator, contacts, location):
        provider = FixedLocationProvider(location)

        task = await start_trigger(orchestrator, contacts, location_provider=provider,
                                   countdown_seconds=3)
        assert provider.calls == 0

        await task
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_lookup_failures_degrade_to_absent(self, orchestrator, contacts, texter):
        outcome = await orchestrator.trigger(
            contacts,
            location_provider=FixedLocationProvider(error=RuntimeError("gps off")),
            hospital_provider=FixedHospitalProvider(error=RuntimeError("offline")),
            countdown_seconds=1
        )

        assert outcome.location is None
        assert outcome.hospital is None
        assert "Location unavailable" in outcome.message
        assert texter.sent == []
        assert outcome.event.sms_content is None
        assert outcome.event.sms_sent_to == []
        assert outcome.event.location is None

    @pytest.mark.asyncio
    async def test_contact_actions_available_after_run(self, orchestrator, contacts):
        assert orchestrator.contact_actions == []

        await orchestrator.trigger(contacts, countdown_seconds=0)

        assert [a.contact.id for a in orchestrator.contact_actions] == ["c1", "c2", "c3"]
        assert orchestrator.active is False

    @pytest.mark.asyncio
    async def test_lifecycle_event_order(self, orchestrator, contacts, location, recorder):
        await orchestrator.trigger(
            contacts[:1], location_provider=FixedLocationProvider(location), countdown_seconds=2
        )

        assert recorder.names == [
            LifecycleEvent.ARMED,
            LifecycleEvent.TICK,
            LifecycleEvent.ACTIVATED,
            LifecycleEvent.CONTACT_UPDATED,
            LifecycleEvent.CONTACT_UPDATED,
            LifecycleEvent.CONTACT_UPDATED,
            LifecycleEvent.COMPLETED,
            LifecycleEvent.EVENT_RECORDED,
        ]
        assert recorder.payloads(LifecycleEvent.ARMED)[0]["countdown_seconds"] == 2
        assert recorder.payloads(LifecycleEvent.TICK) == [{"remaining": 1}]

    @pytest.mark.asyncio
    async def test_event_recorded_carries_stored_event(self, orchestrator, contacts, location,
                                                       repository, recorder):
        outcome = await orchestrator.trigger(
            contacts, location_provider=FixedLocationProvider(location), countdown_seconds=1
        )

        assert outcome.activated
        recorded = recorder.payloads(LifecycleEvent.EVENT_RECORDED)
        assert recorded == [{"emergency_event": outcome.event}]
        assert repository.events[outcome.event.id] == outcome.event

    @pytest.mark.asyncio
    async def test_cancel_after_activation_has_no_effect(self, orchestrator, contacts, emitter, dialer):
        results = []
        emitter.subscribe(
            LifecycleEvent.ACTIVATED,
            lambda event, payload: results.append(orchestrator.cancel())
        )

        outcome = await orchestrator.trigger(contacts, countdown_seconds=1)

        assert results == [False]
        assert outcome.activated
        assert len(dialer.opened) == 3


class TestTriggerCancellation:
    """Test cancellation during the countdown"""

    @pytest.mark.asyncio
    async def test_cancel_during_countdown(self, orchestrator, contacts, dialer, texter,
                                           repository, recorder):
        task = await start_trigger(orchestrator, contacts, countdown_seconds=5)

        assert orchestrator.active
        assert orchestrator.cancel() is True

        outcome = await task
        assert outcome.status == EscalationStatus.CANCELLED
        assert outcome.event is None
        assert outcome.actions == []
        assert dialer.checked == []
        assert texter.sent == []
        assert repository.events == {}
        assert LifecycleEvent.CANCELLED in recorder.names
        assert LifecycleEvent.ACTIVATED not in recorder.names
        assert orchestrator.active is False

    def test_cancel_when_nothing_armed(self, orchestrator):
        assert orchestrator.cancel() is False

    @pytest.mark.asyncio
    async def test_task_cancellation_stops_countdown(self, orchestrator, contacts, dialer):
        task = await start_trigger(orchestrator, contacts, countdown_seconds=1)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(TEST_TICK_INTERVAL * 3)
        assert dialer.checked == []
        assert orchestrator.active is False

    @pytest.mark.asyncio
    async def test_can_trigger_again_after_cancel(self, orchestrator, contacts, dialer):
        task = await start_trigger(orchestrator, contacts, countdown_seconds=5)
        orchestrator.cancel()
        await task

        outcome = await orchestrator.trigger(contacts, countdown_seconds=0)

        assert outcome.activated
        assert len(dialer.opened) == 3


class TestTriggerErrors:
    """Test rejected triggers and persistence failures"""

    @pytest.mark.asyncio
    async def test_empty_contacts_rejected_before_arming(self, orchestrator, recorder):
        with pytest.raises(NoEmergencyContactsError):
            await orchestrator.trigger([], countdown_seconds=0)

        assert recorder.events == []
        assert orchestrator.active is False

    @pytest.mark.asyncio
    async def test_concurrent_trigger_rejected(self, orchestrator, contacts):
        task = await start_trigger(orchestrator, contacts, countdown_seconds=5)

        with pytest.raises(EscalationInProgressError):
            await orchestrator.trigger(contacts, countdown_seconds=0)

        orchestrator.cancel()
        assert (await task).cancelled

    @pytest.mark.asyncio
    async def test_persistence_failure_keeps_outcome(self, dialer, texter, contacts, location):
        orchestrator = EscalationOrchestrator(
            dialer, texter, FailingRepository(), tick_interval=TEST_TICK_INTERVAL, feedback_delay=0
        )

        with pytest.raises(EventPersistenceError) as exc_info:
            await orchestrator.trigger(
                contacts, location_provider=FixedLocationProvider(location), countdown_seconds=0
            )

        outcome = exc_info.value.outcome
        assert outcome.activated
        assert len(outcome.actions) == 3
        assert len(texter.sent) == 1
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert orchestrator.active is False

    @pytest.mark.asyncio
    async def test_configured_event_type_is_recorded(self, dialer, repository, contacts):
        orchestrator = EscalationOrchestrator(
            dialer, RecordingTexter(), repository,
            tick_interval=TEST_TICK_INTERVAL, feedback_delay=0,
            event_type=EmergencyEventType.PANIC_BUTTON
        )

        outcome = await orchestrator.trigger(contacts, countdown_seconds=0)

        assert outcome.event.event_type == EmergencyEventType.PANIC_BUTTON

    def test_structured_log_sits_under_service_hierarchy(self, dialer, texter, repository):
        with patch("lifeline.services.emergency.orchestrator.get_structured_logger") as factory:
            EscalationOrchestrator(dialer, texter, repository)

        factory.assert_called_once_with("lifeline.services.emergency.orchestrator")
