"""
SOS Escalation Orchestrator

Sequences the full SOS lifecycle:
- Arm the countdown and wait for activation or cancellation
- Snapshot location and primary hospital, compose the alert
- Notify contacts through the contact escalator
- Hand the resulting EmergencyEvent to the event repository
"""

import asyncio
import logging
import uuid
from typing import Iterable, List, Optional

from lifeline.core.logging import LogContext, get_structured_logger, log_async_function_call
from lifeline.models.emergency import (
    Contact, ContactAction, CountdownPhase, EmergencyEvent, EmergencyEventType,
    EscalationOutcome, EscalationStatus, Hospital, LifecycleEvent, Location
)
from .channels import DialerChannel, HospitalProvider, LocationProvider, TextChannel
from .contact_escalator import ContactEscalator, DEFAULT_CALL_FEEDBACK_DELAY
from .countdown import CountdownController
from .errors import EscalationInProgressError, EventPersistenceError, NoEmergencyContactsError
from .event_store import EventRepository
from .lifecycle import LifecycleEmitter
from .message_composer import MessageComposer


logger = logging.getLogger(__name__)

DEFAULT_COUNTDOWN_SECONDS = 5


class EscalationOrchestrator:
    """
    Runs one SOS at a time from arming to the stored emergency event.

    A second trigger while one is armed or escalating is rejected with
    EscalationInProgressError. Once the countdown activates, the run can
    no longer be cancelled and always completes both notification phases
    before the event is persisted.
    """

    def __init__(
        self,
        dialer: DialerChannel,
        texter: TextChannel,
        repository: EventRepository,
        composer: Optional[MessageComposer] = None,
        emitter: Optional[LifecycleEmitter] = None,
        tick_interval: float = 1.0,
        feedback_delay: float = DEFAULT_CALL_FEEDBACK_DELAY,
        require_location_for_text: bool = True,
        event_type: EmergencyEventType = EmergencyEventType.MANUAL,
        user_id: Optional[str] = None
    ):
        self.logger = logger
        self.structured_logger = get_structured_logger(__name__)
        self.dialer = dialer
        self.texter = texter
        self.repository = repository
        self.composer = composer or MessageComposer()
        self.emitter = emitter or LifecycleEmitter()
        self.tick_interval = tick_interval
        self.feedback_delay = feedback_delay
        self.require_location_for_text = require_location_for_text
        self.event_type = event_type
        self.user_id = user_id

        self._active = False
        self._countdown: Optional[CountdownController] = None
        self._escalator: Optional[ContactEscalator] = None

    @property
    def active(self) -> bool:
        """True while a trigger is armed or escalating"""
        return self._active

    @property
    def contact_actions(self) -> List[ContactAction]:
        """Live per-contact status of the current escalation"""
        if self._escalator is None:
            return []
        return self._escalator.actions

    async def trigger(
        self,
        contacts: Iterable[Contact],
        location_provider: Optional[LocationProvider] = None,
        hospital_provider: Optional[HospitalProvider] = None,
        countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS
    ) -> EscalationOutcome:
        """
        Arm an SOS and run it to its terminal outcome

        Args:
            contacts: Contacts in priority order
            location_provider: Best-effort location lookup used on activation
            hospital_provider: Best-effort primary hospital lookup used on activation
            countdown_seconds: Grace period during which cancel() is possible

        Returns:
            EscalationOutcome, cancelled or activated

        Raises:
            NoEmergencyContactsError: no contacts were supplied
            EscalationInProgressError: another SOS is armed or escalating
            EventPersistenceError: contacts were notified but the event was not stored
        """
        if self._active:
            raise EscalationInProgressError("An SOS is already in progress")

        contacts = list(contacts)
        if not contacts:
            raise NoEmergencyContactsError("No emergency contacts configured")

        self._active = True
        self._escalator = None
        run_id = str(uuid.uuid4())
        try:
            with LogContext(self.structured_logger, run_id=run_id, contacts=len(contacts)) as log:
                countdown = CountdownController(
                    tick_interval=self.tick_interval,
                    on_tick=lambda remaining: self.emitter.emit(LifecycleEvent.TICK, remaining=remaining),
                    on_activated=lambda: self.emitter.emit(LifecycleEvent.ACTIVATED, run_id=run_id),
                    on_cancelled=lambda: self.emitter.emit(LifecycleEvent.CANCELLED, run_id=run_id)
                )
                self._countdown = countdown
                countdown.arm(countdown_seconds)
                log.info("sos_armed", countdown_seconds=countdown_seconds)
                self.emitter.emit(
                    LifecycleEvent.ARMED,
                    run_id=run_id,
                    countdown_seconds=countdown_seconds,
                    contacts=list(contacts)
                )

                try:
                    phase = await countdown.wait()
                except asyncio.CancelledError:
                    countdown.cancel()
                    raise

                if phase == CountdownPhase.CANCELLED:
                    log.info("sos_cancelled")
                    return EscalationOutcome(status=EscalationStatus.CANCELLED)

                log.warning("sos_activated")
                return await self._escalate(contacts, location_provider, hospital_provider, log)
        finally:
            self._active = False
            self._countdown = None

    def cancel(self) -> bool:
        """
        Cancel the armed countdown

        Returns:
            True if the SOS was cancelled; False when nothing is armed or
            escalation has already started
        """
        if self._countdown is None:
            return False
        return self._countdown.cancel()

    async def _escalate(
        self,
        contacts: List[Contact],
        location_provider: Optional[LocationProvider],
        hospital_provider: Optional[HospitalProvider],
        log
    ) -> EscalationOutcome:
        """Notify contacts and record the emergency event"""
        location = await self._snapshot_location(location_provider)
        hospital = await self._snapshot_hospital(hospital_provider)
        message = self.composer.compose(location, hospital)

        escalator = ContactEscalator(
            dialer=self.dialer,
            texter=self.texter,
            feedback_delay=self.feedback_delay,
            require_location_for_text=self.require_location_for_text,
            on_update=lambda index, action: self.emitter.emit(
                LifecycleEvent.CONTACT_UPDATED, index=index, action=action
            )
        )
        self._escalator = escalator
        report = await escalator.run(contacts, message, has_location=location is not None)

        event = EmergencyEvent(
            user_id=self.user_id,
            event_type=self.event_type,
            location=location,
            sms_content=message if report.text_attempted else None,
            sms_sent_to=list(report.text_recipients)
        )
        outcome = EscalationOutcome(
            status=EscalationStatus.ACTIVATED,
            actions=escalator.actions,
            report=report,
            event=event,
            location=location,
            hospital=hospital,
            message=message
        )
        log.info("sos_completed", text_sent=report.text_sent, event_id=event.id)
        self.emitter.emit(LifecycleEvent.COMPLETED, outcome=outcome)

        try:
            await self.repository.save(event)
        except Exception as e:
            log.error("sos_event_not_stored", event_id=event.id, error=str(e))
            raise EventPersistenceError(f"Failed to store emergency event {event.id}: {e}", outcome) from e

        self.emitter.emit(LifecycleEvent.EVENT_RECORDED, emergency_event=event)
        return outcome

    @log_async_function_call(logger)
    async def _snapshot_location(self, provider: Optional[LocationProvider]) -> Optional[Location]:
        if provider is None:
            return None
        try:
            return await provider.current_location()
        except Exception as e:
            self.logger.warning(f"Location unavailable for SOS: {e}")
            return None

    @log_async_function_call(logger)
    async def _snapshot_hospital(self, provider: Optional[HospitalProvider]) -> Optional[Hospital]:
        if provider is None:
            return None
        try:
            return await provider.primary_hospital()
        except Exception as e:
            self.logger.warning(f"Primary hospital unavailable for SOS: {e}")
            return None
