"""
Emergency Response Service

Main service that wires the SOS workflow to configuration and the
platform collaborators:
- SOS triggering with the configured countdown
- Cancellation during the grace period
- Status banner updates driven by lifecycle events
- Emergency event history and resolution
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from lifeline.core.config import ConfigurationManager
from lifeline.models.emergency import (
    Contact, ContactStatus, EmergencyEvent, EmergencyEventType,
    EscalationOutcome, LifecycleEvent
)
from .channels import DialerChannel, HospitalProvider, LocationProvider, TextChannel
from .event_store import EventRepository
from .lifecycle import LifecycleEmitter
from .orchestrator import EscalationOrchestrator


STATUS_ICONS = {
    ContactStatus.PENDING: '⏳',
    ContactStatus.CALLING: '📞',
    ContactStatus.TEXTING: '💬',
    ContactStatus.SUCCESS: '✅',
    ContactStatus.FAILED: '❌',
}


class EmergencyResponseService:
    """
    Main emergency response service that coordinates the SOS workflow
    """

    def __init__(
        self,
        dialer: DialerChannel,
        texter: TextChannel,
        repository: EventRepository,
        config: Dict = None,
        user_id: Optional[str] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.config = config or {}
        self.repository = repository
        self.emitter = LifecycleEmitter()

        self.orchestrator = EscalationOrchestrator(
            dialer=dialer,
            texter=texter,
            repository=repository,
            emitter=self.emitter,
            tick_interval=self.config.get('tick_interval_seconds', 1.0),
            feedback_delay=self.config.get('call_feedback_delay_seconds', 1.5),
            require_location_for_text=self.config.get('require_location_for_text', True),
            event_type=EmergencyEventType(self.config.get('event_type', 'manual')),
            user_id=user_id
        )
        self.countdown_seconds = self.config.get('countdown_seconds', 5)

        # Callback for the assistant status banner
        self.status_callback: Optional[Callable[[str], None]] = None

        self._running = False
        self._sos_count = 0
        self._last_outcome: Optional[EscalationOutcome] = None

    @classmethod
    def from_config(
        cls,
        config_manager: ConfigurationManager,
        dialer: DialerChannel,
        texter: TextChannel,
        repository: EventRepository,
        user_id: Optional[str] = None
    ) -> 'EmergencyResponseService':
        """Create the service from the emergency configuration section"""
        return cls(dialer, texter, repository, config_manager.get_emergency_settings(), user_id)

    async def start(self):
        """Start the emergency response service"""
        if self._running:
            return

        self._running = True
        self.emitter.subscribe_all(self._report_status)
        self.logger.info("Emergency Response Service started")

    async def stop(self):
        """Stop the emergency response service"""
        if not self._running:
            return

        if self.orchestrator.cancel():
            self.logger.warning("Armed SOS cancelled during service shutdown")

        self._running = False
        self.emitter.unsubscribe(self._report_status)
        self.logger.info("Emergency Response Service stopped")

    def set_status_callback(self, callback: Callable[[str], None]):
        """
        Set callback function for status banner text

        Args:
            callback: Function to call with each status line
        """
        self.status_callback = callback

    def subscribe(self, event: LifecycleEvent, listener) -> None:
        """Subscribe a UI or notification listener to lifecycle events"""
        self.emitter.subscribe(event, listener)

    async def trigger_sos(
        self,
        contacts: List[Contact],
        location_provider: Optional[LocationProvider] = None,
        hospital_provider: Optional[HospitalProvider] = None,
        countdown_seconds: Optional[int] = None
    ) -> EscalationOutcome:
        """
        Arm an SOS with the configured countdown and run it to completion

        Errors from the orchestrator propagate unchanged.
        """
        if countdown_seconds is None:
            countdown_seconds = self.countdown_seconds

        self._sos_count += 1
        self.logger.critical(f"SOS requested for {len(contacts)} contact(s)")
        outcome = await self.orchestrator.trigger(
            contacts,
            location_provider=location_provider,
            hospital_provider=hospital_provider,
            countdown_seconds=countdown_seconds
        )
        self._last_outcome = outcome
        return outcome

    def cancel_sos(self) -> bool:
        """Cancel an armed SOS during its countdown"""
        return self.orchestrator.cancel()

    async def get_event_history(self, user_id: Optional[str] = None) -> List[EmergencyEvent]:
        """Get stored emergency events, newest first"""
        return await self.repository.list_events(user_id)

    async def resolve_event(self, event_id: str, at: Optional[datetime] = None) -> Optional[EmergencyEvent]:
        """Mark an emergency event as resolved"""
        event = await self.repository.mark_resolved(event_id, at)
        if event is None:
            self.logger.warning(f"No emergency event found with ID {event_id}")
        return event

    def _report_status(self, event: LifecycleEvent, payload: Dict[str, Any]):
        """Translate lifecycle events into status banner text"""
        text = self._status_text(event, payload)
        if text is None:
            return

        self.logger.info(text)
        if self.status_callback:
            self.status_callback(text)

    def _status_text(self, event: LifecycleEvent, payload: Dict[str, Any]) -> Optional[str]:
        if event == LifecycleEvent.ARMED:
            return f"EMERGENCY SOS: activating in {payload['countdown_seconds']} seconds..."
        if event == LifecycleEvent.CANCELLED:
            return "SOS cancelled. No one was contacted."
        if event == LifecycleEvent.ACTIVATED:
            return "Emergency activated! Your contacts are being notified."
        if event == LifecycleEvent.CONTACT_UPDATED:
            action = payload['action']
            icon = STATUS_ICONS[action.status]
            return f"{icon} {action.contact.name}: {action.status.value} ({action.channel.value})"
        if event == LifecycleEvent.COMPLETED:
            outcome = payload['outcome']
            reached = outcome.report.count(ContactStatus.SUCCESS)
            return f"SOS complete: {reached} of {len(outcome.actions)} contact(s) reached by phone"
        return None

    def get_service_status(self) -> Dict[str, Any]:
        """Get emergency service status"""
        status = {
            'running': self._running,
            'sos_active': self.orchestrator.active,
            'sos_count': self._sos_count,
            'countdown_seconds': self.countdown_seconds,
            'contacts': [action.to_dict() for action in self.orchestrator.contact_actions]
        }

        if self._last_outcome is not None:
            status['last_outcome'] = self._last_outcome.status.value
        return status
