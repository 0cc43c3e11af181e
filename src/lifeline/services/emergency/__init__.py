"""
Emergency Response Service Module

Provides the personal SOS workflow including:
- Cancellable countdown before escalation
- Sequential contact calling and a batch text alert
- Alert composition with location and hospital details
- Emergency event recording and resolution
"""

from .emergency_service import EmergencyResponseService
from .orchestrator import EscalationOrchestrator
from .countdown import CountdownController
from .contact_escalator import ContactEscalator
from .message_composer import MessageComposer, compose_message
from .contacts import build_emergency_contacts
from .errors import (
    EmergencyError, NoEmergencyContactsError, EscalationInProgressError,
    CountdownError, EventPersistenceError
)

__all__ = [
    'EmergencyResponseService',
    'EscalationOrchestrator',
    'CountdownController',
    'ContactEscalator',
    'MessageComposer',
    'compose_message',
    'build_emergency_contacts',
    'EmergencyError',
    'NoEmergencyContactsError',
    'EscalationInProgressError',
    'CountdownError',
    'EventPersistenceError'
]
