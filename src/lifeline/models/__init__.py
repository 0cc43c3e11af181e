"""
Data models for Lifeline

Contains the data classes used by the emergency escalation workflow.
"""

from .emergency import (
    Contact, ContactAction, ContactChannel, ContactStatus,
    CountdownPhase, CountdownState, EmergencyEvent, EmergencyEventType,
    EscalationOutcome, EscalationReport, EscalationStatus, Hospital,
    InvalidStatusTransition, LifecycleEvent, Location
)

__all__ = [
    'Contact', 'ContactAction', 'ContactChannel', 'ContactStatus',
    'CountdownPhase', 'CountdownState', 'EmergencyEvent', 'EmergencyEventType',
    'EscalationOutcome', 'EscalationReport', 'EscalationStatus', 'Hospital',
    'InvalidStatusTransition', 'LifecycleEvent', 'Location'
]
