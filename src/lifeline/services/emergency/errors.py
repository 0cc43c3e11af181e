"""
Emergency workflow exceptions
"""


class EmergencyError(Exception):
    """Base class for emergency workflow errors"""
    pass


class NoEmergencyContactsError(EmergencyError):
    """Raised when an SOS is triggered without any contacts configured"""
    pass


class EscalationInProgressError(EmergencyError):
    """Raised when an SOS is triggered while another one is armed or escalating"""
    pass


class CountdownError(EmergencyError):
    """Raised for invalid countdown operations"""
    pass


class EventPersistenceError(EmergencyError):
    """
    Raised when the emergency event could not be stored.

    Contacts have already been notified when this is raised; the completed
    outcome is attached so callers can still display it.
    """

    def __init__(self, message: str, outcome=None):
        super().__init__(message)
        self.outcome = outcome
