"""
Emergency data models for Lifeline

Defines the contact, status and event structures used by the SOS
escalation workflow.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid


class ContactChannel(Enum):
    """Notification channel used for a contact"""
    CALL = "call"
    TEXT = "text"


class ContactStatus(Enum):
    """Per-contact notification status"""
    PENDING = "pending"
    CALLING = "calling"
    TEXTING = "texting"
    SUCCESS = "success"
    FAILED = "failed"


class CountdownPhase(Enum):
    """Countdown controller states"""
    IDLE = "idle"
    ARMED = "armed"
    ACTIVATED = "activated"
    CANCELLED = "cancelled"


class EmergencyEventType(Enum):
    """How an emergency was raised"""
    PANIC_BUTTON = "panic_button"
    DETECTED_PATTERN = "detected_pattern"
    MANUAL = "manual"


class EscalationStatus(Enum):
    """Terminal outcome of a trigger"""
    CANCELLED = "cancelled"
    ACTIVATED = "activated"


class LifecycleEvent(Enum):
    """Events published by the escalation orchestrator"""
    ARMED = "armed"
    TICK = "tick"
    CANCELLED = "cancelled"
    ACTIVATED = "activated"
    CONTACT_UPDATED = "contact_updated"
    COMPLETED = "completed"
    EVENT_RECORDED = "event_recorded"


# Forward-only moves; a channel switch that keeps the status is handled separately
STATUS_TRANSITIONS = {
    ContactStatus.PENDING: {ContactStatus.CALLING},
    ContactStatus.CALLING: {ContactStatus.SUCCESS, ContactStatus.FAILED},
    ContactStatus.FAILED: {ContactStatus.TEXTING},
    ContactStatus.TEXTING: {ContactStatus.SUCCESS, ContactStatus.FAILED},
    ContactStatus.SUCCESS: set(),
}


class InvalidStatusTransition(Exception):
    """Raised when a contact status would skip or regress"""

    def __init__(self, current: ContactStatus, requested: ContactStatus,
                 channel: Optional[ContactChannel] = None):
        self.current = current
        self.requested = requested
        self.channel = channel
        super().__init__(f"Cannot move contact status from {current.value} to {requested.value}")


@dataclass(frozen=True)
class Contact:
    """Emergency contact, immutable once escalation starts"""
    id: str
    name: str
    phone: str
    relationship: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'relationship': self.relationship,
        }


@dataclass(frozen=True)
class Location:
    """Geographic position snapshot"""
    lat: float
    lng: float
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'lat': self.lat, 'lng': self.lng}
        if self.address:
            data['address'] = self.address
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        return cls(lat=data['lat'], lng=data['lng'], address=data.get('address'))


@dataclass(frozen=True)
class Hospital:
    """The user's designated primary hospital"""
    name: str
    phone: str
    patient_id: Optional[str] = None
    address: Optional[str] = None


@dataclass
class ContactAction:
    """
    Status record for one contact during one escalation run.

    Status only moves forward through STATUS_TRANSITIONS. Changing the
    channel while keeping the current status is allowed, which is how a
    contact that was already reached by phone is also marked as texted.
    """
    contact: Contact
    channel: ContactChannel = ContactChannel.CALL
    status: ContactStatus = ContactStatus.PENDING

    def can_advance(self, status: ContactStatus, channel: Optional[ContactChannel] = None) -> bool:
        """Check whether a move to status (and optionally channel) is allowed"""
        channel = channel or self.channel
        if status == self.status:
            return channel != self.channel
        if status not in STATUS_TRANSITIONS[self.status]:
            return False
        if status == ContactStatus.TEXTING:
            return channel == ContactChannel.TEXT
        return True

    def advance(self, status: ContactStatus, channel: Optional[ContactChannel] = None) -> None:
        """
        Move to a new status and optionally a new channel

        Raises:
            InvalidStatusTransition: if the move would skip or regress
        """
        if not self.can_advance(status, channel):
            raise InvalidStatusTransition(self.status, status, channel)
        self.status = status
        if channel is not None:
            self.channel = channel

    def snapshot(self) -> 'ContactAction':
        """Independent copy for display"""
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'contact': self.contact.to_dict(),
            'channel': self.channel.value,
            'status': self.status.value,
        }


@dataclass
class CountdownState:
    """Countdown progress owned by the countdown controller"""
    remaining: int = 0
    armed: bool = False


@dataclass
class EmergencyEvent:
    """Record of one completed SOS escalation"""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    event_type: EmergencyEventType = EmergencyEventType.MANUAL
    location: Optional[Location] = None
    sms_content: Optional[str] = None
    sms_sent_to: List[str] = field(default_factory=list)
    ai_analysis: Optional[Dict[str, Any]] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def mark_resolved(self, at: Optional[datetime] = None) -> None:
        """Set the resolution time; the only mutation allowed after creation"""
        if self.resolved_at is not None:
            raise ValueError(f"Emergency event {self.id} is already resolved")
        self.resolved_at = at or datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'event_type': self.event_type.value,
            'location': self.location.to_dict() if self.location else None,
            'sms_content': self.sms_content,
            'sms_sent_to': list(self.sms_sent_to),
            'ai_analysis': self.ai_analysis,
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmergencyEvent':
        """Create event from dictionary"""
        location = data.get('location')
        return cls(
            id=data.get('id') or str(uuid.uuid4()),
            user_id=data.get('user_id'),
            event_type=EmergencyEventType(data.get('event_type', 'manual')),
            location=Location.from_dict(location) if location else None,
            sms_content=data.get('sms_content'),
            sms_sent_to=list(data.get('sms_sent_to') or []),
            ai_analysis=data.get('ai_analysis'),
            resolved_at=_parse_timestamp(data.get('resolved_at')),
            created_at=_parse_timestamp(data.get('created_at')) or datetime.now(timezone.utc),
        )


@dataclass
class EscalationReport:
    """Result of driving a contact list through the call and text phases"""
    actions: List[ContactAction] = field(default_factory=list)
    text_attempted: bool = False
    text_sent: bool = False
    text_recipients: List[str] = field(default_factory=list)

    def count(self, status: ContactStatus) -> int:
        return sum(1 for action in self.actions if action.status == status)


@dataclass
class EscalationOutcome:
    """Terminal outcome of one trigger"""
    status: EscalationStatus
    actions: List[ContactAction] = field(default_factory=list)
    report: Optional[EscalationReport] = None
    event: Optional[EmergencyEvent] = None
    location: Optional[Location] = None
    hospital: Optional[Hospital] = None
    message: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.status == EscalationStatus.CANCELLED

    @property
    def activated(self) -> bool:
        return self.status == EscalationStatus.ACTIVATED


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
