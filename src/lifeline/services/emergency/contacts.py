"""
Emergency contact assembly

Builds the ordered contact list for an SOS from the user's profile
contact and the contacts attached to the active location circle.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from lifeline.models.emergency import Contact


PROFILE_CONTACT_ID = "profile-contact"
PROFILE_RELATIONSHIP = "Emergency Contact"
CIRCLE_RELATIONSHIP = "Location Circle Contact"


@dataclass
class EmergencyProfile:
    """The profile fields relevant to SOS"""
    user_id: str
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


@dataclass
class CircleContact:
    """Contact attached to a location circle"""
    id: str
    contact_name: str
    contact_phone: str
    contact_email: Optional[str] = None


@dataclass
class LocationCircle:
    """Geofenced safe zone with its attached contacts"""
    id: str
    name: str
    latitude: float
    longitude: float
    radius: float
    is_active: bool = True
    contacts: List[CircleContact] = field(default_factory=list)


def build_emergency_contacts(
    profile: Optional[EmergencyProfile],
    active_circle: Optional[LocationCircle] = None
) -> List[Contact]:
    """
    Assemble SOS contacts in priority order

    The profile's emergency contact comes first when both name and phone
    are set, followed by the active circle's contacts in stored order.
    """
    contacts: List[Contact] = []

    if profile and profile.emergency_contact_name and profile.emergency_contact_phone:
        contacts.append(Contact(
            id=PROFILE_CONTACT_ID,
            name=profile.emergency_contact_name,
            phone=profile.emergency_contact_phone,
            relationship=PROFILE_RELATIONSHIP
        ))

    if active_circle:
        for circle_contact in active_circle.contacts:
            contacts.append(Contact(
                id=circle_contact.id,
                name=circle_contact.contact_name,
                phone=circle_contact.contact_phone,
                relationship=CIRCLE_RELATIONSHIP
            ))

    return contacts
