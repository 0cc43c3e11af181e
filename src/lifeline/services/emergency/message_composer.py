"""
Emergency alert message composition

Builds the single alert text sent to every contact from the location
and primary hospital snapshots.
"""

from decimal import Decimal
from typing import Optional

from lifeline.models.emergency import Hospital, Location


MAPS_LINK_FORMAT = "https://maps.google.com/?q={lat},{lng}"
LOCATION_UNAVAILABLE = "Location unavailable"

ALERT_PREAMBLE = "🚨 EMERGENCY ALERT 🚨\n\nI need help immediately."
ALERT_CLOSING = "Please call or come to my location."


def format_coordinate(value: float) -> str:
    """
    Render a coordinate the way the maps link has always carried it:
    shortest round-trip digits, positional notation down to 1e-6 and no
    trailing '.0' on whole numbers.
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))

    text = repr(value)
    if abs(value) < 1e-6:
        mantissa, exponent = text.split('e')
        return f"{mantissa}e{int(exponent)}"

    text = format(Decimal(text), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def maps_link(location: Location) -> str:
    return MAPS_LINK_FORMAT.format(
        lat=format_coordinate(location.lat),
        lng=format_coordinate(location.lng)
    )


def format_hospital_block(hospital: Optional[Hospital]) -> str:
    """Hospital section appended to the alert, empty when there is no hospital"""
    if hospital is None:
        return ""

    block = f"\n\nHospital Information:\n{hospital.name}\nPhone: {hospital.phone}"
    if hospital.patient_id:
        block += f"\nPatient Card ID: {hospital.patient_id}"
    if hospital.address:
        block += f"\nAddress: {hospital.address}"
    return block


class MessageComposer:
    """Composes the SOS alert text; holds no state between calls"""

    def compose(self, location: Optional[Location] = None, hospital: Optional[Hospital] = None) -> str:
        location_text = maps_link(location) if location else LOCATION_UNAVAILABLE

        content = f"{ALERT_PREAMBLE}\n\n"
        content += f"My location: {location_text}"
        content += format_hospital_block(hospital)
        content += f"\n\n{ALERT_CLOSING}"
        return content


def compose_message(location: Optional[Location] = None, hospital: Optional[Hospital] = None) -> str:
    """Compose the alert text with the default composer"""
    return MessageComposer().compose(location, hospital)
