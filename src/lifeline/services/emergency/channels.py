"""
External collaborator interfaces for the emergency workflow

Dialer and text channels, location and hospital lookups. Concrete
platform integrations subclass these; the logging and static variants
back the drill CLI and tests.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

from lifeline.models.emergency import Hospital, Location


def dial_uri(phone: str) -> str:
    """URI handed to the native dialer"""
    return f"tel:{phone}"


class DialerChannel(ABC):
    """Abstract native dialer"""

    @abstractmethod
    async def can_open(self, phone: str) -> bool:
        """Check whether a call can be started for this number"""
        pass

    @abstractmethod
    async def open(self, phone: str) -> None:
        """Open the dialer; no call outcome is reported"""
        pass


class TextChannel(ABC):
    """Abstract batch SMS sender"""

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether text messages can be sent from this device"""
        pass

    @abstractmethod
    async def send_batch(self, phones: List[str], body: str) -> bool:
        """Send one body to all numbers; no per-recipient delivery status"""
        pass


class LocationProvider(ABC):
    """Abstract geolocation provider"""

    @abstractmethod
    async def current_location(self) -> Optional[Location]:
        """Return the current position, or None if unavailable"""
        pass


class HospitalProvider(ABC):
    """Abstract lookup for the user's primary hospital"""

    @abstractmethod
    async def primary_hospital(self) -> Optional[Hospital]:
        """Return the primary hospital record, or None"""
        pass


class StaticLocationProvider(LocationProvider):
    """Location provider returning a fixed position"""

    def __init__(self, location: Optional[Location] = None):
        self.location = location

    async def current_location(self) -> Optional[Location]:
        return self.location


class StaticHospitalProvider(HospitalProvider):
    """Hospital provider returning a fixed record"""

    def __init__(self, hospital: Optional[Hospital] = None):
        self.hospital = hospital

    async def primary_hospital(self) -> Optional[Hospital]:
        return self.hospital


class LoggingDialerChannel(DialerChannel):
    """Dialer that records and logs the numbers it would call"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.opened: List[str] = []

    async def can_open(self, phone: str) -> bool:
        # A tel: URI without any digits is rejected by platform dialers
        return bool(re.search(r'\d', phone or ''))

    async def open(self, phone: str) -> None:
        self.opened.append(phone)
        self.logger.info(f"Opening dialer: {dial_uri(phone)}")


class LoggingTextChannel(TextChannel):
    """Text channel that records and logs the batches it would send"""

    def __init__(self, available: bool = True):
        self.logger = logging.getLogger(__name__)
        self.available = available
        self.sent: List[tuple] = []

    async def is_available(self) -> bool:
        return self.available

    async def send_batch(self, phones: List[str], body: str) -> bool:
        self.sent.append((list(phones), body))
        self.logger.info(f"Sending SMS to {len(phones)} recipient(s): {', '.join(phones)}")
        return True
