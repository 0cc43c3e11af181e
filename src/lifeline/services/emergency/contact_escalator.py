"""
Contact Escalation

Drives every emergency contact through the call phase in priority
order, then attempts a single batch text to all of them:
- Sequential calling with a fixed feedback delay per reachable contact
- Per-contact status tracking that only ever moves forward
- Non-fatal channel failures recorded on the affected contact only
"""

import asyncio
import logging
from typing import Callable, List, Optional

from lifeline.models.emergency import (
    Contact, ContactAction, ContactChannel, ContactStatus, EscalationReport
)
from .channels import DialerChannel, TextChannel, dial_uri


DEFAULT_CALL_FEEDBACK_DELAY = 1.5


class ContactEscalator:
    """Sequentially notifies contacts and tracks their status"""

    def __init__(
        self,
        dialer: DialerChannel,
        texter: TextChannel,
        feedback_delay: float = DEFAULT_CALL_FEEDBACK_DELAY,
        require_location_for_text: bool = True,
        on_update: Optional[Callable[[int, ContactAction], None]] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.dialer = dialer
        self.texter = texter
        self.feedback_delay = feedback_delay
        self.require_location_for_text = require_location_for_text
        self.on_update = on_update

        self._actions: List[ContactAction] = []

    @property
    def actions(self) -> List[ContactAction]:
        """Snapshot of the current per-contact status for display"""
        return [action.snapshot() for action in self._actions]

    async def run(self, contacts: List[Contact], message: str, has_location: bool = True) -> EscalationReport:
        """
        Run the call phase then the text phase over contacts

        Args:
            contacts: Contacts in priority order; the order is never changed
            message: Alert body for the text phase
            has_location: Whether a location snapshot went into the message

        Returns:
            EscalationReport with one action per contact, in input order
        """
        self._actions = [ContactAction(contact=contact) for contact in contacts]
        report = EscalationReport(actions=self._actions)

        if not self._actions:
            self.logger.info("No contacts to escalate")
            return report

        for index in range(len(self._actions)):
            await self._call_contact(index)

        await self._text_contacts(report, message, has_location)

        self.logger.info(
            f"Escalation finished: {report.count(ContactStatus.SUCCESS)} reached, "
            f"{report.count(ContactStatus.FAILED)} failed, text sent: {report.text_sent}"
        )
        return report

    async def _call_contact(self, index: int):
        """Call phase for a single contact"""
        action = self._actions[index]
        phone = action.contact.phone
        self._advance(index, ContactStatus.CALLING)

        try:
            can_open = await self.dialer.can_open(phone)
        except Exception as e:
            self.logger.warning(f"Dialer check failed for {action.contact.name}: {e}")
            can_open = False

        if not can_open:
            self.logger.warning(f"Cannot call {action.contact.name} at {dial_uri(phone)}")
            self._advance(index, ContactStatus.FAILED)
            return

        # UI pacing only; call completion cannot be detected
        await asyncio.sleep(self.feedback_delay)
        self._advance(index, ContactStatus.SUCCESS)

        try:
            await self.dialer.open(phone)
        except Exception as e:
            self.logger.error(f"Failed to open dialer for {action.contact.name}: {e}")

    async def _text_contacts(self, report: EscalationReport, message: str, has_location: bool):
        """Text phase: one batch send to every contact"""
        if self.require_location_for_text and not has_location:
            self.logger.warning("Skipping SMS: no location available")
            return

        try:
            available = await self.texter.is_available()
        except Exception as e:
            self.logger.error(f"SMS availability check failed: {e}")
            return

        if not available:
            self.logger.warning("Skipping SMS: text channel unavailable")
            return

        phones = [action.contact.phone for action in self._actions]
        report.text_attempted = True
        report.text_recipients = phones

        try:
            sent = await self.texter.send_batch(phones, message)
        except Exception as e:
            self.logger.error(f"Error sending SMS: {e}")
            return

        if not sent:
            self.logger.error("SMS batch send was rejected by the text channel")
            return

        report.text_sent = True
        for index, action in enumerate(self._actions):
            if action.status == ContactStatus.SUCCESS:
                self._advance(index, ContactStatus.SUCCESS, ContactChannel.TEXT)
            else:
                self._advance(index, ContactStatus.TEXTING, ContactChannel.TEXT)

    def _advance(self, index: int, status: ContactStatus, channel: Optional[ContactChannel] = None):
        action = self._actions[index]
        action.advance(status, channel)
        self.logger.debug(f"Contact {action.contact.name} -> {status.value} ({action.channel.value})")

        if self.on_update:
            try:
                self.on_update(index, action.snapshot())
            except Exception as e:
                self.logger.error(f"Error in contact update listener: {e}")
