"""
Emergency event persistence

Repositories that store the EmergencyEvent produced by each completed
escalation, list event history and mark events resolved.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from lifeline.core.database import DatabaseError, DatabaseManager
from lifeline.models.emergency import EmergencyEvent, EmergencyEventType, Location


class EventRepository(ABC):
    """Abstract store for emergency events"""

    @abstractmethod
    async def save(self, event: EmergencyEvent) -> EmergencyEvent:
        """Store a new event"""
        pass

    @abstractmethod
    async def get(self, event_id: str) -> Optional[EmergencyEvent]:
        """Get event by ID"""
        pass

    @abstractmethod
    async def list_events(self, user_id: Optional[str] = None) -> List[EmergencyEvent]:
        """List events newest first, optionally for one user"""
        pass

    @abstractmethod
    async def mark_resolved(self, event_id: str, at: Optional[datetime] = None) -> Optional[EmergencyEvent]:
        """Set resolved_at on an event; returns None if the event is unknown"""
        pass


class InMemoryEventRepository(EventRepository):
    """Event store kept in process memory"""

    def __init__(self):
        self.events: Dict[str, EmergencyEvent] = {}

    async def save(self, event: EmergencyEvent) -> EmergencyEvent:
        if event.id in self.events:
            raise ValueError(f"Emergency event {event.id} already stored")
        self.events[event.id] = event
        return event

    async def get(self, event_id: str) -> Optional[EmergencyEvent]:
        return self.events.get(event_id)

    async def list_events(self, user_id: Optional[str] = None) -> List[EmergencyEvent]:
        events = [e for e in self.events.values() if user_id is None or e.user_id == user_id]
        return sorted(events, key=lambda e: e.created_at, reverse=True)

    async def mark_resolved(self, event_id: str, at: Optional[datetime] = None) -> Optional[EmergencyEvent]:
        event = self.events.get(event_id)
        if event is None:
            return None
        event.mark_resolved(at)
        return event


class SQLiteEventRepository(EventRepository):
    """Event store backed by the emergency_events table"""

    def __init__(self, db: DatabaseManager):
        self.logger = logging.getLogger(__name__)
        self.db = db

    async def save(self, event: EmergencyEvent) -> EmergencyEvent:
        try:
            self.db.execute_update(
                """INSERT INTO emergency_events
                   (id, user_id, event_type, location, sms_content, sms_sent_to,
                    ai_analysis, resolved_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event.id,
                    event.user_id,
                    event.event_type.value,
                    json.dumps(event.location.to_dict()) if event.location else None,
                    event.sms_content,
                    json.dumps(event.sms_sent_to),
                    json.dumps(event.ai_analysis) if event.ai_analysis is not None else None,
                    event.resolved_at.isoformat() if event.resolved_at else None,
                    event.created_at.isoformat()
                )
            )
        except DatabaseError as e:
            self.logger.error(f"Failed to store emergency event {event.id}: {e}")
            raise

        self.logger.info(f"Stored emergency event {event.id}")
        return event

    async def get(self, event_id: str) -> Optional[EmergencyEvent]:
        rows = self.db.execute_query(
            "SELECT * FROM emergency_events WHERE id = ?",
            (event_id,)
        )
        return self._row_to_event(rows[0]) if rows else None

    async def list_events(self, user_id: Optional[str] = None) -> List[EmergencyEvent]:
        if user_id is None:
            rows = self.db.execute_query(
                "SELECT * FROM emergency_events ORDER BY created_at DESC"
            )
        else:
            rows = self.db.execute_query(
                "SELECT * FROM emergency_events WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,)
            )
        return [self._row_to_event(row) for row in rows]

    async def mark_resolved(self, event_id: str, at: Optional[datetime] = None) -> Optional[EmergencyEvent]:
        event = await self.get(event_id)
        if event is None:
            return None

        event.mark_resolved(at or datetime.now(timezone.utc))
        self.db.execute_update(
            "UPDATE emergency_events SET resolved_at = ? WHERE id = ? AND resolved_at IS NULL",
            (event.resolved_at.isoformat(), event_id)
        )
        self.logger.info(f"Resolved emergency event {event_id}")
        return event

    def _row_to_event(self, row) -> EmergencyEvent:
        """Convert database row to EmergencyEvent"""
        location = json.loads(row['location']) if row['location'] else None
        return EmergencyEvent(
            id=row['id'],
            user_id=row['user_id'],
            event_type=EmergencyEventType(row['event_type']),
            location=Location.from_dict(location) if location else None,
            sms_content=row['sms_content'],
            sms_sent_to=json.loads(row['sms_sent_to']) if row['sms_sent_to'] else [],
            ai_analysis=json.loads(row['ai_analysis']) if row['ai_analysis'] else None,
            resolved_at=datetime.fromisoformat(row['resolved_at']) if row['resolved_at'] else None,
            created_at=datetime.fromisoformat(row['created_at'])
        )
