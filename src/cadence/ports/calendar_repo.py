"""Calendar repository interface."""

from datetime import datetime
from typing import Protocol

from cadence.core.calendar import Event


class CalendarRepository(Protocol):
    """Interface for reading and writing calendar events in any backend."""

    def list_events(self, calendar_id: str, start: datetime, end: datetime) -> list[Event]:
        """Fetch events in [start, end)."""
        ...

    def create_event(self, calendar_id: str, draft: dict) -> Event:
        ...

    def update_event(self, calendar_id: str, event_id: str, fields: dict) -> Event:
        """Patch an event and return it as stored."""
        ...
