"""Adapters - I/O implementations of ports."""

from .http import RetryPolicy
from .ticktick_api import TickTickAdapter
from .google_calendar import GoogleCalendarAdapter
from .airtable import AirtableAdapter
from .state_file import StateFileStore

__all__ = [
    "RetryPolicy",
    "TickTickAdapter",
    "GoogleCalendarAdapter",
    "AirtableAdapter",
    "StateFileStore",
]
