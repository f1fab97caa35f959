"""Ports - interfaces/protocols for external dependencies."""

from .task_repo import TaskRepository
from .calendar_repo import CalendarRepository
from .lead_repo import LeadRepository

__all__ = [
    "TaskRepository",
    "CalendarRepository",
    "LeadRepository",
]
