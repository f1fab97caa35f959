"""Functional core - pure business logic with no I/O."""

from .tasks import Task, TaskStatus
from .calendar import Event, TimeSlot, find_free_slots, filter_events_by_date
from .priority import PriorityTier, PriorityWeights, rank_tasks, score_of, tier_of
from .slots import SlotConstraints, find_best_slot, find_next_free_slot
from .load import build_load_map, pick_least_loaded_day
from .conflicts import ConflictAction, detect_overlaps, plan_resolutions
from .state import SchedulerState
from .settings import SchedulerSettings

__all__ = [
    # Tasks
    "Task",
    "TaskStatus",
    # Calendar
    "Event",
    "TimeSlot",
    "find_free_slots",
    "filter_events_by_date",
    # Priority
    "PriorityTier",
    "PriorityWeights",
    "rank_tasks",
    "score_of",
    "tier_of",
    # Slots
    "SlotConstraints",
    "find_best_slot",
    "find_next_free_slot",
    # Load
    "build_load_map",
    "pick_least_loaded_day",
    # Conflicts
    "ConflictAction",
    "detect_overlaps",
    "plan_resolutions",
    # State
    "SchedulerState",
    "SchedulerSettings",
]
