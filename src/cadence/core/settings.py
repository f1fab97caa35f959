"""Knobs shared by the scheduling flows."""

from dataclasses import dataclass, field
from datetime import tzinfo
from zoneinfo import ZoneInfo

from cadence.core.keywords import KeywordTables
from cadence.core.priority import PriorityWeights
from cadence.core.slots import SlotConstraints


@dataclass
class SchedulerSettings:
    horizon_days: int = 60
    daily_cap: int = 3
    slot_search_days: int = 14
    default_duration: int = 60
    cleanup_days: int = 7
    sync_buffer_minutes: int = 15
    timezone: str = "Europe/Paris"
    constraints: SlotConstraints = field(default_factory=SlotConstraints)
    weights: PriorityWeights = field(default_factory=PriorityWeights)
    tables: KeywordTables = field(default_factory=KeywordTables)

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)
