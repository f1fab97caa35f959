"""Slot finder: the "next best time" for a task.

Candidates are laid on a fixed grid inside work hours, filtered for
availability, scored, and the best one wins (first enumerated on ties).
Pure functions - no I/O.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from cadence.core import keywords as kw
from cadence.core.calendar import Event, TimeSlot
from cadence.core.priority import PriorityTier
from cadence.core.tasks import Task

EARLY_HOURS = (8, 9)


@dataclass
class SlotConstraints:
    """Working-day shape used when laying out candidate slots."""

    work_start: int = 8
    work_end: int = 18
    lunch_start: int = 12
    lunch_end: int = 14
    grid_minutes: int = 30
    buffer_minutes: int = 0
    exclude_morning: bool = False
    morning_end_hour: int = 12
    protect_sport_mornings: bool = True


def is_sport_day(events: list[Event], day: date, sport_keywords: tuple[str, ...] = kw.SPORT_KEYWORDS) -> bool:
    """True if any event on ``day`` looks like a sport session."""
    return any(e.start.date() == day and kw.contains_any(e.title, sport_keywords) for e in events)


def event_tier(event: Event, table: kw.KeywordTable = kw.SLOT_EVENT_URGENCY) -> int:
    """Tier inferred from an event title: urgent 1, important 2, medium 3, else 4."""
    urgency = kw.classify(event.title, table, kw.SLOT_EVENT_URGENCY_DEFAULT)
    return int(5 - urgency)


def is_slot_available(
    start: datetime,
    end: datetime,
    tier: PriorityTier,
    busy: list[Event],
    buffer_minutes: int = 0,
    table: kw.KeywordTable = kw.SLOT_EVENT_URGENCY,
) -> bool:
    """A slot is free, or every interval it overlaps may be displaced by ``tier``.

    All-day events never block.
    """
    pad = timedelta(minutes=buffer_minutes)
    blockers = [e for e in busy if e.is_timed and start < e.end + pad and e.start - pad < end]
    if not blockers:
        return True
    if not tier.may_displace:
        return False
    return all(event_tier(e, table) > tier for e in blockers)


def score_slot(
    slot: TimeSlot,
    task: Task,
    tier: PriorityTier,
    now: datetime,
    constraints: SlotConstraints | None = None,
) -> float:
    c = constraints or SlotConstraints()
    hour = slot.start.hour
    score = 100.0

    if task.preferred_time == "morning" and c.work_start <= hour < c.lunch_start:
        score += 50
    elif task.preferred_time == "afternoon" and c.lunch_end <= hour < c.work_end:
        score += 50

    if c.lunch_start <= hour < c.lunch_end:
        score -= 30

    if tier == PriorityTier.P1_CRITICAL:
        days = (slot.start.date() - now.date()).days
        score += max(0, 30 - 5 * days)

    if hour in EARLY_HOURS:
        score += 10

    return score


def _day_candidates(day: date, duration_minutes: int, c: SlotConstraints, tz):
    """Grid starts of ``day`` whose slot ends inside work hours."""
    day_end = datetime.combine(day, time(c.work_end, 0), tzinfo=tz)
    length = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=c.grid_minutes)
    start = datetime.combine(day, time(c.work_start, 0), tzinfo=tz)
    while start < day_end:
        end = start + length
        if end > day_end:
            break
        yield start, end
        start += step


def find_best_slot(
    task: Task,
    tier: PriorityTier,
    duration_minutes: int,
    busy: list[Event],
    now: datetime,
    horizon_days: int = 14,
    constraints: SlotConstraints | None = None,
    tables: kw.KeywordTables = kw.DEFAULT_TABLES,
) -> TimeSlot | None:
    """Best-scoring available slot in [today, today + horizon_days), or None."""
    c = constraints or SlotConstraints()
    tz = now.tzinfo
    best: TimeSlot | None = None

    for offset in range(horizon_days):
        day = now.date() + timedelta(days=offset)
        if task.is_call_session and day.weekday() >= 5:
            continue
        skip_morning = c.exclude_morning or (c.protect_sport_mornings and is_sport_day(busy, day, tables.sport))

        for start, end in _day_candidates(day, duration_minutes, c, tz):
            if start < now:
                continue
            if skip_morning and start.hour < c.morning_end_hour:
                continue
            if not is_slot_available(start, end, tier, busy, c.buffer_minutes, tables.slot_event_urgency):
                continue
            slot = TimeSlot(start=start, end=end)
            slot.score = score_slot(slot, task, tier, now, c)
            if best is None or slot.score > best.score:
                best = slot

    return best


def find_next_free_slot(
    duration_minutes: int,
    busy: list[Event],
    seed: datetime,
    constraints: SlotConstraints | None = None,
    horizon_days: int = 14,
) -> TimeSlot | None:
    """First grid slot starting at or after ``seed`` that overlaps nothing."""
    c = constraints or SlotConstraints()
    for offset in range(horizon_days):
        day = seed.date() + timedelta(days=offset)
        for start, end in _day_candidates(day, duration_minutes, c, seed.tzinfo):
            if start < seed:
                continue
            if c.exclude_morning and start.hour < c.morning_end_hour:
                continue
            if is_slot_available(start, end, PriorityTier.P4_LOW, busy, c.buffer_minutes):
                return TimeSlot(start=start, end=end)
    return None
