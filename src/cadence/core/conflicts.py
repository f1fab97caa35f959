"""Calendar conflict detection and resolution planning.

Pure functions - no I/O. The cleanup flow applies the plan.
"""

import logging
from dataclasses import dataclass

from cadence.core import keywords as kw
from cadence.core.calendar import Event, sort_events_by_start

logger = logging.getLogger(__name__)

MIDNIGHT_TIMES = ((0, 0), (23, 59))


@dataclass
class ConflictAction:
    """Move ``move`` off the interval it shares with ``keep``."""

    move: Event
    keep: Event

    def describe(self) -> str:
        return f'move "{self.move.title}" (keeps "{self.keep.title}")'


def detect_overlaps(events: list[Event]) -> list[tuple[Event, Event]]:
    """
    Find overlapping timed events.

    Sweep over events sorted by start: once a later event starts at or after
    the current one's end, no further event can overlap it. Touching
    intervals do not overlap. Pairs come out in (earlier, later) order.
    """
    pairs = []
    timed = sort_events_by_start([e for e in events if e.is_timed])

    for i, a in enumerate(timed):
        for b in timed[i + 1 :]:
            if b.start >= a.end:
                break
            if a.start < b.end:
                pairs.append((a, b))

    return pairs


def event_priority(event: Event, table: kw.KeywordTable = kw.EVENT_PRIORITY) -> float:
    return kw.classify(event.title, table, kw.EVENT_PRIORITY_DEFAULT)


def is_cohesive(
    a: Event,
    b: Event,
    work_session: tuple[str, ...] = kw.WORK_SESSION_KEYWORDS,
    calls: tuple[str, ...] = kw.CALL_KEYWORDS,
) -> bool:
    """A call nested in a work session is intentional, not a conflict."""
    a_session = kw.contains_any(a.title, work_session)
    b_session = kw.contains_any(b.title, work_session)
    a_call = kw.contains_any(a.title, calls)
    b_call = kw.contains_any(b.title, calls)
    if (a_call and b_session) or (b_call and a_session):
        logger.debug(f'Cohesive overlap: "{a.title}" + "{b.title}"')
        return True
    return False


def choose_event_to_move(
    a: Event,
    b: Event,
    table: kw.KeywordTable = kw.EVENT_PRIORITY,
) -> tuple[Event, Event]:
    """Return (to_move, to_keep).

    The lower-priority event moves. On a tie the more recently created one
    moves; a missing creation stamp counts as oldest, and B moves when
    neither has one.
    """
    pa, pb = event_priority(a, table), event_priority(b, table)
    if pa < pb:
        return a, b
    if pb < pa:
        return b, a

    if a.created is not None and (b.created is None or a.created > b.created):
        return a, b
    return b, a


def plan_resolutions(
    events: list[Event],
    tables: kw.KeywordTables = kw.DEFAULT_TABLES,
) -> list[ConflictAction]:
    """One action per non-cohesive overlapping pair."""
    actions = []
    for a, b in detect_overlaps(events):
        if is_cohesive(a, b, tables.work_session, tables.calls):
            continue
        move, keep = choose_event_to_move(a, b, tables.event_priority)
        actions.append(ConflictAction(move=move, keep=keep))
    return actions


def detect_midnight_anomalies(events: list[Event]) -> list[Event]:
    """Timed events starting exactly at 00:00 or 23:59."""
    return [e for e in events if not e.all_day and (e.start.hour, e.start.minute) in MIDNIGHT_TIMES]
