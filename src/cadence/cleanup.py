"""Calendar cleanup: relocate midnight anomalies and untangle overlaps."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta

from cadence.core.calendar import Event
from cadence.core.conflicts import detect_midnight_anomalies, plan_resolutions
from cadence.core.settings import SchedulerSettings
from cadence.core.slots import find_next_free_slot
from cadence.core.state import SchedulerState
from cadence.errors import CadenceError
from cadence.ports import CalendarRepository

logger = logging.getLogger(__name__)


@dataclass
class PlannedMove:
    calendar_id: str
    event_id: str
    title: str
    old_start: str
    new_start: str
    reason: str


@dataclass
class CleanupReport:
    dry_run: bool = False
    events_checked: int = 0
    midnight_found: int = 0
    conflicts_found: int = 0
    moved: list[PlannedMove] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return self.midnight_found == 0 and self.conflicts_found == 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["is_healthy"] = self.is_healthy
        return data


def _key(event: Event) -> tuple[str, str]:
    return event.calendar, event.id


class CalendarCleaner:
    """
    Fixes the calendars in place.

    Each event is moved at most once per run, and the in-memory event list is
    updated after every move so later searches see the new layout.
    """

    def __init__(
        self,
        calendar: CalendarRepository,
        calendar_ids: list[str],
        settings: SchedulerSettings | None = None,
    ):
        self.calendar = calendar
        self.calendar_ids = calendar_ids
        self.settings = settings or SchedulerSettings()

    @property
    def constraints(self):
        return replace(self.settings.constraints, buffer_minutes=self.settings.sync_buffer_minutes)

    async def fetch_events(self, now: datetime) -> list[Event]:
        end = now + timedelta(days=self.settings.cleanup_days)
        results = await asyncio.gather(
            *(asyncio.to_thread(self.calendar.list_events, cal_id, now, end) for cal_id in self.calendar_ids)
        )
        return [e for events in results for e in events]

    async def run(
        self,
        state: SchedulerState | None = None,
        now: datetime | None = None,
        dry_run: bool = False,
    ) -> CleanupReport:
        now = now or datetime.now(self.settings.tz)
        report = CleanupReport(dry_run=dry_run)

        events = await self.fetch_events(now)
        report.events_checked = len(events)
        by_key = {_key(e): e for e in events}
        moved: set[tuple[str, str]] = set()

        anomalies = detect_midnight_anomalies(events)
        report.midnight_found = len(anomalies)
        for event in anomalies:
            await self._relocate(
                event, self.settings.default_duration, by_key, moved, state, now, dry_run, report, "midnight"
            )

        actions = plan_resolutions(list(by_key.values()), self.settings.tables)
        report.conflicts_found = len(actions)
        for action in actions:
            move_key, keep_key = _key(action.move), _key(action.keep)
            if move_key in moved:
                continue
            current, kept = by_key[move_key], by_key[keep_key]
            if not current.overlaps(kept):
                continue
            await self._relocate(
                current, current.duration_minutes() or self.settings.default_duration,
                by_key, moved, state, now, dry_run, report, f'overlaps "{kept.title}"',
            )

        logger.info(
            f"Calendar cleanup: {report.midnight_found} midnight, {report.conflicts_found} conflicts, "
            f"{len(report.moved)} moved, {len(report.unresolved)} unresolved"
            + (" (dry run)" if dry_run else "")
        )
        return report

    async def _relocate(
        self,
        event: Event,
        duration: int,
        by_key: dict,
        moved: set,
        state: SchedulerState | None,
        now: datetime,
        dry_run: bool,
        report: CleanupReport,
        reason: str,
    ) -> None:
        key = _key(event)
        busy = [e for k, e in by_key.items() if k != key]
        slot = find_next_free_slot(
            duration, busy, max(event.start, now), self.constraints, self.settings.slot_search_days
        )
        if slot is None:
            logger.warning(f'No free slot for "{event.title}", left in place')
            report.unresolved.append(event.title)
            return

        fields = {
            "start": {"dateTime": slot.start.isoformat(), "timeZone": self.settings.timezone},
            "end": {"dateTime": slot.end.isoformat(), "timeZone": self.settings.timezone},
        }
        if not dry_run:
            try:
                await asyncio.to_thread(self.calendar.update_event, event.calendar, event.id, fields)
            except CadenceError as e:
                logger.warning(f'Failed to move "{event.title}": {e}')
                report.failures.append(f"{event.id}: {e}")
                return
            if state is not None:
                before = {
                    "calendarId": event.calendar,
                    "start": {"dateTime": event.start.isoformat(), "timeZone": self.settings.timezone},
                    "end": {"dateTime": (event.end or event.start).isoformat(), "timeZone": self.settings.timezone},
                }
                state.history.record("move_event", event.id, before=before, after=fields, at=now)

        by_key[key] = replace(event, start=slot.start, end=slot.end)
        moved.add(key)
        report.moved.append(
            PlannedMove(
                calendar_id=event.calendar,
                event_id=event.id,
                title=event.title,
                old_start=event.start.isoformat(),
                new_start=slot.start.isoformat(),
                reason=reason,
            )
        )
        logger.info(f'Moved "{event.title}" from {event.start:%Y-%m-%d %H:%M} to {slot.start:%Y-%m-%d %H:%M}')
