"""Place dated tasks on the calendar as time blocks."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, time, timedelta

from cadence.core import keywords as kw
from cadence.core.calendar import Event, TimeSlot, filter_events_by_date, find_free_slots
from cadence.core.priority import estimate_duration
from cadence.core.settings import SchedulerSettings
from cadence.core.state import SchedulerState
from cadence.core.tasks import Task
from cadence.errors import CadenceError
from cadence.ports import CalendarRepository, TaskRepository

logger = logging.getLogger(__name__)

NO_CALENDAR_TAG = "no-calendar"
CREATIVE_AFTERNOON_HOUR = 14

# Google Calendar color ids
TAG_COLORS = {
    "urgent": "11",
    "important": "5",
    "business": "1",
    "client": "10",
    "personal": "7",
}
DEFAULT_COLOR = "1"


def event_color(task: Task) -> str:
    """Color for a task's block: first known tag, else by native priority."""
    for tag in task.tags:
        if tag.lower() in TAG_COLORS:
            return TAG_COLORS[tag.lower()]
    if task.priority >= 4:
        return TAG_COLORS["urgent"]
    if task.priority >= 3:
        return TAG_COLORS["important"]
    return DEFAULT_COLOR


def select_best_gap(task: Task, gaps: list[TimeSlot], duration_minutes: int) -> TimeSlot | None:
    """
    Choose among the free gaps of a day.

    Urgent tasks take the first gap; creative work prefers the first gap
    starting at 14:00 or later; native priority 3+ takes the longest gap;
    everything else the first one.
    """
    fitting = [g for g in gaps if g.duration_minutes() >= duration_minutes]
    if not fitting:
        return None

    if task.has_tag("urgent"):
        return fitting[0]

    if kw.contains_any(task.text, kw.CREATIVE_KEYWORDS):
        afternoon = next((g for g in fitting if g.start.hour >= CREATIVE_AFTERNOON_HOUR), None)
        if afternoon:
            return afternoon

    if task.priority >= 3:
        return max(fitting, key=lambda g: g.duration_minutes())

    return fitting[0]


def event_draft(task: Task, start: datetime, end: datetime, timezone: str) -> dict:
    """Calendar payload for a task block, tagged with the task id."""
    description = task.content or ""
    metadata = ["Source: TickTick", f"ID: {task.id}"]
    if task.tags:
        metadata.append("Tags: " + ", ".join(f"#{t}" for t in task.tags))
    if task.priority:
        metadata.append(f"Priority: {task.priority}/5")
    if description:
        description += "\n\n---\n"
    description += "\n".join(metadata)

    return {
        "summary": task.title,
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        "colorId": event_color(task),
        "extendedProperties": {"private": {"ticktickId": task.id}},
        "reminders": {"useDefault": False, "overrides": []},
    }


@dataclass
class SyncReport:
    candidates: int = 0
    created: list[str] = field(default_factory=list)
    already_placed: int = 0
    unplaced: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class CalendarSync:
    """Creates one calendar block per dated task that does not have one yet."""

    def __init__(
        self,
        tasks: TaskRepository,
        calendar: CalendarRepository,
        calendar_id: str,
        busy_calendar_ids: list[str] | None = None,
        settings: SchedulerSettings | None = None,
    ):
        self.tasks = tasks
        self.calendar = calendar
        self.calendar_id = calendar_id
        self.busy_calendar_ids = busy_calendar_ids or [calendar_id]
        self.settings = settings or SchedulerSettings()

    def wants_block(self, task: Task, today) -> bool:
        if not task.is_active or task.due_date is None:
            return False
        if task.has_tag(NO_CALENDAR_TAG):
            return False
        return today <= task.due_date < today + timedelta(days=self.settings.horizon_days)

    def place(self, task: Task, busy: list[Event], now: datetime) -> TimeSlot | None:
        """Time block for ``task``, or None when its day has no room."""
        if task.has_time:
            length = task.time_estimate or self.settings.default_duration
            return TimeSlot(start=task.due, end=task.due + timedelta(minutes=length))

        c = self.settings.constraints
        day = task.due_date
        duration = estimate_duration(task)
        gaps = find_free_slots(
            filter_events_by_date(busy, day),
            work_start=c.work_start,
            work_end=c.work_end,
            min_duration=duration,
            target_date=day,
            buffer_minutes=self.settings.sync_buffer_minutes,
            exclude_morning=True,
            morning_end_hour=c.morning_end_hour,
            tz=now.tzinfo,
        )
        gaps = [TimeSlot(start=max(g.start, now), end=g.end) for g in gaps if g.end > now]
        gap = select_best_gap(task, gaps, duration)
        if gap is None:
            return None
        return TimeSlot(start=gap.start, end=gap.start + timedelta(minutes=duration))

    async def run(self, state: SchedulerState, now: datetime | None = None) -> SyncReport:
        now = now or datetime.now(self.settings.tz)
        today = now.date()
        window_start = datetime.combine(today, time(0, 0), tzinfo=now.tzinfo)
        window_end = window_start + timedelta(days=self.settings.horizon_days)
        report = SyncReport()

        active, *calendars = await asyncio.gather(
            asyncio.to_thread(self.tasks.list_active),
            *(
                asyncio.to_thread(self.calendar.list_events, cal_id, window_start, window_end)
                for cal_id in self.busy_calendar_ids
            ),
        )
        busy = [e for events in calendars for e in events]

        for event in busy:
            if event.task_id and event.task_id not in state.event_map:
                state.event_map[event.task_id] = event.id

        candidates = [t for t in active if self.wants_block(t, today)]
        report.candidates = len(candidates)

        for task in candidates:
            if task.id in state.event_map:
                report.already_placed += 1
                continue

            slot = self.place(task, busy, now)
            if slot is None:
                logger.warning(f'No free slot for "{task.title}" on {task.due_date}, not placed')
                report.unplaced.append(task.title)
                continue

            draft = event_draft(task, slot.start, slot.end, self.settings.timezone)
            try:
                event = await asyncio.to_thread(self.calendar.create_event, self.calendar_id, draft)
            except CadenceError as e:
                logger.warning(f'Failed to create a block for "{task.title}": {e}')
                report.failures.append(f"{task.id}: {e}")
                continue

            state.event_map[task.id] = event.id
            state.history.record("create_event", event.id, after={"calendarId": self.calendar_id, "taskId": task.id}, at=now)
            busy.append(event)
            report.created.append(task.title)
            logger.info(f'Placed "{task.title}" at {slot.start:%Y-%m-%d %H:%M}')

        return report
