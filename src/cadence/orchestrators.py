"""Orchestrators: thin compositions of the flows, with step-level reporting."""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from cadence.adjust import ContinuousAdjuster
from cadence.core.calendar import Event, TimeSlot
from cadence.core.keywords import classify_project
from cadence.core.leads import CallAction, bucket_leads, generate_call_actions
from cadence.core.settings import SchedulerSettings
from cadence.core.slots import find_best_slot
from cadence.core.state import SchedulerState
from cadence.core.tasks import Task, format_ticktick_datetime
from cadence.errors import CadenceError
from cadence.ports import CalendarRepository, LeadRepository, TaskRepository

logger = logging.getLogger(__name__)

INBOX_PREFIX = "inbox"
CALL_SESSION_COLORS = {1: "11", 2: "5"}


@dataclass
class StepResult:
    name: str
    success: bool
    duration_ms: int = 0
    counts: dict = field(default_factory=dict)
    error: str = ""


@dataclass
class OrchestrationReport:
    steps: list[StepResult] = field(default_factory=list)
    total_duration_ms: int = 0

    @property
    def status(self) -> str:
        if all(s.success for s in self.steps):
            return "success"
        if any(s.success for s in self.steps):
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {"status": self.status, "total_duration_ms": self.total_duration_ms, "steps": [asdict(s) for s in self.steps]}


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def is_inbox_task(task: Task) -> bool:
    return task.project_id.startswith(INBOX_PREFIX)


class DailyOrchestrator:
    """
    Daily routine: sort the inbox into projects, then run the adjustment.

    A failing step is reported and the next one still runs.
    """

    def __init__(
        self,
        tasks: TaskRepository,
        adjuster: ContinuousAdjuster,
        settings: SchedulerSettings | None = None,
    ):
        self.tasks = tasks
        self.adjuster = adjuster
        self.settings = settings or SchedulerSettings()

    async def classify_inbox(self, state: SchedulerState, now: datetime) -> dict:
        """Move inbox tasks to the project their keywords point at.

        Moved tasks are not remembered in the snapshot, so the adjustment
        that follows treats them as changed and dates them if needed.
        """
        active, projects = await asyncio.gather(
            asyncio.to_thread(self.tasks.list_active),
            asyncio.to_thread(self.tasks.list_projects),
        )
        ids_by_name = {name.lower(): pid for pid, name in projects.items()}
        inbox = [t for t in active if is_inbox_task(t)]
        moved = failed = unclassified = 0

        for task in inbox:
            name = classify_project(task.text)
            project_id = ids_by_name.get(name.lower()) if name else None
            if project_id is None:
                unclassified += 1
                continue
            fields = task.update_fields(projectId=project_id)
            try:
                await asyncio.to_thread(self.tasks.update, task.id, fields)
            except CadenceError as e:
                logger.warning(f'Failed to move "{task.title}" to {name}: {e}')
                failed += 1
                continue
            state.history.record(
                "move_project", task.id, before=task.update_fields(), after=fields, at=now
            )
            moved += 1
            logger.info(f'Inbox: "{task.title}" -> {name}')

        return {"total": len(inbox), "moved": moved, "failed": failed, "unclassified": unclassified}

    async def run(self, state: SchedulerState, now: datetime | None = None) -> OrchestrationReport:
        now = now or datetime.now(self.settings.tz)
        report = OrchestrationReport()
        started = time.monotonic()

        logger.info("Daily orchestration step 1/2: inbox cleanup")
        step_start = time.monotonic()
        try:
            counts = await self.classify_inbox(state, now)
            report.steps.append(StepResult("inbox_cleanup", True, _elapsed_ms(step_start), counts))
        except CadenceError as e:
            logger.error(f"Inbox cleanup failed: {e}")
            report.steps.append(StepResult("inbox_cleanup", False, _elapsed_ms(step_start), error=str(e)))

        logger.info("Daily orchestration step 2/2: continuous adjustment")
        step_start = time.monotonic()
        try:
            result = await self.adjuster.run(state, now)
            report.steps.append(
                StepResult("continuous_adjustment", not result.partial, _elapsed_ms(step_start), result.to_dict())
            )
        except CadenceError as e:
            logger.error(f"Continuous adjustment failed: {e}")
            report.steps.append(StepResult("continuous_adjustment", False, _elapsed_ms(step_start), error=str(e)))

        report.total_duration_ms = _elapsed_ms(started)
        logger.info(f"Daily orchestration finished: {report.status} in {report.total_duration_ms}ms")
        return report


@dataclass
class SmartReport:
    leads_analyzed: int = 0
    buckets: dict = field(default_factory=dict)
    created: list[str] = field(default_factory=list)
    blocks_added: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    unplaced: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class SmartOrchestrator:
    """Turn stale CRM leads into call sessions placed at their best time."""

    def __init__(
        self,
        tasks: TaskRepository,
        calendar: CalendarRepository,
        leads: LeadRepository,
        calendar_ids: list[str],
        settings: SchedulerSettings | None = None,
    ):
        self.tasks = tasks
        self.calendar = calendar
        self.leads = leads
        self.calendar_ids = calendar_ids
        self.settings = settings or SchedulerSettings()

    async def _fetch(self, now: datetime) -> tuple[list, list[Task], list[Event]]:
        end = now + timedelta(days=self.settings.slot_search_days)
        leads, active, *calendars = await asyncio.gather(
            asyncio.to_thread(self.leads.list_leads),
            asyncio.to_thread(self.tasks.list_active),
            *(asyncio.to_thread(self.calendar.list_events, cal_id, now, end) for cal_id in self.calendar_ids),
        )
        return leads, active, [e for events in calendars for e in events]

    async def _block(
        self, state: SchedulerState, task: Task, action: CallAction, slot: TimeSlot, calendar_id: str
    ) -> Event:
        """Put the call session on the calendar and map it to its task."""
        event = await asyncio.to_thread(
            self.calendar.create_event,
            calendar_id,
            {
                "summary": action.title,
                "description": action.description,
                "start": {"dateTime": slot.start.isoformat(), "timeZone": self.settings.timezone},
                "end": {"dateTime": slot.end.isoformat(), "timeZone": self.settings.timezone},
                "colorId": CALL_SESSION_COLORS.get(action.tier.value, "1"),
                "extendedProperties": {"private": {"ticktickId": task.id}},
            },
        )
        state.event_map[task.id] = event.id
        return event

    async def _move_to(self, state: SchedulerState, task: Task, start: datetime, now: datetime) -> Task:
        """Align an existing call session's due time with its new slot."""
        before = task.update_fields(
            dueDate=format_ticktick_datetime(task.due) if task.due else None,
            isAllDay=task.is_all_day,
        )
        after = task.update_fields(dueDate=format_ticktick_datetime(start), isAllDay=False)
        updated = await asyncio.to_thread(self.tasks.update, task.id, after)
        state.history.record("reschedule", task.id, before=before, after=after, at=now)
        state.remember(updated)
        return updated

    async def run(self, state: SchedulerState, now: datetime | None = None) -> SmartReport:
        """Create the call sessions the CRM asks for.

        A session whose task already exists is a duplicate only once it has a
        calendar block. An existing task without one (its block failed on an
        earlier run) gets the block now instead of a second task.
        """
        now = now or datetime.now(self.settings.tz)
        report = SmartReport()

        leads, active, busy = await self._fetch(now)
        report.leads_analyzed = len(leads)
        buckets = bucket_leads(leads, now)
        report.buckets = {tier.label: len(group) for tier, group in buckets.items()}
        logger.info(f"CRM analysis: {report.buckets}")

        existing = {t.title: t for t in active}
        blocked = set(state.event_map) | {e.task_id for e in busy if e.task_id}
        primary = self.calendar_ids[0] if self.calendar_ids else "primary"

        for action in generate_call_actions(buckets):
            task = existing.get(action.title)
            if task is not None and task.id in blocked:
                logger.info(f'Skipping "{action.title}", already scheduled')
                report.duplicates.append(action.title)
                continue

            probe = Task(
                id="",
                title=action.title,
                content=action.description,
                priority=action.tier.native_priority,
                time_estimate=action.duration_minutes,
                preferred_time=action.preferred_time,
                category=action.category,
            )
            slot = find_best_slot(
                probe,
                action.tier,
                action.duration_minutes,
                busy,
                now,
                self.settings.slot_search_days,
                self.settings.constraints,
                self.settings.tables,
            )
            if slot is None:
                logger.warning(f'No slot found for "{action.title}"')
                report.unplaced.append(action.title)
                continue

            repairing = task is not None
            try:
                if task is None:
                    task = await asyncio.to_thread(self.tasks.create, action.draft(slot.start))
                    state.remember(task)
                    state.history.record("create_task", task.id, after={"title": action.title}, at=now)
                    existing[action.title] = task
                    report.created.append(action.title)
                elif task.due != slot.start:
                    task = await self._move_to(state, task, slot.start, now)
            except CadenceError as e:
                logger.warning(f'Failed to write the task for "{action.title}": {e}')
                report.failures.append(f"{action.title}: {e}")
                continue

            try:
                event = await self._block(state, task, action, slot, primary)
            except CadenceError as e:
                logger.warning(f'"{action.title}" has no calendar block yet: {e}')
                report.failures.append(f"{action.title}: {e}")
                continue

            busy.append(event)
            blocked.add(task.id)
            if repairing:
                report.blocks_added.append(action.title)
            logger.info(f'Scheduled "{action.title}" at {slot.start:%Y-%m-%d %H:%M} (score {slot.score:.0f})')

        return report
