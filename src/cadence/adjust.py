"""Continuous adjustment: keep due dates spread across the planning horizon.

One run goes through four stages in order:

1. Delta sync - fetch active and completed tasks; work on the ones that are
   new or whose modification stamp moved (everything on a full sync).
2. Date assignment - give each changed undated task the least-loaded day for
   its tier.
3. Overload detection - flag every task on a day holding more than the cap.
4. Reschedule - move flagged tasks, least urgent first, until their day is
   back under the cap. No two displaced tasks share a target day.

Only the fetch in stage 1 is fatal. A failed write is logged, counted, and
the run moves on.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time

from cadence.core.load import assign_day, build_load_map, count_by_day, pick_least_loaded_day
from cadence.core.priority import tier_of, urgency_score
from cadence.core.settings import SchedulerSettings
from cadence.core.state import SchedulerState
from cadence.core.tasks import Task, format_ticktick_datetime
from cadence.errors import AdjustmentInProgress, CadenceError
from cadence.ports import TaskRepository

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentReport:
    sync_mode: str = "delta"
    tasks_analyzed: int = 0
    tasks_without_date: int = 0
    dates_assigned: int = 0
    conflicts_detected: int = 0
    tasks_rescheduled: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["partial"] = self.partial
        return data

    def summary(self) -> str:
        text = (
            f"{self.sync_mode} sync: {self.tasks_analyzed} analyzed, "
            f"{self.dates_assigned}/{self.tasks_without_date} dated, "
            f"{self.conflicts_detected} on overloaded days, "
            f"{self.tasks_rescheduled} rescheduled"
        )
        if self.partial:
            text += f" ({len(self.failures)} failures)"
        return text


def _due_fields(task: Task) -> dict:
    return {
        "dueDate": format_ticktick_datetime(task.due) if task.due else None,
        "isAllDay": task.is_all_day,
    }


class ContinuousAdjuster:
    """
    Runs the adjustment stages against a task store.

    A single instance serializes its runs: a second ``run`` while one is in
    flight raises ``AdjustmentInProgress`` instead of queueing.
    """

    def __init__(self, tasks: TaskRepository, settings: SchedulerSettings | None = None):
        self.tasks = tasks
        self.settings = settings or SchedulerSettings()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, state: SchedulerState, now: datetime | None = None) -> AdjustmentReport:
        if self._running:
            raise AdjustmentInProgress("An adjustment run is already in progress")
        self._running = True
        try:
            return await self._run(state, now or datetime.now(self.settings.tz))
        finally:
            self._running = False

    async def _run(self, state: SchedulerState, now: datetime) -> AdjustmentReport:
        report = AdjustmentReport(sync_mode="full" if state.is_full_sync else "delta")
        today = now.date()
        cap = self.settings.daily_cap

        # Stage 1: delta sync. A failure here propagates with the state untouched.
        active, completed = await asyncio.gather(
            asyncio.to_thread(self.tasks.list_active),
            asyncio.to_thread(self.tasks.list_completed),
        )
        changed = state.changed_tasks(active + completed)
        report.tasks_analyzed = len(changed)
        logger.info(f"Delta sync ({report.sync_mode}): {len(changed)} changed of {len(active) + len(completed)}")

        current = {t.id: t for t in active}

        # Stage 2: date assignment
        undated = [t for t in changed if t.is_active and t.due is None]
        report.tasks_without_date = len(undated)
        load = build_load_map(list(current.values()), self.settings.horizon_days, today)

        for task in sorted(undated, key=tier_of):
            tier = tier_of(task)
            day = pick_least_loaded_day(tier, load, today, cap)
            due = datetime.combine(day, time(0, 0), tzinfo=now.tzinfo)
            try:
                updated = await self._write_due(state, task, task.with_due(due, is_all_day=True), "assign_date", now)
            except CadenceError as e:
                logger.warning(f'Failed to assign a date to "{task.title}": {e}')
                report.failures.append(f"assign {task.id}: {e}")
                continue
            assign_day(load, day)
            current[task.id] = updated
            report.dates_assigned += 1
            logger.info(f'Assigned {day} to "{task.title}" ({tier.label})')

        # Stage 3: overload detection over the full list, this run's writes included
        counts = count_by_day(list(current.values()))
        overloaded: set[date] = set()
        for task in changed:
            latest = current.get(task.id)
            if latest is not None and latest.due_date is not None and counts[latest.due_date] > cap:
                overloaded.add(latest.due_date)

        flagged = [t for t in current.values() if t.due_date in overloaded]
        report.conflicts_detected = len(flagged)
        if overloaded:
            logger.info(f"{len(flagged)} tasks on {len(overloaded)} overloaded days")

        # Stage 4: reschedule, least urgent first, each displaced task to its own day
        targets: set[date] = set()
        flagged.sort(key=lambda t: (-tier_of(t), urgency_score(t, now)))
        for task in flagged:
            old_day = task.due_date
            if counts[old_day] <= cap:
                continue

            candidates = {d: n for d, n in load.items() if d != old_day and d not in targets}
            if not candidates:
                continue
            new_day = pick_least_loaded_day(tier_of(task), candidates, today, cap)
            new_due = datetime.combine(new_day, task.due.timetz())
            try:
                updated = await self._write_due(state, task, task.with_due(new_due, task.is_all_day), "reschedule", now)
            except CadenceError as e:
                logger.warning(f'Failed to reschedule "{task.title}": {e}')
                report.failures.append(f"reschedule {task.id}: {e}")
                continue

            targets.add(new_day)
            counts[old_day] -= 1
            counts[new_day] += 1
            assign_day(load, old_day, -1)
            assign_day(load, new_day)
            current[task.id] = updated
            report.tasks_rescheduled += 1
            logger.info(f'Rescheduled "{task.title}" from {old_day} to {new_day}')

        state.mark_synced(now)
        logger.info(f"Continuous adjustment done: {report.summary()}")
        return report

    async def _write_due(
        self,
        state: SchedulerState,
        task: Task,
        target: Task,
        operation: str,
        now: datetime,
    ) -> Task:
        """Write ``target``'s due date, log it for undo, and remember the result."""
        before = task.update_fields(**_due_fields(task))
        after = target.update_fields(**_due_fields(target))
        updated = await asyncio.to_thread(self.tasks.update, task.id, after)
        if updated.due is None:
            updated = updated.with_due(target.due, target.is_all_day)
        state.history.record(operation, task.id, before=before, after=after, at=now)
        state.remember(updated)
        return updated
