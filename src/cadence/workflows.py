"""Shared workflow layer - used by both the CLI and the background jobs.

Builds the adapters from config once, and runs each flow against the
persisted scheduler state.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from cadence.adapters.airtable import AirtableAdapter
from cadence.adapters.google_calendar import GoogleCalendarAdapter
from cadence.adapters.http import RetryPolicy
from cadence.adapters.state_file import StateFileStore
from cadence.adapters.ticktick_api import TickTickAdapter
from cadence.adjust import AdjustmentReport, ContinuousAdjuster
from cadence.calendar_sync import CalendarSync, SyncReport
from cadence.cleanup import CalendarCleaner, CleanupReport
from cadence.config import STATE_FILE, Config, load_config
from cadence.core.history import ActionRecord
from cadence.core.load import build_load_map
from cadence.core.priority import rank_tasks, score_details, tier_of
from cadence.core.settings import SchedulerSettings
from cadence.orchestrators import DailyOrchestrator, OrchestrationReport, SmartOrchestrator, SmartReport
from cadence.errors import CadenceError
from cadence.ports import CalendarRepository, LeadRepository, TaskRepository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a flow needs, wired once per process.

    Every flow that reads and saves the state file holds ``lock`` for the
    whole load-run-save cycle, so scheduled jobs run one at a time.
    """

    config: Config
    settings: SchedulerSettings
    tasks: TaskRepository
    calendar: CalendarRepository
    state_store: StateFileStore
    leads: LeadRepository | None = None
    adjuster: ContinuousAdjuster = field(init=False)
    lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self):
        self.adjuster = ContinuousAdjuster(self.tasks, self.settings)


def build_services(config: Config | None = None) -> Services:
    config = config or load_config()
    retry = RetryPolicy.from_config(config)
    leads = None
    if config.airtable_api_key and config.airtable_base_id:
        leads = AirtableAdapter.from_config(config, retry)
    return Services(
        config=config,
        settings=config.scheduler_settings(),
        tasks=TickTickAdapter(config, retry=retry),
        calendar=GoogleCalendarAdapter(
            client_secret_file=config.google_client_secret_file,
            timezone=config.timezone,
            retry=retry,
        ),
        state_store=StateFileStore(STATE_FILE, config.history_size),
        leads=leads,
    )


async def run_adjustment(services: Services, now: datetime | None = None) -> AdjustmentReport:
    async with services.lock:
        state = services.state_store.load()
        report = await services.adjuster.run(state, now)
        services.state_store.save(state)
    return report


async def run_daily(services: Services, now: datetime | None = None) -> OrchestrationReport:
    orchestrator = DailyOrchestrator(services.tasks, services.adjuster, services.settings)
    async with services.lock:
        state = services.state_store.load()
        report = await orchestrator.run(state, now)
        services.state_store.save(state)
    return report


async def run_smart(services: Services, now: datetime | None = None) -> SmartReport:
    if services.leads is None:
        raise CadenceError("Airtable is not configured (AIRTABLE_API_KEY, AIRTABLE_BASE_ID, AIRTABLE_TABLE)")
    orchestrator = SmartOrchestrator(
        services.tasks, services.calendar, services.leads, services.config.calendar_ids, services.settings
    )
    async with services.lock:
        state = services.state_store.load()
        report = await orchestrator.run(state, now)
        services.state_store.save(state)
    return report


async def run_cleanup(services: Services, dry_run: bool = False, now: datetime | None = None) -> CleanupReport:
    cleaner = CalendarCleaner(services.calendar, services.config.calendar_ids, services.settings)
    async with services.lock:
        state = services.state_store.load()
        report = await cleaner.run(state, now, dry_run=dry_run)
        if not dry_run:
            services.state_store.save(state)
    return report


async def run_calendar_sync(services: Services, now: datetime | None = None) -> SyncReport:
    sync = CalendarSync(
        services.tasks,
        services.calendar,
        services.config.primary_calendar,
        services.config.calendar_ids,
        services.settings,
    )
    async with services.lock:
        state = services.state_store.load()
        report = await sync.run(state, now)
        services.state_store.save(state)
    return report


def load_overview(services: Services, today: date | None = None) -> dict[date, int]:
    """Task count per day over the planning horizon."""
    tasks = services.tasks.list_active()
    return build_load_map(tasks, services.settings.horizon_days, today)


def ranked_tasks(services: Services, now: datetime | None = None, details: bool = False) -> list[dict]:
    now = now or datetime.now(services.settings.tz)
    weights = services.settings.weights
    ranked = []
    for task, score in rank_tasks(services.tasks.list_active(), weights, now):
        item = {
            "id": task.id,
            "title": task.title,
            "score": score,
            "tier": tier_of(task).label,
            "due": task.due_date.isoformat() if task.due_date else None,
        }
        if details:
            item["components"] = score_details(task, weights, now)
        ranked.append(item)
    return ranked


def history(services: Services) -> list[ActionRecord]:
    return list(services.state_store.load().history)


def undo_last(services: Services) -> ActionRecord | None:
    """Revert the most recent reversible write. Creations are not undone."""
    state = services.state_store.load()
    record = state.history.last()
    if record is None:
        return None

    match record.operation:
        case "assign_date" | "reschedule" | "move_project":
            updated = services.tasks.update(record.target_id, dict(record.before))
            state.remember(updated)
        case "move_event":
            fields = dict(record.before)
            calendar_id = fields.pop("calendarId")
            services.calendar.update_event(calendar_id, record.target_id, fields)
        case _:
            raise CadenceError(f"Cannot undo '{record.operation}'")

    state.history.pop()
    services.state_store.save(state)
    logger.info(f"Undid {record.operation} on {record.target_id}")
    return record
