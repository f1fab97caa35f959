"""Shared fixtures: in-memory stores standing in for TickTick, Google and Airtable."""

from dataclasses import replace
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from cadence.core.calendar import Event
from cadence.core.leads import Lead
from cadence.core.tasks import Task, TaskStatus, parse_ticktick_datetime
from cadence.errors import StoreError

PARIS = ZoneInfo("Europe/Paris")


class FakeTaskRepo:
    """Task store kept in a dict. Every write bumps ``modified_time``."""

    def __init__(self, tasks=(), projects=None):
        self.tasks = {t.id: t for t in tasks}
        self.projects = projects or {"inbox": "Inbox"}
        self.updates: list[tuple[str, dict]] = []
        self.created: list[dict] = []
        self.fail_updates: set[str] = set()
        self.fail_fetch = False
        self._stamp = 0

    def _next_stamp(self) -> str:
        self._stamp += 1
        return f"write-{self._stamp}"

    def list_active(self):
        if self.fail_fetch:
            raise StoreError("store unreachable")
        return [t for t in self.tasks.values() if t.is_active]

    def list_completed(self):
        if self.fail_fetch:
            raise StoreError("store unreachable")
        return [t for t in self.tasks.values() if not t.is_active]

    def list_projects(self):
        return dict(self.projects)

    def update(self, task_id, fields):
        if task_id in self.fail_updates:
            raise StoreError(f"update of {task_id} rejected")
        self.updates.append((task_id, fields))
        task = self.tasks[task_id]
        changes = {"modified_time": self._next_stamp()}
        if "dueDate" in fields:
            changes["due"] = parse_ticktick_datetime(fields["dueDate"], PARIS)
        if "isAllDay" in fields:
            changes["is_all_day"] = fields["isAllDay"]
        if "projectId" in fields:
            changes["project_id"] = fields["projectId"]
        stored = replace(task, **changes)
        self.tasks[task_id] = stored
        return stored

    def create(self, draft):
        self.created.append(draft)
        task_id = f"new-{len(self.created)}"
        task = Task(
            id=task_id,
            title=draft["title"],
            priority=draft.get("priority", 0),
            due=parse_ticktick_datetime(draft.get("dueDate"), PARIS),
            content=draft.get("content", ""),
            modified_time=self._next_stamp(),
        )
        self.tasks[task_id] = task
        return task


class FakeCalendarRepo:
    def __init__(self, events=()):
        self.events: list[Event] = list(events)
        self.created: list[tuple[str, dict]] = []
        self.updated: list[tuple[str, str, dict]] = []

    def list_events(self, calendar_id, start, end):
        return [
            e for e in self.events
            if e.calendar == calendar_id and e.start < end and (e.end or e.start) >= start
        ]

    def create_event(self, calendar_id, draft):
        self.created.append((calendar_id, draft))
        event = Event(
            id=f"ev-{len(self.created)}",
            title=draft["summary"],
            start=datetime.fromisoformat(draft["start"]["dateTime"]),
            end=datetime.fromisoformat(draft["end"]["dateTime"]),
            calendar=calendar_id,
            task_id=draft.get("extendedProperties", {}).get("private", {}).get("ticktickId"),
        )
        self.events.append(event)
        return event

    def update_event(self, calendar_id, event_id, fields):
        self.updated.append((calendar_id, event_id, fields))
        for i, event in enumerate(self.events):
            if event.id == event_id and event.calendar == calendar_id:
                changes = {}
                if "start" in fields:
                    changes["start"] = datetime.fromisoformat(fields["start"]["dateTime"])
                if "end" in fields:
                    changes["end"] = datetime.fromisoformat(fields["end"]["dateTime"])
                self.events[i] = replace(event, **changes)
                return self.events[i]
        raise StoreError(f"no event {event_id}")


class FakeLeadRepo:
    def __init__(self, leads=()):
        self.leads = list(leads)

    def list_leads(self):
        return list(self.leads)


def paris(*args) -> datetime:
    return datetime(*args, tzinfo=PARIS)


def make_task(task_id, title="Task", due=None, priority=0, **kwargs) -> Task:
    kwargs.setdefault("modified_time", "v1")
    kwargs.setdefault("project_id", "p1")
    return Task(id=task_id, title=title, due=due, priority=priority, **kwargs)


def make_event(title, start, end, calendar="primary", event_id=None, **kwargs) -> Event:
    return Event(title=title, start=start, end=end, calendar=calendar, id=event_id or title, **kwargs)


@pytest.fixture
def now():
    """Monday 13 January 2025, 07:00 in Paris."""
    return paris(2025, 1, 13, 7, 0)


@pytest.fixture
def task_repo():
    return FakeTaskRepo()


@pytest.fixture
def calendar_repo():
    return FakeCalendarRepo()


@pytest.fixture
def completed_task():
    return make_task("done", "Finished thing", status=TaskStatus.COMPLETED)


@pytest.fixture
def lead_repo():
    return FakeLeadRepo(
        [
            Lead(id="l1", first_name="Ana", last_name="Roy", last_contact=paris(2024, 12, 20)),
            Lead(id="l2", first_name="Ben", last_name="Cole", last_contact=paris(2025, 1, 3)),
            Lead(id="l3", first_name="Cy", last_name="Dahl", last_contact=paris(2025, 1, 12)),
        ]
    )
