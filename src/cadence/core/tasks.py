"""Pure task domain logic - no I/O dependencies."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, tzinfo
from enum import Enum

CALL_SESSION = "call_session"

_CALL_SESSION_TAGS = {"session-appels", "session_appels", "calls", "appels"}
_MORNING_TAGS = {"morning", "matin"}
_AFTERNOON_TAGS = {"afternoon", "apres-midi", "après-midi"}

TICKTICK_DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
)


class TaskStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


def parse_ticktick_datetime(value: str | None, tz: tzinfo | None = None) -> datetime | None:
    """Parse a TickTick timestamp such as ``2025-01-15T09:00:00.000+0000``.

    Date-only strings parse to midnight. Unparseable input yields None rather
    than raising: an ill-formed date just means the task needs a slot.
    """
    if not value:
        return None
    parsed = None
    for fmt in TICKTICK_DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    if tz is not None:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        else:
            parsed = parsed.astimezone(tz)
    return parsed


def format_ticktick_datetime(value: datetime) -> str:
    """Inverse of ``parse_ticktick_datetime`` for aware datetimes."""
    return value.strftime("%Y-%m-%dT%H:%M:%S.000%z")


@dataclass
class Task:
    """A task from the task store."""

    id: str
    title: str
    priority: int = 0
    due: datetime | None = None
    project_id: str = ""
    content: str = ""
    is_all_day: bool = False
    tags: tuple[str, ...] = ()
    status: TaskStatus = TaskStatus.ACTIVE
    time_estimate: int | None = None
    modified_time: str | None = None
    preferred_time: str | None = None
    category: str = ""
    extra: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def due_date(self) -> date | None:
        return self.due.date() if self.due else None

    @property
    def is_active(self) -> bool:
        return self.status == TaskStatus.ACTIVE

    @property
    def is_call_session(self) -> bool:
        return self.category == CALL_SESSION

    @property
    def has_time(self) -> bool:
        """True when the due date carries a real time of day.

        A due at exactly midnight is a date-only value that leaked into a
        timed field, so it counts as untimed.
        """
        if not self.due or self.is_all_day:
            return False
        return self.due.time() != time(0, 0)

    @property
    def text(self) -> str:
        return f"{self.title} {self.content or ''}".lower()

    def has_tag(self, tag: str) -> bool:
        return tag.lower() in {t.lower() for t in self.tags}

    def with_due(self, due: datetime | None, is_all_day: bool = True) -> "Task":
        return replace(self, due=due, is_all_day=is_all_day)

    def update_fields(self, **changes) -> dict:
        """Partial update merged with the fields the store requires.

        The store rejects updates without id, projectId and title, and would
        blank them if they were left out, so they always ride along.
        """
        fields = {"id": self.id, "projectId": self.project_id, "title": self.title}
        fields.update(changes)
        return fields

    @classmethod
    def from_api(cls, data: dict, tz: tzinfo | None = None) -> "Task":
        """Create Task from TickTick API response."""
        tags = tuple(data.get("tags") or ())
        lowered = {t.lower() for t in tags}

        preferred = None
        if lowered & _MORNING_TAGS:
            preferred = "morning"
        elif lowered & _AFTERNOON_TAGS:
            preferred = "afternoon"

        category = CALL_SESSION if lowered & _CALL_SESSION_TAGS else data.get("category", "")

        estimate = data.get("timeEstimate")
        try:
            estimate = int(estimate) if estimate else None
        except (TypeError, ValueError):
            estimate = None

        return cls(
            id=data["id"],
            title=data.get("title") or "",
            priority=data.get("priority", 0) or 0,
            due=parse_ticktick_datetime(data.get("dueDate"), tz),
            project_id=data.get("projectId", ""),
            content=data.get("content") or "",
            is_all_day=bool(data.get("isAllDay", False)),
            tags=tags,
            status=TaskStatus.COMPLETED if data.get("status") == 2 else TaskStatus.ACTIVE,
            time_estimate=estimate,
            modified_time=data.get("modifiedTime"),
            preferred_time=preferred,
            category=category,
        )
