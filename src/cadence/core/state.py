"""Scheduler state carried between adjustment runs.

The state is a plain object passed into the adjuster and handed back after
the run; persistence lives in ``adapters.state_file``.
"""

from dataclasses import dataclass, field
from datetime import datetime

from cadence.core.history import DEFAULT_HISTORY_SIZE, ActionLog
from cadence.core.tasks import Task


@dataclass
class SnapshotEntry:
    """What the store said about a task the last time it was seen."""

    modified_time: str | None
    due: str | None = None
    status: str = "active"

    @classmethod
    def of(cls, task: Task) -> "SnapshotEntry":
        return cls(
            modified_time=task.modified_time,
            due=task.due.isoformat() if task.due else None,
            status=task.status.value,
        )


@dataclass
class SchedulerState:
    snapshot: dict[str, SnapshotEntry] = field(default_factory=dict)
    last_sync: datetime | None = None
    event_map: dict[str, str] = field(default_factory=dict)
    history: ActionLog = field(default_factory=ActionLog)

    @property
    def is_full_sync(self) -> bool:
        """An empty snapshot means every task is treated as changed."""
        return not self.snapshot

    def changed_tasks(self, tasks: list[Task]) -> list[Task]:
        """Tasks that are new or whose modification stamp moved.

        The snapshot is refreshed for every task looked at.
        """
        full = self.is_full_sync
        changed = []
        for task in tasks:
            cached = self.snapshot.get(task.id)
            if full or cached is None or cached.modified_time != task.modified_time:
                changed.append(task)
            self.snapshot[task.id] = SnapshotEntry.of(task)
        return changed

    def remember(self, task: Task) -> None:
        """Record our own write so the next run does not see it as a change."""
        self.snapshot[task.id] = SnapshotEntry.of(task)

    def mark_synced(self, now: datetime) -> None:
        self.last_sync = now

    def to_dict(self) -> dict:
        return {
            "snapshot": {
                task_id: {"modified_time": e.modified_time, "due": e.due, "status": e.status}
                for task_id, e in self.snapshot.items()
            },
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "event_map": dict(self.event_map),
            "history": self.history.to_list(),
        }

    @classmethod
    def from_dict(cls, data: dict, history_size: int = DEFAULT_HISTORY_SIZE) -> "SchedulerState":
        snapshot = {
            task_id: SnapshotEntry(
                modified_time=entry.get("modified_time"),
                due=entry.get("due"),
                status=entry.get("status", "active"),
            )
            for task_id, entry in (data.get("snapshot") or {}).items()
        }
        last_sync = data.get("last_sync")
        return cls(
            snapshot=snapshot,
            last_sync=datetime.fromisoformat(last_sync) if last_sync else None,
            event_map=dict(data.get("event_map") or {}),
            history=ActionLog.from_list(data.get("history") or [], maxlen=history_size),
        )
