"""Bounded log of the writes made to external stores, used for undo."""

from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime

DEFAULT_HISTORY_SIZE = 50


@dataclass
class ActionRecord:
    """One write: what changed on which object, with enough to revert it."""

    operation: str
    target_id: str
    before: dict = field(default_factory=dict)
    after: dict = field(default_factory=dict)
    at: str = ""


class ActionLog:
    """Ring buffer of ``ActionRecord``; the oldest entries fall off."""

    def __init__(self, records: list[ActionRecord] | None = None, maxlen: int = DEFAULT_HISTORY_SIZE):
        self._records: deque[ActionRecord] = deque(records or (), maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    @property
    def maxlen(self) -> int | None:
        return self._records.maxlen

    def record(
        self,
        operation: str,
        target_id: str,
        before: dict | None = None,
        after: dict | None = None,
        at: datetime | None = None,
    ) -> ActionRecord:
        entry = ActionRecord(
            operation=operation,
            target_id=target_id,
            before=before or {},
            after=after or {},
            at=(at or datetime.now()).isoformat(timespec="seconds"),
        )
        self._records.append(entry)
        return entry

    def last(self) -> ActionRecord | None:
        return self._records[-1] if self._records else None

    def pop(self) -> ActionRecord | None:
        return self._records.pop() if self._records else None

    def to_list(self) -> list[dict]:
        return [asdict(r) for r in self._records]

    @classmethod
    def from_list(cls, data: list[dict], maxlen: int = DEFAULT_HISTORY_SIZE) -> "ActionLog":
        records = [
            ActionRecord(
                operation=item.get("operation", ""),
                target_id=item.get("target_id", ""),
                before=item.get("before", {}),
                after=item.get("after", {}),
                at=item.get("at", ""),
            )
            for item in data
        ]
        return cls(records, maxlen=maxlen)
