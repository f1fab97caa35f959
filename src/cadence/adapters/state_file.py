"""JSON file storage for the scheduler state."""

import json
import logging
from pathlib import Path

from cadence.core.history import DEFAULT_HISTORY_SIZE
from cadence.core.state import SchedulerState

logger = logging.getLogger(__name__)


class StateFileStore:
    """
    Keeps ``SchedulerState`` in a single JSON file.

    A missing or unreadable file yields a fresh state, which makes the next
    adjustment a full sync.
    """

    def __init__(self, path: Path | str, history_size: int = DEFAULT_HISTORY_SIZE):
        self.path = Path(path).expanduser()
        self.history_size = history_size

    def load(self) -> SchedulerState:
        if not self.path.exists():
            return SchedulerState.from_dict({}, self.history_size)
        try:
            data = json.loads(self.path.read_text())
            return SchedulerState.from_dict(data, self.history_size)
        except (json.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Corrupt state file {self.path}, starting fresh: {e}")
            return SchedulerState.from_dict({}, self.history_size)

    def save(self, state: SchedulerState) -> None:
        """Write atomically: a crash mid-write leaves the old file intact."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state.to_dict(), indent=2, ensure_ascii=False))
        tmp.replace(self.path)
