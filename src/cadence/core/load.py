"""Day-load tracking over the rolling planning horizon.

The load map counts active dated tasks per calendar day. Callers must bump
the chosen day (``assign_day``) before picking again, otherwise a batch of
picks all lands on the same day.
"""

from collections import Counter
from datetime import date, timedelta

from cadence.core.priority import PriorityTier
from cadence.core.tasks import Task

DEFAULT_HORIZON_DAYS = 60
DEFAULT_DAILY_CAP = 3
P2_WINDOW_DAYS = 7


def build_load_map(
    tasks: list[Task],
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    today: date | None = None,
) -> dict[date, int]:
    """Every horizon day starts at 0; +1 per active task due inside the horizon."""
    today = today or date.today()
    load = {today + timedelta(days=i): 0 for i in range(horizon_days)}
    for task in tasks:
        if not task.is_active or task.due_date is None:
            continue
        if task.due_date in load:
            load[task.due_date] += 1
    return load


def pick_least_loaded_day(
    tier: PriorityTier,
    load_map: dict[date, int],
    today: date | None = None,
    cap: int = DEFAULT_DAILY_CAP,
) -> date:
    """Pick a day for a task of ``tier``.

    Days holding at most ``cap - 1`` tasks qualify. P1 takes the earliest
    qualifying day, P2 the earliest within a week (else the earliest), P3/P4
    the middle of the qualifying list. With nothing qualifying, the globally
    least-loaded day wins (earliest on ties).
    """
    if not load_map:
        raise ValueError("load map is empty")

    days = sorted(load_map)
    qualifying = [d for d in days if load_map[d] <= cap - 1]

    if not qualifying:
        return min(days, key=lambda d: (load_map[d], d))

    if tier == PriorityTier.P1_CRITICAL:
        return qualifying[0]

    if tier == PriorityTier.P2_HIGH:
        start = today or days[0]
        window_end = start + timedelta(days=P2_WINDOW_DAYS)
        within = [d for d in qualifying if d < window_end]
        return within[0] if within else qualifying[0]

    return qualifying[len(qualifying) // 2]


def assign_day(load_map: dict[date, int], day: date, delta: int = 1) -> None:
    """Apply a placement (or a removal, with ``delta=-1``) to the load map."""
    if day in load_map:
        load_map[day] = max(0, load_map[day] + delta)


def count_by_day(tasks: list[Task]) -> Counter:
    """Active tasks per due day."""
    return Counter(t.due_date for t in tasks if t.is_active and t.due_date is not None)


def find_overloaded_days(tasks: list[Task], cap: int = DEFAULT_DAILY_CAP) -> dict[date, int]:
    """Days carrying more than ``cap`` active tasks."""
    return {day: n for day, n in sorted(count_by_day(tasks).items()) if n > cap}
