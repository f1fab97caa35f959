"""Pure calendar domain logic - no I/O dependencies."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo


def _parse_google_time(raw: dict, tz: tzinfo | None) -> tuple[datetime | None, bool]:
    """Parse a Google ``start``/``end`` object into (datetime, all_day)."""
    if "dateTime" in raw:
        dt = datetime.fromisoformat(raw["dateTime"].replace("Z", "+00:00"))
        if tz is not None:
            dt = dt.astimezone(tz) if dt.tzinfo else dt.replace(tzinfo=tz)
        return dt, False
    if "date" in raw:
        # All-day event - attach timezone so sorting with timed events works
        return datetime.fromisoformat(raw["date"]).replace(tzinfo=tz), True
    return None, False


@dataclass
class Event:
    """A calendar event."""

    title: str
    start: datetime
    end: datetime | None
    calendar: str
    all_day: bool = False
    id: str = ""
    color_id: str | None = None
    created: datetime | None = None
    task_id: str | None = None

    @property
    def is_timed(self) -> bool:
        return not self.all_day and self.end is not None

    def duration_minutes(self) -> int | None:
        """Event duration in minutes, or None if no end time."""
        if not self.end:
            return None
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "Event") -> bool:
        """Strict overlap; touching intervals do not overlap."""
        if not self.is_timed or not other.is_timed:
            return False
        return self.start < other.end and other.start < self.end

    @classmethod
    def from_api(cls, item: dict, calendar: str, tz: tzinfo | None = None) -> "Event | None":
        """Create an Event from a Google Calendar API item.

        Returns None for items without a usable start (cancelled instances).
        """
        start, all_day = _parse_google_time(item.get("start", {}), tz)
        if start is None:
            return None
        end, _ = _parse_google_time(item.get("end", {}), tz)

        created = None
        if item.get("created"):
            try:
                created = datetime.fromisoformat(item["created"].replace("Z", "+00:00"))
            except ValueError:
                created = None

        private = item.get("extendedProperties", {}).get("private", {})
        return cls(
            id=item.get("id", ""),
            title=item.get("summary", "Untitled"),
            start=start,
            end=end,
            calendar=calendar,
            all_day=all_day,
            color_id=item.get("colorId"),
            created=created,
            task_id=private.get("ticktickId"),
        )


@dataclass
class TimeSlot:
    """A candidate or free time slot. ``score`` only ranks candidates."""

    start: datetime
    end: datetime
    score: float = 0.0

    @property
    def date(self) -> date:
        return self.start.date()

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeSlot") -> bool:
        """Check if this slot overlaps with another."""
        return self.start < other.end and other.start < self.end


def find_free_slots(
    events: list[Event],
    work_start: int = 8,
    work_end: int = 18,
    min_duration: int = 30,
    target_date: date | None = None,
    buffer_minutes: int = 0,
    exclude_morning: bool = False,
    morning_end_hour: int = 12,
    tz: tzinfo | None = None,
) -> list[TimeSlot]:
    """
    Find free time slots between events during work hours.

    Pure function - no I/O.

    Args:
        events: List of calendar events (should be for a single day)
        work_start: Start of work day (hour, 24h format)
        work_end: End of work day (hour, 24h format)
        min_duration: Minimum slot duration in minutes
        target_date: Date to find slots for (defaults to first event's date or today)
        buffer_minutes: Padding kept free on both sides of every event
        exclude_morning: Start the search at ``morning_end_hour``
        tz: Timezone for the work-hour bounds (defaults to the events' timezone)

    Returns:
        List of free TimeSlots
    """
    if target_date:
        d = target_date
    elif events:
        d = events[0].start.date()
    else:
        d = date.today()

    timed_events = sorted([e for e in events if e.is_timed], key=lambda e: e.start)

    if tz is None:
        if timed_events:
            tz = timed_events[0].start.tzinfo
        elif events:
            tz = events[0].start.tzinfo
    first_hour = max(work_start, morning_end_hour) if exclude_morning else work_start
    day_start = datetime.combine(d, time(first_hour, 0), tzinfo=tz)
    day_end = datetime.combine(d, time(work_end, 0), tzinfo=tz)
    buffer = timedelta(minutes=buffer_minutes)

    free_slots = []
    current_time = day_start

    for event in timed_events:
        event_start = event.start - buffer
        event_end = event.end + buffer

        if event_end <= day_start or event_start >= day_end:
            continue

        event_start = max(event_start, day_start)
        event_end = min(event_end, day_end)

        if event_start > current_time:
            gap = TimeSlot(start=current_time, end=event_start)
            if gap.duration_minutes() >= min_duration:
                free_slots.append(gap)

        current_time = max(current_time, event_end)

    if current_time < day_end:
        gap = TimeSlot(start=current_time, end=day_end)
        if gap.duration_minutes() >= min_duration:
            free_slots.append(gap)

    return free_slots


def filter_events_by_date(
    events: list[Event],
    start_date: date,
    end_date: date | None = None,
) -> list[Event]:
    """
    Filter events to those within a date range.

    Pure function - no I/O.
    """
    end_date = end_date or start_date
    return [e for e in events if start_date <= e.start.date() <= end_date]


def sort_events_by_start(events: list[Event]) -> list[Event]:
    """Sort events by start time."""
    return sorted(events, key=lambda e: e.start)
