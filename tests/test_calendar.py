"""Tests for core calendar logic."""

from datetime import date, datetime, time, timezone

import pytest

from cadence.core.calendar import (
    Event,
    TimeSlot,
    filter_events_by_date,
    find_free_slots,
    sort_events_by_start,
)

from conftest import PARIS, paris


@pytest.fixture
def today():
    return date(2025, 1, 15)


@pytest.fixture
def make_event(today):
    """Factory for events on ``today``."""

    def _make(title: str, start_hour: int, end_hour: int | None, all_day: bool = False, start_minute: int = 0) -> Event:
        start = datetime.combine(today, time(start_hour, start_minute), tzinfo=PARIS)
        end = datetime.combine(today, time(end_hour, 0), tzinfo=PARIS) if end_hour else None
        return Event(title=title, start=start, end=end, calendar="primary", all_day=all_day)

    return _make


class TestEvent:
    def test_duration_minutes(self, make_event):
        assert make_event("Meeting", 9, 11).duration_minutes() == 120
        assert make_event("Open", 9, None).duration_minutes() is None

    def test_overlaps_is_strict(self, make_event):
        a = make_event("A", 9, 10)
        assert a.overlaps(make_event("B", 9, 11, start_minute=30))
        assert not a.overlaps(make_event("C", 10, 11))

    def test_all_day_never_overlaps(self, make_event):
        assert not make_event("Holiday", 0, 23, all_day=True).overlaps(make_event("A", 9, 10))

    def test_from_api_timed(self):
        event = Event.from_api(
            {
                "id": "e1",
                "summary": "Standup",
                "start": {"dateTime": "2025-01-15T09:00:00Z"},
                "end": {"dateTime": "2025-01-15T09:30:00Z"},
                "created": "2025-01-01T12:00:00.000Z",
                "colorId": "5",
                "extendedProperties": {"private": {"ticktickId": "t42"}},
            },
            "primary",
            PARIS,
        )
        assert event.id == "e1"
        assert event.start == paris(2025, 1, 15, 10, 0)
        assert event.start.tzinfo == PARIS
        assert event.created == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert event.color_id == "5"
        assert event.task_id == "t42"
        assert not event.all_day

    def test_from_api_all_day(self):
        event = Event.from_api(
            {"summary": "Holiday", "start": {"date": "2025-01-15"}, "end": {"date": "2025-01-16"}},
            "primary",
            PARIS,
        )
        assert event.all_day
        assert event.start == paris(2025, 1, 15)
        assert not event.is_timed

    def test_from_api_without_start(self):
        assert Event.from_api({"summary": "Cancelled"}, "primary") is None

    def test_from_api_defaults_title(self):
        event = Event.from_api({"start": {"dateTime": "2025-01-15T09:00:00+01:00"}}, "primary")
        assert event.title == "Untitled"
        assert event.end is None


class TestTimeSlot:
    def test_duration_and_date(self, today):
        slot = TimeSlot(paris(2025, 1, 15, 9, 0), paris(2025, 1, 15, 10, 30))
        assert slot.duration_minutes() == 90
        assert slot.date == today

    def test_overlaps(self):
        slot = TimeSlot(paris(2025, 1, 15, 9, 0), paris(2025, 1, 15, 10, 0))
        assert slot.overlaps(TimeSlot(paris(2025, 1, 15, 9, 30), paris(2025, 1, 15, 11, 0)))
        assert not slot.overlaps(TimeSlot(paris(2025, 1, 15, 10, 0), paris(2025, 1, 15, 11, 0)))


class TestFindFreeSlots:
    def test_no_events_returns_full_day(self, today):
        slots = find_free_slots([], target_date=today, tz=PARIS)
        assert len(slots) == 1
        assert slots[0].start == paris(2025, 1, 15, 8, 0)
        assert slots[0].end == paris(2025, 1, 15, 18, 0)

    def test_single_event_middle_of_day(self, make_event):
        slots = find_free_slots([make_event("Lunch", 12, 13)])
        assert [(s.start.hour, s.end.hour) for s in slots] == [(8, 12), (13, 18)]

    def test_back_to_back_events(self, make_event):
        events = [make_event("A", 9, 10), make_event("B", 10, 11)]
        slots = find_free_slots(events)
        assert [(s.start.hour, s.end.hour) for s in slots] == [(8, 9), (11, 18)]

    def test_overlapping_events_merge(self, make_event):
        events = [make_event("A", 9, 11), make_event("B", 10, 12)]
        slots = find_free_slots(events)
        assert [(s.start.hour, s.end.hour) for s in slots] == [(8, 9), (12, 18)]

    def test_min_duration_filters_short_gaps(self, make_event):
        events = [make_event("A", 8, 9, start_minute=0), make_event("B", 9, 17, start_minute=20)]
        slots = find_free_slots(events, min_duration=30)
        assert [(s.start.hour, s.end.hour) for s in slots] == [(17, 18)]

    def test_all_day_events_ignored(self, make_event):
        slots = find_free_slots([make_event("Holiday", 0, None, all_day=True)])
        assert len(slots) == 1
        assert slots[0].duration_minutes() == 600

    def test_buffer_pads_events(self, make_event):
        slots = find_free_slots([make_event("A", 10, 11)], buffer_minutes=15)
        assert slots[0].end == paris(2025, 1, 15, 9, 45)
        assert slots[1].start == paris(2025, 1, 15, 11, 15)

    def test_exclude_morning(self, today):
        slots = find_free_slots([], target_date=today, exclude_morning=True, tz=PARIS)
        assert slots[0].start == paris(2025, 1, 15, 12, 0)

    def test_events_outside_work_hours_ignored(self, make_event):
        slots = find_free_slots([make_event("Early", 6, 7), make_event("Late", 19, 20)])
        assert len(slots) == 1


class TestFilterAndSort:
    def test_filters_to_single_date(self, make_event):
        other = Event("Tomorrow", paris(2025, 1, 16, 9, 0), paris(2025, 1, 16, 10, 0), "primary")
        events = [make_event("Today", 9, 10), other]
        assert [e.title for e in filter_events_by_date(events, date(2025, 1, 15))] == ["Today"]

    def test_filters_to_range(self, make_event):
        other = Event("Tomorrow", paris(2025, 1, 16, 9, 0), paris(2025, 1, 16, 10, 0), "primary")
        events = [make_event("Today", 9, 10), other]
        assert len(filter_events_by_date(events, date(2025, 1, 15), date(2025, 1, 16))) == 2

    def test_sorts_chronologically(self, make_event):
        events = [make_event("Late", 15, 16), make_event("Early", 9, 10)]
        assert [e.title for e in sort_events_by_start(events)] == ["Early", "Late"]
