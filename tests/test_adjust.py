"""Tests for the continuous adjustment flow."""

import asyncio
from collections import Counter
from datetime import date

import pytest

from cadence.adjust import ContinuousAdjuster
from cadence.core.state import SchedulerState
from cadence.core.tasks import TaskStatus
from cadence.errors import AdjustmentInProgress, StoreError

from conftest import FakeTaskRepo, make_task, paris

D = date(2025, 1, 20)


def run(adjuster, state, now):
    return asyncio.run(adjuster.run(state, now))


def crowded_day():
    """Five tasks on D; the two priority-0 tasks are the least urgent."""
    return [
        make_task("p1", "Contrat", priority=5, due=paris(2025, 1, 20), is_all_day=True),
        make_task("p2", "Devis", priority=3, due=paris(2025, 1, 20), is_all_day=True),
        make_task("p3", "Relecture", priority=1, due=paris(2025, 1, 20), is_all_day=True),
        make_task("low-a", "Ranger", priority=0, due=paris(2025, 1, 20), is_all_day=True),
        make_task("low-b", "Trier", priority=0, due=paris(2025, 1, 20), is_all_day=True),
    ]


def per_day(repo):
    return Counter(t.due_date for t in repo.tasks.values() if t.is_active and t.due_date)


class TestDateAssignment:
    def test_undated_tasks_get_a_day(self, now):
        repo = FakeTaskRepo(
            [
                make_task("crit", "Urgent", priority=5),
                make_task("mid", "Normal", priority=1),
                make_task("low", "Plus tard"),
            ]
        )
        state = SchedulerState()
        report = run(ContinuousAdjuster(repo), state, now)

        assert report.sync_mode == "full"
        assert report.tasks_without_date == 3
        assert report.dates_assigned == 3
        assert repo.tasks["crit"].due_date == date(2025, 1, 13)
        assert repo.tasks["mid"].due_date == date(2025, 2, 12)
        assert all(t.due is not None for t in repo.tasks.values())

    def test_assigned_as_all_day_midnight(self, now):
        repo = FakeTaskRepo([make_task("1", priority=5)])
        run(ContinuousAdjuster(repo), SchedulerState(), now)

        [(task_id, fields)] = repo.updates
        assert task_id == "1"
        assert fields["isAllDay"] is True
        assert fields["dueDate"] == "2025-01-13T00:00:00.000+0100"
        assert fields["id"] == "1" and fields["title"] and fields["projectId"] == "p1"

    def test_completed_tasks_left_alone(self, now, completed_task):
        repo = FakeTaskRepo([completed_task])
        report = run(ContinuousAdjuster(repo), SchedulerState(), now)
        assert report.tasks_without_date == 0
        assert repo.updates == []

    def test_writes_are_logged_for_undo(self, now):
        repo = FakeTaskRepo([make_task("1", priority=5)])
        state = SchedulerState()
        run(ContinuousAdjuster(repo), state, now)

        record = state.history.last()
        assert record.operation == "assign_date"
        assert record.target_id == "1"
        assert record.before["dueDate"] is None
        assert record.after["dueDate"] == "2025-01-13T00:00:00.000+0100"


class TestRebalancing:
    def test_overloaded_day_brought_back_to_cap(self, now):
        repo = FakeTaskRepo(crowded_day())
        report = run(ContinuousAdjuster(repo), SchedulerState(), now)

        assert report.conflicts_detected == 5
        assert report.tasks_rescheduled == 2
        assert per_day(repo)[D] == 3
        assert {t.id for t in repo.tasks.values() if t.due_date != D} == {"low-a", "low-b"}

    def test_moved_tasks_land_on_days_with_room(self, now):
        repo = FakeTaskRepo(crowded_day())
        run(ContinuousAdjuster(repo), SchedulerState(), now)
        assert max(per_day(repo).values()) <= 3
        moved = [t for t in repo.tasks.values() if t.due_date != D]
        assert all(t.is_all_day for t in moved)
        assert len({t.due_date for t in moved}) == len(moved)

    def test_rerun_is_idempotent(self, now):
        repo = FakeTaskRepo(crowded_day())
        adjuster = ContinuousAdjuster(repo)
        state = SchedulerState()
        run(adjuster, state, now)
        writes = len(repo.updates)

        report = run(adjuster, state, now)

        assert report.sync_mode == "delta"
        assert report.tasks_analyzed == 0
        assert len(repo.updates) == writes

    def test_unchanged_overload_is_not_touched(self, now):
        tasks = crowded_day()[:4]
        repo = FakeTaskRepo(tasks)
        state = SchedulerState()
        state.changed_tasks(tasks)

        report = run(ContinuousAdjuster(repo), state, now)
        assert report.conflicts_detected == 0
        assert repo.updates == []

    def test_new_task_triggers_rebalance_of_its_day(self, now):
        tasks = crowded_day()
        repo = FakeTaskRepo(tasks[:4])
        state = SchedulerState()
        state.changed_tasks(tasks[:4])
        repo.tasks["low-b"] = tasks[4]

        report = run(ContinuousAdjuster(repo), state, now)
        assert report.tasks_analyzed == 1
        assert report.conflicts_detected == 5
        assert report.tasks_rescheduled == 2
        assert per_day(repo)[D] == 3


class TestFailures:
    def test_failed_write_is_reported_and_run_continues(self, now):
        repo = FakeTaskRepo([make_task("a", "A"), make_task("b", "B")])
        repo.fail_updates = {"a"}
        state = SchedulerState()

        report = run(ContinuousAdjuster(repo), state, now)

        assert report.partial
        assert report.dates_assigned == 1
        assert len(report.failures) == 1
        assert repo.tasks["b"].due is not None
        assert state.last_sync == now

    def test_fetch_failure_leaves_state_untouched(self, now):
        repo = FakeTaskRepo([make_task("a")])
        state = SchedulerState()
        state.changed_tasks([make_task("old")])
        before = dict(state.snapshot)
        repo.fail_fetch = True

        with pytest.raises(StoreError):
            run(ContinuousAdjuster(repo), state, now)

        assert state.snapshot == before
        assert state.last_sync is None

    def test_second_concurrent_run_is_rejected(self, now):
        repo = FakeTaskRepo(crowded_day())
        adjuster = ContinuousAdjuster(repo)

        async def both():
            return await asyncio.gather(
                adjuster.run(SchedulerState(), now),
                adjuster.run(SchedulerState(), now),
                return_exceptions=True,
            )

        first, second = asyncio.run(both())
        assert first.tasks_rescheduled == 2
        assert isinstance(second, AdjustmentInProgress)
        assert not adjuster.running

    def test_running_flag_cleared_after_failure(self, now):
        repo = FakeTaskRepo()
        repo.fail_fetch = True
        adjuster = ContinuousAdjuster(repo)
        with pytest.raises(StoreError):
            run(adjuster, SchedulerState(), now)
        assert not adjuster.running


def test_report_summary(now):
    repo = FakeTaskRepo(crowded_day())
    report = run(ContinuousAdjuster(repo), SchedulerState(), now)
    assert report.summary().startswith("full sync: 5 analyzed")
    assert report.to_dict()["partial"] is False
    assert all(t.status == TaskStatus.ACTIVE for t in repo.tasks.values())
