"""Tests for the background scheduler jobs."""

import asyncio
import time

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from cadence.adapters.state_file import StateFileStore
from cadence.config import Config
from cadence.core.settings import SchedulerSettings
from cadence.jobs import adjustment_job, daily_job, setup_scheduler
from cadence.workflows import Services

from conftest import FakeCalendarRepo, FakeTaskRepo, make_task


class SlowTaskRepo(FakeTaskRepo):
    """Task store whose reads take long enough for two jobs to interleave."""

    def list_active(self):
        time.sleep(0.02)
        return super().list_active()


@pytest.fixture
def services(tmp_path):
    return Services(
        config=Config(adjust_interval_minutes=15, daily_orchestration_time="05:30"),
        settings=SchedulerSettings(),
        tasks=FakeTaskRepo([make_task("1")]),
        calendar=FakeCalendarRepo(),
        state_store=StateFileStore(tmp_path / "state.json"),
    )


class TestSetupScheduler:
    def test_registers_both_jobs(self, services):
        scheduler = setup_scheduler(services)

        adjust = scheduler.get_job("continuous_adjustment")
        assert isinstance(adjust.trigger, IntervalTrigger)
        assert adjust.trigger.interval.total_seconds() == 15 * 60
        assert adjust.max_instances == 1
        assert adjust.coalesce is True

        daily = scheduler.get_job("daily_orchestration")
        assert isinstance(daily.trigger, CronTrigger)

    def test_bad_daily_time_skips_daily_job(self, services):
        services.config.daily_orchestration_time = "six"
        scheduler = setup_scheduler(services)
        assert scheduler.get_job("daily_orchestration") is None
        assert scheduler.get_job("continuous_adjustment") is not None


class TestJobs:
    def test_adjustment_job_saves_state(self, services):
        asyncio.run(adjustment_job(services))
        assert services.state_store.load().last_sync is not None

    def test_adjustment_job_skips_when_busy(self, services, caplog):
        services.adjuster._running = True
        with caplog.at_level("INFO"):
            asyncio.run(adjustment_job(services))
        assert "already running" in caplog.text
        assert services.tasks.updates == []

    def test_adjustment_job_logs_failures(self, services, caplog):
        services.tasks.fail_fetch = True
        asyncio.run(adjustment_job(services))
        assert "Scheduled adjustment failed" in caplog.text

    def test_daily_job(self, services, caplog):
        with caplog.at_level("INFO"):
            asyncio.run(daily_job(services))
        assert "Daily orchestration: success" in caplog.text

    def test_concurrent_jobs_run_one_at_a_time(self, tmp_path):
        inbox = [
            make_task(f"bill{i}", f"Payer la facture {name}", project_id="inbox")
            for i, name in enumerate(("EDF", "gaz", "eau"))
        ]
        work = [make_task(f"work{i}", f"Rapport {i}", project_id="pf") for i in range(3)]
        repo = SlowTaskRepo(inbox + work, projects={"inbox": "Inbox", "pf": "Finances"})
        services = Services(
            config=Config(),
            settings=SchedulerSettings(),
            tasks=repo,
            calendar=FakeCalendarRepo(),
            state_store=StateFileStore(tmp_path / "state.json"),
        )

        async def both():
            await asyncio.gather(adjustment_job(services), daily_job(services))

        asyncio.run(both())

        assert all(repo.tasks[t.id].project_id == "pf" for t in inbox)
        assert all(t.due is not None for t in repo.tasks.values())
        operations = [r.operation for r in services.state_store.load().history]
        assert operations.count("move_project") == 3
        assert operations.count("assign_date") == 6
        assert not services.lock.locked()
