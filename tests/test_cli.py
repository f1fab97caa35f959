"""Tests for the command-line interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cadence.adapters.state_file import StateFileStore
from cadence.cli import main
from cadence.config import Config
from cadence.core.settings import SchedulerSettings
from cadence.workflows import Services

from conftest import FakeCalendarRepo, FakeTaskRepo, make_task


@pytest.fixture
def services(tmp_path):
    return Services(
        config=Config(),
        settings=SchedulerSettings(),
        tasks=FakeTaskRepo([make_task("1", "Write report", priority=5)]),
        calendar=FakeCalendarRepo(),
        state_store=StateFileStore(tmp_path / "state.json"),
    )


@pytest.fixture
def cli(services):
    runner = CliRunner()

    def invoke(*args):
        with patch("cadence.cli.load_config", return_value=Config()), patch(
            "cadence.cli.build_services", return_value=services
        ):
            return runner.invoke(main, list(args))

    return invoke


class TestCommands:
    def test_adjust_json(self, cli):
        result = cli("adjust", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["dates_assigned"] == 1
        assert data["partial"] is False

    def test_adjust_text(self, cli):
        result = cli("adjust")
        assert result.exit_code == 0
        assert "full sync" in result.output

    def test_store_failure_exits_with_error(self, cli, services):
        services.tasks.fail_fetch = True
        result = cli("adjust")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_smart_without_airtable(self, cli):
        result = cli("smart")
        assert result.exit_code == 1
        assert "Airtable" in result.output

    def test_daily(self, cli):
        result = cli("daily")
        assert result.exit_code == 0
        assert "Daily orchestration: success" in result.output

    def test_cleanup_dry_run(self, cli):
        result = cli("cleanup", "--dry-run", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output)["dry_run"] is True

    def test_sync_calendar(self, cli):
        result = cli("sync-calendar", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output)["candidates"] == 0

    def test_rank(self, cli):
        result = cli("rank", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output)[0]["title"] == "Write report"

    def test_rank_details(self, cli):
        result = cli("rank", "--details", "--json")
        assert result.exit_code == 0
        components = json.loads(result.output)[0]["components"]
        assert set(components) >= {"complexity", "urgency", "duration", "context"}

    def test_load_json(self, cli):
        result = cli("load", "--json", "--days", "5")
        assert result.exit_code == 0
        assert len(json.loads(result.output)) == 5

    def test_history_and_undo(self, cli):
        assert "No recorded actions." in cli("history").output
        assert "Nothing to undo." in cli("undo").output

        cli("adjust")
        assert "assign_date" in cli("history").output
        result = cli("undo")
        assert result.exit_code == 0
        assert "Undid assign_date on 1" in result.output

    def test_cal_auth_needs_secret_file(self, cli):
        result = cli("cal-auth")
        assert result.exit_code == 1
        assert "GOOGLE_CLIENT_SECRET_FILE" in result.output

    def test_version(self, cli):
        result = cli("--version")
        assert result.exit_code == 0
