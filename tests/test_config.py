"""Tests for configuration loading."""

import json
from unittest.mock import patch

import pytest

from cadence.config import Config, Tokens, load_config
from cadence.core.keywords import classify


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "cadence.conf"
    with patch("cadence.config.CONFIG_FILE", path):
        yield path


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, config_file):
        config = load_config()
        assert config == Config()
        assert config.max_daily_tasks == 3
        assert config.timezone == "Europe/Paris"

    def test_reads_values(self, config_file):
        config_file.write_text(
            "\n".join(
                [
                    "# Cadence settings",
                    "TICKTICK_CLIENT_ID=abc",
                    'TICKTICK_CLIENT_SECRET="s3cr3t" # keep private',
                    "BUSINESS_CALENDAR=work@group.calendar.google.com",
                    "WORK_HOURS=09:00-17:00",
                    "MAX_DAILY_TASKS=4",
                    "HORIZON_DAYS=30  # a month",
                    "PRIORITY_WEIGHTS=0.25, 0.25, 0.25, 0.25",
                    "RETRY_BACKOFF=1.5",
                    "log_level=debug",
                    "",
                    "not a setting",
                ]
            )
        )
        config = load_config()
        assert config.ticktick_client_id == "abc"
        assert config.ticktick_client_secret == "s3cr3t"
        assert config.calendar_ids == ["primary", "work@group.calendar.google.com"]
        assert config.max_daily_tasks == 4
        assert config.horizon_days == 30
        assert config.priority_weights == [0.25, 0.25, 0.25, 0.25]
        assert config.retry_backoff == 1.5
        assert config.log_level == "DEBUG"

    def test_bad_values_keep_defaults(self, config_file):
        config_file.write_text("MAX_DAILY_TASKS=lots\nPRIORITY_WEIGHTS=1,2\nUNKNOWN_KEY=1\n")
        config = load_config()
        assert config.max_daily_tasks == 3
        assert config.priority_weights == [0.4, 0.3, 0.2, 0.1]


class TestSchedulerSettings:
    def test_maps_config(self):
        config = Config(
            work_hours="09:00-17:00",
            lunch_hours="12:30-13:30",
            max_daily_tasks=5,
            buffer_minutes=10,
            priority_weights=[0.1, 0.2, 0.3, 0.4],
        )
        settings = config.scheduler_settings()
        assert settings.daily_cap == 5
        assert settings.constraints.work_start == 9
        assert settings.constraints.work_end == 17
        assert settings.constraints.lunch_start == 12
        assert settings.constraints.buffer_minutes == 10
        assert settings.weights.context == 0.4

    def test_bad_hours_fall_back(self):
        settings = Config(work_hours="all day").scheduler_settings()
        assert (settings.constraints.work_start, settings.constraints.work_end) == (8, 18)

    def test_keyword_tables_override(self, tmp_path):
        path = tmp_path / "tables.json"
        path.write_text(json.dumps({"event_priority": {"standup": 8}}))
        tables = Config(keyword_tables_file=str(path)).keyword_tables()
        assert classify("Daily standup", tables.event_priority, 1.0) == 8

    def test_unreadable_keyword_tables_use_defaults(self, tmp_path):
        path = tmp_path / "tables.json"
        path.write_text("{not json")
        tables = Config(keyword_tables_file=str(path)).keyword_tables()
        assert classify("Sport", tables.event_priority, 1.0) == 6


class TestTokens:
    def test_save_and_load(self, tmp_path):
        token_file = tmp_path / "config" / ".tokens.json"
        with patch("cadence.config.TOKEN_FILE", token_file):
            Tokens(access_token="a", refresh_token="r", expires_at=42).save()
            assert token_file.stat().st_mode & 0o777 == 0o600
            assert Tokens.load() == Tokens(access_token="a", refresh_token="r", expires_at=42)

    def test_missing_file(self, tmp_path):
        with patch("cadence.config.TOKEN_FILE", tmp_path / "nope.json"):
            assert Tokens.load() == Tokens()
