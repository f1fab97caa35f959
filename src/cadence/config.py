"""Configuration management for Cadence."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cadence.core.keywords import KeywordTables
from cadence.core.priority import PriorityWeights
from cadence.core.settings import SchedulerSettings
from cadence.core.slots import SlotConstraints

logger = logging.getLogger(__name__)

CADENCE_HOME = Path(os.environ.get("CADENCE_HOME", Path.home() / "cadence"))
CONFIG_FILE = CADENCE_HOME / "config" / "cadence.conf"
TOKEN_FILE = CADENCE_HOME / "config" / ".tokens.json"
GOOGLE_TOKEN_FILE = CADENCE_HOME / "config" / "google_token.json"
DATA_DIR = CADENCE_HOME / "data"
STATE_FILE = DATA_DIR / "state.json"


def _parse_hours(value: str, default: tuple[int, int]) -> tuple[int, int]:
    """Parse ``"08:00-18:00"`` (or ``"8-18"``) into whole start/end hours."""
    try:
        start, end = value.split("-")
        return int(start.split(":")[0]), int(end.split(":")[0])
    except ValueError:
        logger.warning(f"Invalid hour range '{value}', using {default}")
        return default


def _parse_int(key: str, value: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {key.upper()}: '{value}'")
        return default


def _parse_float(key: str, value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number for {key.upper()}: '{value}'")
        return default


@dataclass
class Config:
    """Cadence configuration."""

    ticktick_client_id: str = ""
    ticktick_client_secret: str = ""
    google_client_secret_file: str = ""
    primary_calendar: str = "primary"
    business_calendar: str = ""
    timezone: str = "Europe/Paris"
    work_hours: str = "08:00-18:00"
    lunch_hours: str = "12:00-14:00"
    max_daily_tasks: int = 3
    horizon_days: int = 60
    slot_search_days: int = 14
    buffer_minutes: int = 0
    sync_buffer_minutes: int = 15
    cleanup_days: int = 7
    priority_weights: list[float] = field(default_factory=lambda: [0.4, 0.3, 0.2, 0.1])
    adjust_interval_minutes: int = 30
    daily_orchestration_time: str = "06:00"
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_table: str = ""
    retry_attempts: int = 3
    retry_backoff: float = 0.5
    history_size: int = 50
    log_level: str = "INFO"
    keyword_tables_file: str = ""

    @property
    def calendar_ids(self) -> list[str]:
        """Calendars the scheduler reads, primary first."""
        return [c for c in (self.primary_calendar, self.business_calendar) if c]

    def keyword_tables(self) -> KeywordTables:
        """Built-in keyword tables, overridden by ``KEYWORD_TABLES_FILE`` if set."""
        if not self.keyword_tables_file:
            return KeywordTables()
        path = Path(self.keyword_tables_file).expanduser()
        try:
            return KeywordTables.from_dict(json.loads(path.read_text()))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load keyword tables from {path}: {e}")
            return KeywordTables()

    def scheduler_settings(self) -> SchedulerSettings:
        work_start, work_end = _parse_hours(self.work_hours, (8, 18))
        lunch_start, lunch_end = _parse_hours(self.lunch_hours, (12, 14))
        weights = PriorityWeights(*self.priority_weights[:4]) if len(self.priority_weights) >= 4 else PriorityWeights()
        return SchedulerSettings(
            horizon_days=self.horizon_days,
            daily_cap=self.max_daily_tasks,
            slot_search_days=self.slot_search_days,
            cleanup_days=self.cleanup_days,
            sync_buffer_minutes=self.sync_buffer_minutes,
            timezone=self.timezone,
            constraints=SlotConstraints(
                work_start=work_start,
                work_end=work_end,
                lunch_start=lunch_start,
                lunch_end=lunch_end,
                buffer_minutes=self.buffer_minutes,
            ),
            weights=weights,
            tables=self.keyword_tables(),
        )


@dataclass
class Tokens:
    """OAuth tokens for TickTick."""

    access_token: str = ""
    refresh_token: str = ""
    expires_at: int = 0

    def save(self) -> None:
        """Save tokens to file."""
        TOKEN_FILE.parent.mkdir(parents=True, exist_ok=True)
        TOKEN_FILE.write_text(
            json.dumps(
                {
                    "access_token": self.access_token,
                    "refresh_token": self.refresh_token,
                    "expires_at": self.expires_at,
                }
            )
        )
        TOKEN_FILE.chmod(0o600)

    @classmethod
    def load(cls) -> "Tokens":
        """Load tokens from file."""
        if not TOKEN_FILE.exists():
            return cls()
        try:
            data = json.loads(TOKEN_FILE.read_text())
            return cls(
                access_token=data.get("access_token", ""),
                refresh_token=data.get("refresh_token", ""),
                expires_at=data.get("expires_at", 0),
            )
        except (json.JSONDecodeError, KeyError):
            return cls()


def load_config() -> Config:
    """Load configuration from cadence.conf file."""
    config = Config()

    if not CONFIG_FILE.exists():
        return config

    for line in CONFIG_FILE.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = value.strip()

        # Handle quoted values with inline comments: "value" # comment
        if value.startswith('"') or value.startswith("'"):
            quote = value[0]
            end_quote = value.find(quote, 1)
            value = value[1:end_quote] if end_quote != -1 else value[1:]
        elif "#" in value:
            value = value.split("#")[0].strip()

        match key:
            case "ticktick_client_id":
                config.ticktick_client_id = value
            case "ticktick_client_secret":
                config.ticktick_client_secret = value
            case "google_client_secret_file":
                config.google_client_secret_file = value
            case "primary_calendar":
                config.primary_calendar = value
            case "business_calendar":
                config.business_calendar = value
            case "timezone":
                config.timezone = value
            case "work_hours":
                config.work_hours = value
            case "lunch_hours":
                config.lunch_hours = value
            case "max_daily_tasks":
                config.max_daily_tasks = _parse_int(key, value, config.max_daily_tasks)
            case "horizon_days":
                config.horizon_days = _parse_int(key, value, config.horizon_days)
            case "slot_search_days":
                config.slot_search_days = _parse_int(key, value, config.slot_search_days)
            case "buffer_minutes":
                config.buffer_minutes = _parse_int(key, value, config.buffer_minutes)
            case "sync_buffer_minutes":
                config.sync_buffer_minutes = _parse_int(key, value, config.sync_buffer_minutes)
            case "cleanup_days":
                config.cleanup_days = _parse_int(key, value, config.cleanup_days)
            case "priority_weights":
                weights = [_parse_float(key, w.strip(), -1.0) for w in value.split(",") if w.strip()]
                if len(weights) == 4 and all(w >= 0 for w in weights):
                    config.priority_weights = weights
                else:
                    logger.warning(f"PRIORITY_WEIGHTS needs four numbers, got '{value}'")
            case "adjust_interval_minutes":
                config.adjust_interval_minutes = _parse_int(key, value, config.adjust_interval_minutes)
            case "daily_orchestration_time":
                config.daily_orchestration_time = value
            case "airtable_api_key":
                config.airtable_api_key = value
            case "airtable_base_id":
                config.airtable_base_id = value
            case "airtable_table":
                config.airtable_table = value
            case "retry_attempts":
                config.retry_attempts = _parse_int(key, value, config.retry_attempts)
            case "retry_backoff":
                config.retry_backoff = _parse_float(key, value, config.retry_backoff)
            case "history_size":
                config.history_size = _parse_int(key, value, config.history_size)
            case "log_level":
                config.log_level = value.upper()
            case "keyword_tables_file":
                config.keyword_tables_file = value
            case _:
                logger.debug(f"Ignoring unknown config key {key.upper()}")

    return config
