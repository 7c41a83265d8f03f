"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List, Union

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.block_validator import BlockRules
from .domain.models import END_OF_DAY, WEEKDAY_NAMES, AvailabilityWindow, SearchConfig

WEEKDAY_FULL_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_clock(value: str) -> time:
    """
    Parse an ``HH:MM`` string into a time.

    "24:00" is accepted and parsed as END_OF_DAY so a window can close at midnight.

    Raises:
        ValueError: If the string is not a valid clock time
    """
    try:
        text = value.strip()
        if text == "24:00":
            return END_OF_DAY
        hour_str, minute_str = text.split(":")
        return time(hour=int(hour_str), minute=int(minute_str))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from exc


def parse_weekday(value: Union[str, int]) -> int:
    """
    Parse a weekday name ("mon", "Monday") or number (0=Monday) into a number.

    Raises:
        ValueError: If the value is not a weekday
    """
    if isinstance(value, int):
        if value not in range(7):
            raise ValueError(f"Weekday must be between 0 and 6, got {value}")
        return value

    key = str(value).strip().lower()
    if key in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(key)
    if key in WEEKDAY_FULL_NAMES:
        return WEEKDAY_FULL_NAMES.index(key)
    raise ValueError(f"Unknown weekday: '{value}'")


def validate_timezone(value: str) -> str:
    """Ensure the value is a known IANA timezone."""
    try:
        pendulum.timezone(value)
    except Exception as exc:
        raise ValueError(f"Unknown timezone: '{value}'") from exc
    return value


class GoogleConfig(BaseModel):
    """Google OAuth client and calendars to read."""
    client_id: str = ""
    client_secret: str = ""
    calendar_ids: List[str] = Field(default_factory=lambda: ["primary"])


class SearchDefaults(BaseModel):
    """Default settings for slot search."""
    duration_minutes: int = 30
    step_minutes: int = 30
    horizon_days: int = 14
    max_results: int = 12

    @field_validator("duration_minutes", "step_minutes", "horizon_days", "max_results")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure search bounds are positive."""
        if value <= 0:
            raise ValueError("search values must be greater than zero")
        return value

    def to_search_config(self, timezone: str, **overrides) -> SearchConfig:
        """Build a SearchConfig, letting explicit overrides win over defaults."""
        values = {
            "duration_minutes": self.duration_minutes,
            "step_minutes": self.step_minutes,
            "horizon_days": self.horizon_days,
            "max_results": self.max_results,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        return SearchConfig.for_minutes(
            values.pop("duration_minutes"),
            timezone=timezone,
            **values
        )


class WindowConfig(BaseModel):
    """A recurring availability window."""
    days: List[Union[int, str]] = Field(default_factory=lambda: [0, 1, 2, 3, 4])
    start: str = "09:00"
    end: str = "17:00"

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: List[Union[int, str]]) -> List[int]:
        """Normalize weekday names to numbers and deduplicate."""
        if not value:
            raise ValueError("A window needs at least one day")
        days: List[int] = []
        for day in value:
            number = parse_weekday(day)
            if number not in days:
                days.append(number)
        return days

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        parse_clock(value)
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "WindowConfig":
        """Ensure the window opens before it closes."""
        if parse_clock(self.end) <= parse_clock(self.start):
            raise ValueError(f"Window end {self.end} must be later than start {self.start}")
        return self

    def to_window(self) -> AvailabilityWindow:
        return AvailabilityWindow.from_days(
            self.days,
            parse_clock(self.start),
            parse_clock(self.end)
        )


class BlockRulesConfig(BaseModel):
    """Bounds for suggested study blocks."""
    earliest_hour: int = 5
    latest_hour: int = 23
    min_minutes: int = 30
    max_minutes: int = 240

    @field_validator("earliest_hour", "latest_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "BlockRulesConfig":
        if self.latest_hour <= self.earliest_hour:
            raise ValueError("latest_hour must be later than earliest_hour")
        if self.min_minutes <= 0 or self.max_minutes < self.min_minutes:
            raise ValueError("min_minutes must be positive and not exceed max_minutes")
        return self

    def to_rules(self, timezone: str) -> BlockRules:
        return BlockRules(
            earliest_hour=self.earliest_hour,
            latest_hour=self.latest_hour,
            min_minutes=self.min_minutes,
            max_minutes=self.max_minutes,
            timezone=timezone
        )


class ReminderConfig(BaseModel):
    """Windows used when selecting blocks for notifications."""
    reminder_minutes: int = 10
    missed_grace_minutes: int = 30
    missed_lookback_minutes: int = 120
    rescue_horizon_hours: int = 12
    nudge_lookahead_minutes: int = 120
    nudge_cooldown_minutes: int = 120
    rescue_idle_minutes: int = 120
    rescue_min_unresponsive: int = 2

    @model_validator(mode="after")
    def validate_windows(self) -> "ReminderConfig":
        if min(self.reminder_minutes, self.rescue_horizon_hours, self.nudge_lookahead_minutes) <= 0:
            raise ValueError("reminder_minutes, rescue_horizon_hours and nudge_lookahead_minutes must be positive")
        if self.nudge_cooldown_minutes < 0:
            raise ValueError("nudge_cooldown_minutes must not be negative")
        if self.rescue_idle_minutes < 0 or self.rescue_min_unresponsive < 1:
            raise ValueError("rescue_idle_minutes must not be negative and rescue_min_unresponsive must be at least 1")
        if self.missed_lookback_minutes <= self.missed_grace_minutes:
            raise ValueError("missed_lookback_minutes must exceed missed_grace_minutes")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    search: SearchDefaults = Field(default_factory=SearchDefaults)
    windows: List[WindowConfig] = Field(default_factory=lambda: [WindowConfig()])
    display_timezones: List[str] = Field(default_factory=list)
    block_rules: BlockRulesConfig = Field(default_factory=BlockRulesConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)

    @field_validator("timezone")
    @classmethod
    def validate_main_timezone(cls, value: str) -> str:
        return validate_timezone(value)

    @field_validator("display_timezones")
    @classmethod
    def validate_display_timezones(cls, value: List[str]) -> List[str]:
        """Ensure display zones are valid and deduplicated."""
        # Preserve order while removing duplicates
        deduped: List[str] = []
        for zone in value:
            validate_timezone(zone)
            if zone not in deduped:
                deduped.append(zone)
        return deduped

    def availability_windows(self) -> List[AvailabilityWindow]:
        """Get the configured windows as domain objects."""
        return [window.to_window() for window in self.windows]

    def all_display_timezones(self) -> List[str]:
        """The user's own timezone followed by the extra display zones."""
        return [self.timezone] + [tz for tz in self.display_timezones if tz != self.timezone]

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of goalpilot/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
