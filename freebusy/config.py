"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.cron import DEFAULT_REMINDER_TIMEZONE
from .domain.models import Schedule, ScheduleEntry, Weekday


def _validate_timezone(value: str) -> str:
    try:
        pendulum.timezone(value)
    except Exception as exc:
        raise ValueError(f"Unknown timezone: {value}") from exc
    return value


class DefaultsConfig(BaseModel):
    """Default settings for search."""
    duration_minutes: int = 30
    range_days: int = 7

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure meeting duration is not negative."""
        if value < 0:
            raise ValueError("duration_minutes must not be negative")
        return value

    @field_validator("range_days")
    @classmethod
    def validate_range_days(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("range_days must be greater than zero")
        return value


class RepositoryConfig(BaseModel):
    """Where calendars and schedules come from."""
    base_url: Optional[str] = None  # Booking backend REST API
    data_file: Optional[Path] = None  # JSON file for the in-memory repository
    timeout_seconds: float = 10.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value


class ScheduleEntryConfig(BaseModel):
    """Opening hours of one weekday, e.g. ``{day: monday, open: "09:00", close: "20:00"}``."""
    day: Weekday
    open: time
    close: time

    @field_validator("day", mode="before")
    @classmethod
    def parse_day(cls, value):
        """Accept weekday names as well as numbers (0=Monday, 6=Sunday)."""
        if isinstance(value, str) and not value.isdigit():
            try:
                return Weekday[value.strip().upper()]
            except KeyError as exc:
                raise ValueError(f"Unknown weekday: {value}") from exc
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "ScheduleEntryConfig":
        """Ensure the window opens before it closes."""
        if self.close <= self.open:
            raise ValueError(f"close must be later than open on {self.day.name.title()}")
        return self

    def to_entry(self) -> ScheduleEntry:
        return ScheduleEntry(weekday=self.day, open=self.open, close=self.close)


class LocationConfig(BaseModel):
    """A location's weekly operating hours."""
    timezone: str = "UTC"
    schedule: List[ScheduleEntryConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    @field_validator("schedule")
    @classmethod
    def validate_unique_days(cls, value: List[ScheduleEntryConfig]) -> List[ScheduleEntryConfig]:
        """Reject more than one entry for the same weekday."""
        seen: set[Weekday] = set()
        for entry in value:
            if entry.day in seen:
                raise ValueError(f"Duplicate schedule entry for {entry.day.name.title()}")
            seen.add(entry.day)
        return value

    def to_schedule(self) -> Schedule:
        return Schedule(
            entries=tuple(entry.to_entry() for entry in self.schedule),
            timezone=self.timezone,
        )


class EntityAlias(BaseModel):
    """Short name for an entity (user or worker) id."""
    name: str
    entity_id: str


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Madrid"
    reminder_timezone: str = DEFAULT_REMINDER_TIMEZONE
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    entities: List[EntityAlias] = Field(default_factory=list)
    locations: Dict[str, LocationConfig] = Field(default_factory=dict)

    @field_validator("timezone", "reminder_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    @field_validator("entities")
    @classmethod
    def validate_entities(cls, value: List[EntityAlias]) -> List[EntityAlias]:
        """Ensure entity aliases are unique."""
        seen_names: set[str] = set()
        for alias in value:
            name_key = alias.name.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate entity name detected: {alias.name}")
            seen_names.add(name_key)
        return value

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

        config = cls(**data)

        # Relative data files resolve against the config file location
        data_file = config.repository.data_file
        if data_file is not None and not data_file.is_absolute():
            config.repository.data_file = config_path.parent / data_file

        return config

    def resolve_entity(self, identifier: str) -> str:
        """Resolve an alias to its entity id; unknown identifiers are taken as ids."""
        for alias in self.entities:
            if alias.name.lower() == identifier.lower():
                return alias.entity_id
        return identifier

    def resolve_entities(self, identifiers: Sequence[str]) -> List[str]:
        """
        Resolve multiple identifiers, ensuring uniqueness.

        Raises:
            ValueError: If no identifiers are given
        """
        if not identifiers:
            raise ValueError("No entities provided.")

        resolved: List[str] = []
        for identifier in identifiers:
            entity_id = self.resolve_entity(identifier)
            if entity_id not in resolved:
                resolved.append(entity_id)
        return resolved

    def schedules(self) -> Dict[str, Schedule]:
        """Schedules of all configured locations, keyed by location id."""
        return {
            location_id: location.to_schedule()
            for location_id, location in self.locations.items()
        }


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
