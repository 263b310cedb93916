"""
Configuration management using Pydantic models loaded from YAML.
"""

import datetime as dt
import re
from pathlib import Path
from typing import Dict, List, Sequence

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import ScheduleException, Weekday, WeekdayWindow
from .domain.policy import SchedulingPolicy

TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")


def parse_hhmm(value: str) -> dt.time:
    """Convert an ``HH:mm`` string to a time object."""
    hours, minutes = value.split(":")
    return dt.time(hour=int(hours), minute=int(minutes))


def _validate_hhmm(value: str | None) -> str | None:
    if value is not None and not TIME_PATTERN.match(value):
        raise ValueError(f"Invalid time '{value}'. Use HH:mm format (24-hour)")
    return value


class WorkingDayConfig(BaseModel):
    """Opening hours for one weekday."""
    day: Weekday
    is_open: bool = True
    open_time: str = "09:00"
    close_time: str = "17:00"

    @field_validator("day", mode="before")
    @classmethod
    def parse_day(cls, value):
        """Accept weekday names (``monday``) as well as numbers (0=Monday)."""
        if isinstance(value, str):
            if value.strip().isdigit():
                return int(value)
            try:
                return Weekday[value.strip().upper()]
            except KeyError as exc:
                raise ValueError(f"Unknown weekday: {value}") from exc
        return value

    @field_validator("open_time", "close_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return _validate_hhmm(value)

    def to_window(self) -> WeekdayWindow:
        return WeekdayWindow(
            weekday=self.day,
            is_open=self.is_open,
            open_time=parse_hhmm(self.open_time),
            close_time=parse_hhmm(self.close_time),
        )


def _default_working_hours() -> List[WorkingDayConfig]:
    return [
        WorkingDayConfig(day=weekday, is_open=weekday != Weekday.SUNDAY)
        for weekday in Weekday
    ]


class ScheduleExceptionConfig(BaseModel):
    """A day off or custom opening hours on one date."""
    date: dt.date
    is_working_day: bool = False
    open_time: str | None = None
    close_time: str | None = None
    note: str = ""

    @field_validator("open_time", "close_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        return _validate_hhmm(value)

    def to_exception(self) -> ScheduleException:
        return ScheduleException(
            date=self.date,
            is_working_day=self.is_working_day,
            open_time=parse_hhmm(self.open_time) if self.open_time else None,
            close_time=parse_hhmm(self.close_time) if self.close_time else None,
            note=self.note,
        )


class PolicyConfig(BaseModel):
    """Booking policy settings."""
    slot_duration_minutes: int = 60
    buffer_minutes: int = 15
    max_advance_booking_days: int = 30
    min_advance_booking_hours: int = 24
    working_hours: List[WorkingDayConfig] = Field(default_factory=_default_working_hours)

    def to_policy(
        self,
        timezone: str,
        exceptions: Sequence[ScheduleExceptionConfig] = (),
    ) -> SchedulingPolicy:
        """
        Build the domain policy.

        Raises:
            InvalidPolicy: If the settings are inconsistent
        """
        return SchedulingPolicy(
            weekly_windows=tuple(day.to_window() for day in self.working_hours),
            slot_duration_minutes=self.slot_duration_minutes,
            buffer_minutes=self.buffer_minutes,
            max_advance_booking_days=self.max_advance_booking_days,
            min_advance_booking_hours=self.min_advance_booking_hours,
            timezone=timezone,
            exceptions=tuple(exception.to_exception() for exception in exceptions),
        )


class ResourceConfig(BaseModel):
    """A bookable staff member (therapist)."""
    id: str
    name: str
    email: str = ""
    policy: PolicyConfig | None = None  # Falls back to the shared policy
    exceptions: List[ScheduleExceptionConfig] = Field(default_factory=list)

    def display_name(self) -> str:
        return self.name


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Belgrade"
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    resources: List[ResourceConfig] = Field(default_factory=list)
    appointments_file: str = "appointments.json"
    max_commit_attempts: int = 3

    @field_validator("max_commit_attempts")
    @classmethod
    def validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_commit_attempts must be at least 1")
        return value

    @field_validator("resources")
    @classmethod
    def validate_resources(cls, value: List[ResourceConfig]) -> List[ResourceConfig]:
        """Ensure resource ids and names are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for resource in value:
            id_key = resource.id.lower()
            name_key = resource.name.lower()
            if id_key in seen_ids:
                raise ValueError(f"Duplicate resource id detected: {resource.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate resource name detected: {resource.name}")
            seen_ids.add(id_key)
            seen_names.add(name_key)
        return value

    @model_validator(mode="after")
    def validate_policies(self) -> "AppConfig":
        """Fail early on policies the domain would refuse."""
        self.default_policy()
        self.build_policies()
        return self

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
            InvalidPolicy: If a policy is structurally valid but inconsistent
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

    def find_resource(self, identifier: str) -> ResourceConfig | None:
        """Find a resource by id or by name (case-insensitive)."""
        key = identifier.lower()
        for resource in self.resources:
            if resource.id.lower() == key or resource.name.lower() == key:
                return resource
        return None

    def resolve_resource(self, identifier: str) -> str:
        """
        Resolve a resource identifier (id or name) to its id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        resource = self.find_resource(identifier)
        if resource is None:
            raise ValueError(
                f"Unknown resource identifier: '{identifier}'. "
                f"Use a configured id or name."
            )
        return resource.id

    def policy_for(self, resource_id: str) -> SchedulingPolicy:
        """Build the effective policy for one resource."""
        resource = self.find_resource(resource_id)
        if resource is None:
            return self.policy.to_policy(self.timezone)
        return (resource.policy or self.policy).to_policy(self.timezone, resource.exceptions)

    def build_policies(self) -> Dict[str, SchedulingPolicy]:
        return {resource.id: self.policy_for(resource.id) for resource in self.resources}

    def default_policy(self) -> SchedulingPolicy:
        return self.policy.to_policy(self.timezone)

    def appointments_path(self, base_dir: Path) -> Path:
        path = Path(self.appointments_file)
        return path if path.is_absolute() else base_dir / path


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
