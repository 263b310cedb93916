"""
Domain models for working windows, appointments and bookable slots.
"""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum, IntEnum

from pendulum import DateTime

from .exceptions import InvalidPolicy


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """Check if another range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class Weekday(IntEnum):
    """Days of the week, numbered like ``date.weekday()``."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


@dataclass(frozen=True)
class WeekdayWindow:
    """
    Opening hours for one day of the week.

    Closed days keep their placeholder times; they are never read.
    """
    weekday: Weekday
    is_open: bool
    open_time: time = time(9, 0)
    close_time: time = time(17, 0)

    def __post_init__(self):
        try:
            object.__setattr__(self, "weekday", Weekday(self.weekday))
        except ValueError as exc:
            raise InvalidPolicy(f"Invalid weekday value: {self.weekday!r}") from exc
        if self.is_open and self.open_time >= self.close_time:
            raise InvalidPolicy(
                f"{self.weekday.name.title()} opens at {self.open_time:%H:%M} "
                f"but closes at {self.close_time:%H:%M}"
            )


@dataclass(frozen=True)
class ScheduleException:
    """
    Overrides the weekly window for a single calendar date.

    A non-working exception closes the day; a working one replaces the
    opening hours for that date only.
    """
    date: date
    is_working_day: bool = False
    open_time: time | None = None
    close_time: time | None = None
    note: str = ""

    def __post_init__(self):
        if not self.is_working_day:
            return
        if self.open_time is None or self.close_time is None:
            raise InvalidPolicy(f"Working exception on {self.date} needs open and close times")
        if self.open_time >= self.close_time:
            raise InvalidPolicy(
                f"Exception on {self.date} opens at {self.open_time:%H:%M} "
                f"but closes at {self.close_time:%H:%M}"
            )


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that release the appointment's time back to the calendar
RELEASED_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


@dataclass(frozen=True)
class CommittedAppointment:
    """
    An accepted booking occupying a resource's time.
    """
    id: str
    resource_id: str
    time_range: TimeRange
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    client_ref: str | None = None
    service_ref: str | None = None

    @property
    def blocks_time(self) -> bool:
        """Whether this appointment still occupies its interval."""
        return self.status not in RELEASED_STATUSES


@dataclass(frozen=True)
class Slot:
    """
    Represents a bookable time slot for one resource.
    """
    time_range: TimeRange
    resource_id: str

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:mm – HH:mm (N min)
        """
        start = self.time_range.start
        end = self.time_range.end

        weekday = Weekday(start.weekday()).name.title()
        date_str = start.format("DD.MM.YYYY")
        time_str = f"{start.format('HH:mm')} – {end.format('HH:mm')}"
        duration = self.time_range.duration_minutes()

        return f"{weekday}, {date_str} | {time_str} ({duration} min)"
