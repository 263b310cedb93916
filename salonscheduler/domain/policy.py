"""
Working hours and booking-window policy for a single resource.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, Iterable, Sequence, Tuple

import pendulum

from .exceptions import InvalidPolicy
from .models import ScheduleException, TimeRange, Weekday, WeekdayWindow


@dataclass(frozen=True)
class SchedulingPolicy:
    """
    Per-resource opening hours plus the global booking knobs.

    ``weekly_windows`` is normalised to a 7-tuple indexed by ``Weekday`` so
    that lookups never have to search. The policy is validated once, on
    construction, and is immutable afterwards.
    """
    weekly_windows: Tuple[WeekdayWindow, ...]
    slot_duration_minutes: int = 60
    buffer_minutes: int = 15
    max_advance_booking_days: int = 30
    min_advance_booking_hours: int = 24
    timezone: str = "UTC"
    exceptions: Tuple[ScheduleException, ...] = ()
    _exceptions_by_date: Dict[date, ScheduleException] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        object.__setattr__(self, "weekly_windows", self._index_windows(self.weekly_windows))
        object.__setattr__(self, "exceptions", tuple(self.exceptions))
        object.__setattr__(self, "_exceptions_by_date", self._index_exceptions(self.exceptions))

        if self.slot_duration_minutes <= 0:
            raise InvalidPolicy("slot_duration_minutes must be greater than zero")
        if self.buffer_minutes < 0:
            raise InvalidPolicy("buffer_minutes must not be negative")
        if self.max_advance_booking_days < 1:
            raise InvalidPolicy("max_advance_booking_days must be at least 1")
        if self.min_advance_booking_hours < 0:
            raise InvalidPolicy("min_advance_booking_hours must not be negative")

        try:
            pendulum.timezone(self.timezone)
        except (KeyError, ValueError) as exc:
            raise InvalidPolicy(f"Unknown timezone: {self.timezone}") from exc

    @staticmethod
    def _index_windows(windows: Sequence[WeekdayWindow]) -> Tuple[WeekdayWindow, ...]:
        windows = tuple(windows)
        if len(windows) != 7:
            raise InvalidPolicy(f"Expected exactly 7 weekday windows, got {len(windows)}")

        weekdays = {Weekday(window.weekday) for window in windows}
        if weekdays != set(Weekday):
            raise InvalidPolicy("Weekday windows must cover each day of the week exactly once")

        return tuple(sorted(windows, key=lambda window: window.weekday))

    @staticmethod
    def _index_exceptions(exceptions: Iterable[ScheduleException]) -> Dict[date, ScheduleException]:
        by_date: Dict[date, ScheduleException] = {}
        for exception in exceptions:
            day = date(exception.date.year, exception.date.month, exception.date.day)
            if day in by_date:
                raise InvalidPolicy(f"Duplicate schedule exception for {day}")
            by_date[day] = exception
        return by_date

    def window(self, weekday: Weekday) -> WeekdayWindow:
        """Return the weekly window for a weekday."""
        return self.weekly_windows[weekday]

    def local_date(self, value: date) -> date:
        """Reduce a date or datetime to a calendar date in the policy timezone."""
        if isinstance(value, datetime):
            return pendulum.instance(value).in_timezone(self.timezone).date()
        return value

    def exception_for(self, day: date) -> ScheduleException | None:
        return self._exceptions_by_date.get(date(day.year, day.month, day.day))

    def window_for(self, day: date) -> TimeRange | None:
        """
        Get the opening hours for a specific calendar date.

        A schedule exception for the date takes precedence over the weekly
        window. Returns None if the resource is closed that day.
        """
        exception = self.exception_for(day)
        if exception is not None:
            if not exception.is_working_day:
                return None
            return self._anchor(day, exception.open_time, exception.close_time)

        window = self.weekly_windows[day.weekday()]
        if not window.is_open:
            return None

        return self._anchor(day, window.open_time, window.close_time)

    def _anchor(self, day: date, open_time: time, close_time: time) -> TimeRange:
        start = pendulum.datetime(
            day.year, day.month, day.day,
            open_time.hour, open_time.minute,
            tz=self.timezone,
        )
        end = pendulum.datetime(
            day.year, day.month, day.day,
            close_time.hour, close_time.minute,
            tz=self.timezone,
        )
        return TimeRange(start=start, end=end)


def default_weekly_windows(
    open_time: time = time(9, 0),
    close_time: time = time(17, 0),
    closed_days: Iterable[Weekday] = (Weekday.SUNDAY,),
) -> Tuple[WeekdayWindow, ...]:
    """Build a week with identical opening hours, closed on ``closed_days``."""
    closed = set(closed_days)
    return tuple(
        WeekdayWindow(
            weekday=weekday,
            is_open=weekday not in closed,
            open_time=open_time,
            close_time=close_time,
        )
        for weekday in Weekday
    )


def default_policy(timezone: str = "UTC") -> SchedulingPolicy:
    """
    The salon's out-of-the-box settings: Monday to Saturday 09:00-17:00,
    60 minute slots, 15 minute buffer, 30 days ahead, 24 hours notice.
    """
    return SchedulingPolicy(
        weekly_windows=default_weekly_windows(),
        timezone=timezone,
    )
