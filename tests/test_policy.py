"""
Tests for the scheduling policy.
"""

import pendulum
import pytest
from datetime import date, time

from salonscheduler.domain.exceptions import InvalidPolicy
from salonscheduler.domain.models import ScheduleException, Weekday, WeekdayWindow
from salonscheduler.domain.policy import SchedulingPolicy, default_policy, default_weekly_windows


def _policy(**overrides) -> SchedulingPolicy:
    settings = {
        "weekly_windows": default_weekly_windows(),
        "timezone": "Europe/Berlin",
    }
    settings.update(overrides)
    return SchedulingPolicy(**settings)


class TestPolicyValidation:
    """Construction-time validation."""

    def test_valid_policy(self):
        policy = _policy()

        assert len(policy.weekly_windows) == 7
        assert policy.slot_duration_minutes == 60

    def test_windows_are_indexed_by_weekday(self):
        shuffled = tuple(reversed(default_weekly_windows()))

        policy = _policy(weekly_windows=shuffled)

        assert [w.weekday for w in policy.weekly_windows] == list(Weekday)
        assert policy.window(Weekday.SUNDAY).is_open is False

    def test_six_windows_rejected(self):
        with pytest.raises(InvalidPolicy, match="exactly 7"):
            _policy(weekly_windows=default_weekly_windows()[:6])

    def test_duplicate_weekday_rejected(self):
        windows = list(default_weekly_windows())
        windows[6] = WeekdayWindow(weekday=Weekday.MONDAY, is_open=True)

        with pytest.raises(InvalidPolicy, match="exactly once"):
            _policy(weekly_windows=tuple(windows))

    @pytest.mark.parametrize(
        "field, value",
        [
            ("slot_duration_minutes", 0),
            ("slot_duration_minutes", -30),
            ("buffer_minutes", -1),
            ("max_advance_booking_days", 0),
            ("min_advance_booking_hours", -1),
        ],
    )
    def test_invalid_knobs(self, field, value):
        with pytest.raises(InvalidPolicy):
            _policy(**{field: value})

    def test_zero_buffer_and_notice_allowed(self):
        policy = _policy(buffer_minutes=0, min_advance_booking_hours=0)

        assert policy.buffer_minutes == 0

    def test_unknown_timezone(self):
        with pytest.raises(InvalidPolicy, match="Unknown timezone"):
            _policy(timezone="Mars/Olympus_Mons")

    def test_duplicate_exception_dates(self):
        with pytest.raises(InvalidPolicy, match="Duplicate schedule exception"):
            _policy(exceptions=(
                ScheduleException(date=date(2024, 12, 24)),
                ScheduleException(date=date(2024, 12, 24), note="again"),
            ))

    def test_default_policy(self):
        policy = default_policy()

        assert policy.buffer_minutes == 15
        assert policy.max_advance_booking_days == 30
        assert policy.min_advance_booking_hours == 24
        assert [w.is_open for w in policy.weekly_windows] == [True] * 6 + [False]


class TestWindowFor:
    """Resolving concrete opening hours for a date."""

    def test_open_day(self):
        policy = _policy()

        window = policy.window_for(date(2024, 11, 25))  # Monday

        assert window is not None
        assert window.start == pendulum.datetime(2024, 11, 25, 9, 0, tz="Europe/Berlin")
        assert window.end == pendulum.datetime(2024, 11, 25, 17, 0, tz="Europe/Berlin")

    def test_closed_day(self):
        policy = _policy()

        assert policy.window_for(date(2024, 11, 24)) is None  # Sunday

    def test_accepts_pendulum_dates(self):
        policy = _policy()

        window = policy.window_for(pendulum.date(2024, 11, 26))

        assert window is not None
        assert window.start.day == 26

    def test_day_off_exception(self):
        policy = _policy(exceptions=(ScheduleException(date=date(2024, 11, 25), note="Training"),))

        assert policy.window_for(date(2024, 11, 25)) is None
        assert policy.window_for(date(2024, 11, 26)) is not None

    def test_custom_hours_exception_opens_a_closed_day(self):
        policy = _policy(exceptions=(
            ScheduleException(
                date=date(2024, 11, 24),
                is_working_day=True,
                open_time=time(10, 0),
                close_time=time(14, 0),
            ),
        ))

        window = policy.window_for(date(2024, 11, 24))

        assert window is not None
        assert window.duration_minutes() == 240
        assert window.start.hour == 10

    def test_window_respects_dst_change(self):
        """Local opening hours stay local across the DST switch."""
        policy = _policy()

        window = policy.window_for(date(2024, 3, 30))  # Saturday, day before DST

        assert window is not None
        assert window.start.in_timezone("UTC").hour == 8

        window = policy.window_for(date(2024, 4, 1))

        assert window is not None
        assert window.start.in_timezone("UTC").hour == 7
