"""
Core business logic for calculating bookable slots.

Pure domain logic without any external dependencies (no storage, no I/O).
The same interval machinery backs the conflict guard, so what is offered
here is exactly what a booking attempt will accept.
"""

from datetime import date
from typing import Iterable, Iterator, List

import pendulum
from pendulum import DateTime

from .intervals import expand, subtract_all
from .models import CommittedAppointment, Slot, TimeRange
from .policy import SchedulingPolicy


class AvailabilityComputer:
    """
    Calculates open slots for one resource from its policy and commitments.

    Algorithm, per calendar day in the requested range:
    1. Skip days in the past or beyond the booking horizon
    2. Resolve the day's opening window (skip closed days)
    3. Clip the window start to the minimum-notice instant
    4. Expand every blocking appointment by the buffer
    5. Subtract the expanded appointments from the window
    6. Tile each free gap into back-to-back slots, dropping short remainders
    """

    def __init__(self, policy: SchedulingPolicy, resource_id: str = ""):
        self.policy = policy
        self.resource_id = resource_id

    def compute(
        self,
        committed: Iterable[CommittedAppointment],
        range_start: date,
        range_end: date,
        now: DateTime,
        duration_minutes: int | None = None,
    ) -> Iterator[Slot]:
        """
        Lazily yield open slots between two calendar dates (inclusive).

        The generator is a pure function of its arguments: calling it again
        with the same inputs yields the same slots in the same order.

        Args:
            committed: Snapshot of the resource's committed appointments
            range_start: First calendar day to search
            range_end: Last calendar day to search
            now: Reference instant for notice and horizon rules
            duration_minutes: Slot length, defaults to the policy's slot duration

        Raises:
            ValueError: If duration_minutes is not positive
        """
        duration = self.policy.slot_duration_minutes if duration_minutes is None else duration_minutes
        if duration <= 0:
            raise ValueError(f"Slot duration must be positive, got {duration}")

        blocking = [appointment for appointment in committed if appointment.blocks_time]
        return self._generate(blocking, range_start, range_end, now, duration)

    def _generate(
        self,
        blocking: List[CommittedAppointment],
        range_start: date,
        range_end: date,
        now: DateTime,
        duration: int,
    ) -> Iterator[Slot]:
        local_now = pendulum.instance(now).in_timezone(self.policy.timezone)
        earliest_start = local_now.add(hours=self.policy.min_advance_booking_hours)
        latest_start = local_now.add(hours=24 * self.policy.max_advance_booking_days)

        expanded_busy = [
            expand(appointment.time_range, self.policy.buffer_minutes)
            for appointment in blocking
        ]

        for day in self._days_in_horizon(range_start, range_end, local_now.date()):
            window = self.policy.window_for(day)
            if window is None:
                continue

            if earliest_start >= window.end:
                continue
            clipped = TimeRange(start=max(window.start, earliest_start), end=window.end)

            day_busy = [busy for busy in expanded_busy if busy.overlaps(window)]

            for gap in subtract_all(clipped, day_busy):
                for time_range in self._tile(gap, duration):
                    if time_range.start > latest_start:
                        return
                    yield Slot(time_range=time_range, resource_id=self.resource_id)

    def _days_in_horizon(self, range_start: date, range_end: date, today: date) -> Iterator[date]:
        """
        Yield each calendar day of the range that lies inside the booking horizon.
        """
        first = max(self.policy.local_date(range_start).toordinal(), today.toordinal())
        last = min(
            self.policy.local_date(range_end).toordinal(),
            today.toordinal() + self.policy.max_advance_booking_days,
        )

        for ordinal in range(first, last + 1):
            yield date.fromordinal(ordinal)

    @staticmethod
    def _tile(gap: TimeRange, duration: int) -> Iterator[TimeRange]:
        """
        Split a free gap into consecutive slots of ``duration`` minutes.

        Example (60 min): 09:00-11:30 -> [09:00-10:00, 10:00-11:00]
        """
        current = gap.start
        while True:
            end = current.add(minutes=duration)
            if end > gap.end:
                return
            yield TimeRange(start=current, end=end)
            current = end
