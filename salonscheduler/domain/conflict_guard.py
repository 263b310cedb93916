"""
Admission control for new appointments.

The buffer convention used everywhere in the engine: every existing
committed interval is expanded by ``buffer_minutes`` on both sides, and the
proposed interval is compared raw. Slot generation and the store's
re-validation use the same convention through ``find_conflict``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

import pendulum
from pendulum import DateTime

from .intervals import expand, overlaps
from .models import CommittedAppointment, TimeRange
from .policy import SchedulingPolicy


class RejectionReason(str, Enum):
    TOO_SOON = "TOO_SOON"
    TOO_FAR_AHEAD = "TOO_FAR_AHEAD"
    OUTSIDE_WORKING_HOURS = "OUTSIDE_WORKING_HOURS"
    CONFLICT = "CONFLICT"
    CONTENTION = "CONTENTION"


@dataclass(frozen=True)
class Accepted:
    """A booking that passed every check. ``appointment_id`` is set once committed."""
    time_range: TimeRange
    appointment_id: str | None = None

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """A booking refused for an expected business reason."""
    reason: RejectionReason
    conflicting_appointment_id: str | None = None

    @property
    def accepted(self) -> bool:
        return False


BookingDecision = Union[Accepted, Rejected]


def find_conflict(
    committed: Iterable[CommittedAppointment],
    proposed: TimeRange,
    buffer_minutes: int,
) -> CommittedAppointment | None:
    """
    Return the earliest blocking appointment whose buffered interval
    overlaps the proposed range, or None.
    """
    for appointment in sorted(committed, key=lambda a: (a.time_range.start, a.id)):
        if not appointment.blocks_time:
            continue
        if overlaps(expand(appointment.time_range, buffer_minutes), proposed):
            return appointment
    return None


class ConflictGuard:
    """
    Decides whether a proposed interval may become a committed appointment.

    Checks run in a fixed order and stop at the first failure:
    minimum notice, booking horizon, working hours, then conflicts.
    """

    def __init__(self, policy: SchedulingPolicy):
        self.policy = policy

    def try_book(
        self,
        committed: Iterable[CommittedAppointment],
        proposed: TimeRange,
        now: DateTime,
    ) -> BookingDecision:
        """
        Evaluate a proposed booking against a snapshot of commitments.

        Args:
            committed: The resource's committed appointments
            proposed: Requested interval
            now: Reference instant for notice and horizon rules

        Returns:
            Accepted, or Rejected with the first failing reason
        """
        local_now = pendulum.instance(now).in_timezone(self.policy.timezone)

        if proposed.start < local_now.add(hours=self.policy.min_advance_booking_hours):
            return Rejected(RejectionReason.TOO_SOON)

        if proposed.start > local_now.add(hours=24 * self.policy.max_advance_booking_days):
            return Rejected(RejectionReason.TOO_FAR_AHEAD)

        start_day = pendulum.instance(proposed.start).in_timezone(self.policy.timezone).date()
        window = self.policy.window_for(start_day)
        if window is None or not window.contains(proposed):
            return Rejected(RejectionReason.OUTSIDE_WORKING_HOURS)

        conflict = find_conflict(committed, proposed, self.policy.buffer_minutes)
        if conflict is not None:
            return Rejected(RejectionReason.CONFLICT, conflicting_appointment_id=conflict.id)

        return Accepted(time_range=proposed)
