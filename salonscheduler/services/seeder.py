"""
Random appointment generation for demos and fixtures.

Seeded appointments go through the same ``AvailabilityComputer`` and
``ConflictGuard`` contracts as real bookings, so a seeded calendar can
never contain a booking the engine itself would refuse.
"""

import random
import uuid
from datetime import date, timedelta
from typing import Iterable, List

from pendulum import DateTime

from ..domain.availability import AvailabilityComputer
from ..domain.conflict_guard import Accepted, ConflictGuard
from ..domain.models import AppointmentStatus, CommittedAppointment
from ..domain.policy import SchedulingPolicy


class AppointmentSeeder:
    """
    Fills a resource's calendar with plausible random appointments.

    Roughly one in five generated appointments is marked cancelled, which
    leaves its time bookable.
    """

    CANCELLED_RATIO = 0.2

    def __init__(
        self,
        policy: SchedulingPolicy,
        rng: random.Random | None = None,
        fill_ratio: float = 0.6,
    ):
        if not 0.0 <= fill_ratio <= 1.0:
            raise ValueError(f"fill_ratio must be between 0 and 1, got {fill_ratio}")
        self.policy = policy
        self.rng = rng or random.Random()
        self.fill_ratio = fill_ratio
        self._guard = ConflictGuard(policy)

    def generate(
        self,
        resource_id: str,
        start_day: date,
        days: int,
        now: DateTime,
        existing: Iterable[CommittedAppointment] = (),
        client_refs: List[str] | None = None,
        service_refs: List[str] | None = None,
    ) -> List[CommittedAppointment]:
        """
        Generate appointments for ``days`` consecutive days starting at ``start_day``.

        Args:
            resource_id: Resource whose calendar is filled
            start_day: First day to fill
            days: Number of days to fill
            now: Reference instant for notice and horizon rules
            existing: Appointments already on the calendar
            client_refs: Optional pool of client references to pick from
            service_refs: Optional pool of service references to pick from

        Returns:
            Newly generated appointments, ordered by start
        """
        calendar = list(existing)
        generated: List[CommittedAppointment] = []
        computer = AvailabilityComputer(self.policy, resource_id=resource_id)

        for offset in range(days):
            day = start_day + timedelta(days=offset)
            candidates = list(computer.compute(calendar, day, day, now))

            for slot in candidates:
                if self.rng.random() >= self.fill_ratio:
                    continue

                # Back-to-back tiles collide once the buffer is applied
                decision = self._guard.try_book(calendar, slot.time_range, now)
                if not isinstance(decision, Accepted):
                    continue

                status = (
                    AppointmentStatus.CANCELLED
                    if self.rng.random() < self.CANCELLED_RATIO
                    else AppointmentStatus.SCHEDULED
                )
                appointment = CommittedAppointment(
                    id=uuid.UUID(int=self.rng.getrandbits(128)).hex,
                    resource_id=resource_id,
                    time_range=slot.time_range,
                    status=status,
                    client_ref=self.rng.choice(client_refs) if client_refs else None,
                    service_ref=self.rng.choice(service_refs) if service_refs else None,
                )
                calendar.append(appointment)
                generated.append(appointment)

        return generated
