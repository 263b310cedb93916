"""
Application service for availability queries and bookings.

The service loads policy and commitments through a store adapter and
delegates every decision to the domain-level ``AvailabilityComputer`` and
``ConflictGuard``. Its only job of its own is concurrency: bookings for the
same resource are serialised behind a per-resource lock, while different
resources never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date
from typing import Callable, Dict, List, Protocol

import pendulum
from pendulum import DateTime

from ..domain.availability import AvailabilityComputer
from ..domain.conflict_guard import (
    Accepted,
    BookingDecision,
    ConflictGuard,
    Rejected,
    RejectionReason,
)
from ..domain.exceptions import CommitConflictError
from ..domain.intervals import expand
from ..domain.models import CommittedAppointment, Slot, TimeRange
from ..domain.policy import SchedulingPolicy

logger = logging.getLogger(__name__)


class AppointmentStoreProtocol(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    async def load_policy(self, resource_id: str) -> SchedulingPolicy:
        """Return the scheduling policy governing the resource."""

    async def load_committed_appointments(
        self,
        resource_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CommittedAppointment]:
        """Return the resource's appointments overlapping ``[start, end)``."""

    async def commit_appointment(
        self,
        resource_id: str,
        time_range: TimeRange,
        *,
        client_ref: str | None = None,
        service_ref: str | None = None,
    ) -> CommittedAppointment:
        """Durably record a booking; raise ``CommitConflictError`` if the slot is taken."""


class SchedulingService:
    """
    Orchestrates store access, slot calculation and booking admission.

    Dependency inversion toward a protocol makes it easy to plug in a real
    database adapter or the in-memory store used in tests.
    """

    def __init__(
        self,
        store: AppointmentStoreProtocol,
        clock: Callable[[], DateTime] = pendulum.now,
        max_commit_attempts: int = 3,
    ) -> None:
        if max_commit_attempts < 1:
            raise ValueError("max_commit_attempts must be at least 1")
        self._store = store
        self._clock = clock
        self._max_commit_attempts = max_commit_attempts
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def _resource_lock(self, resource_id: str):
        """
        Hold the booking lock of one resource.

        A lock lives only while some booking uses or waits for it, so no lock
        outlives the event loop it was created on.
        """
        lock = self._locks.setdefault(resource_id, asyncio.Lock())
        self._lock_users[resource_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[resource_id] -= 1
            if not self._lock_users[resource_id]:
                del self._lock_users[resource_id]
                del self._locks[resource_id]

    async def get_availability(
        self,
        resource_id: str,
        from_date: date,
        to_date: date,
        duration_minutes: int | None = None,
    ) -> List[Slot]:
        """
        Return the ordered open slots for a resource between two dates (inclusive).

        Datetime bounds are reduced to calendar dates in the policy timezone.

        No lock is taken: the result may miss a booking committing at the
        same moment, in which case booking that slot is simply rejected.
        """
        policy = await self._store.load_policy(resource_id)
        from_date = policy.local_date(from_date)
        to_date = policy.local_date(to_date)
        if from_date > to_date:
            return []

        window_start = pendulum.datetime(
            from_date.year, from_date.month, from_date.day, tz=policy.timezone
        ).subtract(minutes=policy.buffer_minutes)
        window_end = pendulum.datetime(
            to_date.year, to_date.month, to_date.day, tz=policy.timezone
        ).add(days=1, minutes=policy.buffer_minutes)

        committed = await self._store.load_committed_appointments(
            resource_id, window_start, window_end
        )

        computer = AvailabilityComputer(policy, resource_id=resource_id)
        slots = list(
            computer.compute(
                committed,
                from_date,
                to_date,
                now=self._clock(),
                duration_minutes=duration_minutes,
            )
        )

        logger.debug(
            "Computed %d slot(s) for %s between %s and %s",
            len(slots), resource_id, from_date, to_date,
        )
        return slots

    async def book_appointment(
        self,
        resource_id: str,
        proposed: TimeRange,
        client_ref: str | None = None,
        service_ref: str | None = None,
    ) -> BookingDecision:
        """
        Admit and commit a booking, or explain why it was refused.

        Returns:
            Accepted carrying the new appointment id, or Rejected(reason)
        """
        async with self._resource_lock(resource_id):
            for attempt in range(1, self._max_commit_attempts + 1):
                policy = await self._store.load_policy(resource_id)
                lookup = expand(proposed, policy.buffer_minutes)
                committed = await self._store.load_committed_appointments(
                    resource_id, lookup.start, lookup.end
                )

                decision = ConflictGuard(policy).try_book(committed, proposed, now=self._clock())
                if isinstance(decision, Rejected):
                    logger.info(
                        "Booking for %s at %s rejected: %s",
                        resource_id, proposed, decision.reason.value,
                    )
                    return decision

                try:
                    appointment = await self._store.commit_appointment(
                        resource_id,
                        proposed,
                        client_ref=client_ref,
                        service_ref=service_ref,
                    )
                except CommitConflictError as exc:
                    logger.warning(
                        "Commit for %s at %s lost a race (attempt %d/%d): %s",
                        resource_id, proposed, attempt, self._max_commit_attempts, exc,
                    )
                    continue

                logger.info("Booked appointment %s for %s at %s", appointment.id, resource_id, proposed)
                return Accepted(time_range=proposed, appointment_id=appointment.id)

        return Rejected(RejectionReason.CONTENTION)
