"""
In-memory appointment store with optional JSON file persistence.
"""

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

import pendulum
from pendulum import DateTime

from ..domain.conflict_guard import find_conflict
from ..domain.exceptions import CommitConflictError, UnknownResourceError
from ..domain.models import AppointmentStatus, CommittedAppointment, TimeRange
from ..domain.policy import SchedulingPolicy

logger = logging.getLogger(__name__)


class InMemoryAppointmentStore:
    """
    Reference persistence collaborator for the scheduling service.

    Every commit re-validates non-overlap with the same ``find_conflict``
    rule the conflict guard uses, so the store is the final authority even
    when several writers race. Each call yields to the event loop once to
    behave like real I/O.
    """

    def __init__(
        self,
        policies: Mapping[str, SchedulingPolicy] | None = None,
        default_policy: SchedulingPolicy | None = None,
        appointments: Iterable[CommittedAppointment] = (),
    ):
        """
        Initialize the store.

        Args:
            policies: Policy per resource id
            default_policy: Policy for resources without their own entry
            appointments: Initial appointments
        """
        self._policies: Dict[str, SchedulingPolicy] = dict(policies or {})
        self._default_policy = default_policy
        self._appointments: Dict[str, CommittedAppointment] = {}
        for appointment in appointments:
            self._appointments[appointment.id] = appointment

    def policy_for(self, resource_id: str) -> SchedulingPolicy:
        policy = self._policies.get(resource_id, self._default_policy)
        if policy is None:
            raise UnknownResourceError(f"No scheduling policy for resource '{resource_id}'")
        return policy

    async def load_policy(self, resource_id: str) -> SchedulingPolicy:
        await asyncio.sleep(0)
        return self.policy_for(resource_id)

    async def load_committed_appointments(
        self,
        resource_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CommittedAppointment]:
        """Return a snapshot of the resource's appointments overlapping ``[start, end)``."""
        await asyncio.sleep(0)
        window = TimeRange(start=start, end=end)
        return [
            appointment
            for appointment in self.appointments(resource_id)
            if appointment.time_range.overlaps(window)
        ]

    async def commit_appointment(
        self,
        resource_id: str,
        time_range: TimeRange,
        *,
        client_ref: str | None = None,
        service_ref: str | None = None,
    ) -> CommittedAppointment:
        """
        Record a new appointment.

        Raises:
            CommitConflictError: If an existing appointment (buffer included) overlaps
            UnknownResourceError: If the resource has no policy
        """
        await asyncio.sleep(0)
        policy = self.policy_for(resource_id)

        conflict = find_conflict(self.appointments(resource_id), time_range, policy.buffer_minutes)
        if conflict is not None:
            raise CommitConflictError(
                f"{time_range} overlaps appointment {conflict.id}",
                conflicting_appointment_id=conflict.id,
            )

        appointment = CommittedAppointment(
            id=uuid.uuid4().hex,
            resource_id=resource_id,
            time_range=time_range,
            client_ref=client_ref,
            service_ref=service_ref,
        )
        self._appointments[appointment.id] = appointment
        logger.debug("Stored appointment %s for %s", appointment.id, resource_id)
        return appointment

    def add(self, appointment: CommittedAppointment) -> None:
        """Insert an appointment as-is, without validation (imports, fixtures)."""
        self._appointments[appointment.id] = appointment

    def cancel_appointment(self, appointment_id: str) -> CommittedAppointment:
        """
        Mark an appointment as cancelled so its time becomes bookable again.

        Raises:
            KeyError: If the appointment does not exist
        """
        appointment = self._appointments[appointment_id]
        cancelled = CommittedAppointment(
            id=appointment.id,
            resource_id=appointment.resource_id,
            time_range=appointment.time_range,
            status=AppointmentStatus.CANCELLED,
            client_ref=appointment.client_ref,
            service_ref=appointment.service_ref,
        )
        self._appointments[appointment_id] = cancelled
        logger.info("Cancelled appointment %s", appointment_id)
        return cancelled

    def appointments(self, resource_id: str | None = None) -> List[CommittedAppointment]:
        """All stored appointments, optionally for one resource, ordered by start."""
        selected = [
            appointment
            for appointment in self._appointments.values()
            if resource_id is None or appointment.resource_id == resource_id
        ]
        return sorted(selected, key=lambda a: (a.time_range.start, a.id))

    def load_json(self, path: Path) -> int:
        """
        Load appointments from a JSON file written by ``save_json``.

        Returns:
            Number of appointments loaded

        Raises:
            ValueError: If the file is not valid JSON or an entry is malformed
        """
        if not path.exists():
            return 0

        try:
            with open(path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {path}: {exc}") from exc

        if not isinstance(entries, list):
            raise ValueError(f"{path} must contain a list of appointments")

        for entry in entries:
            if not isinstance(entry, dict):
                raise ValueError(f"Malformed appointment entry in {path}: {entry!r}")
            try:
                appointment = CommittedAppointment(
                    id=entry["id"],
                    resource_id=entry["resource_id"],
                    time_range=TimeRange(
                        start=pendulum.parse(entry["start"]),
                        end=pendulum.parse(entry["end"]),
                    ),
                    status=AppointmentStatus(entry.get("status", AppointmentStatus.SCHEDULED.value)),
                    client_ref=entry.get("client_ref"),
                    service_ref=entry.get("service_ref"),
                )
            except (KeyError, ValueError) as exc:
                raise ValueError(f"Malformed appointment entry in {path}: {entry!r}") from exc
            self._appointments[appointment.id] = appointment

        logger.debug("Loaded %d appointment(s) from %s", len(entries), path)
        return len(entries)

    def save_json(self, path: Path) -> None:
        """Write every stored appointment to a JSON file."""
        entries = [
            {
                "id": appointment.id,
                "resource_id": appointment.resource_id,
                "start": appointment.time_range.start.isoformat(),
                "end": appointment.time_range.end.isoformat(),
                "status": appointment.status.value,
                "client_ref": appointment.client_ref,
                "service_ref": appointment.service_ref,
            }
            for appointment in self.appointments()
        ]

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2)
        logger.debug("Saved %d appointment(s) to %s", len(entries), path)
