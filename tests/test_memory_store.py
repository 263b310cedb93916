"""
Tests for the in-memory appointment store.
"""

import asyncio
import json

import pendulum
import pytest

from salonscheduler.adapters.memory_store import InMemoryAppointmentStore
from salonscheduler.domain.exceptions import CommitConflictError, UnknownResourceError
from salonscheduler.domain.models import AppointmentStatus, CommittedAppointment, TimeRange
from salonscheduler.domain.policy import SchedulingPolicy, default_weekly_windows


def _policy(buffer_minutes: int = 15) -> SchedulingPolicy:
    return SchedulingPolicy(
        weekly_windows=default_weekly_windows(closed_days=()),
        buffer_minutes=buffer_minutes,
        timezone="UTC",
    )


def _range(start: str, end: str) -> TimeRange:
    return TimeRange(start=pendulum.parse(start, tz="UTC"), end=pendulum.parse(end, tz="UTC"))


def _appointment(appointment_id: str, start: str, end: str, resource_id: str = "ana", **kwargs):
    return CommittedAppointment(
        id=appointment_id,
        resource_id=resource_id,
        time_range=_range(start, end),
        **kwargs,
    )


class TestPolicies:
    """Policy lookup."""

    def test_resource_policy(self):
        policy = _policy()
        store = InMemoryAppointmentStore(policies={"ana": policy})

        assert asyncio.run(store.load_policy("ana")) is policy

    def test_unknown_resource(self):
        store = InMemoryAppointmentStore(policies={"ana": _policy()})

        with pytest.raises(UnknownResourceError, match="marko"):
            asyncio.run(store.load_policy("marko"))

    def test_default_policy_fallback(self):
        fallback = _policy(buffer_minutes=0)
        store = InMemoryAppointmentStore(policies={"ana": _policy()}, default_policy=fallback)

        assert asyncio.run(store.load_policy("marko")) is fallback


class TestLoadAppointments:
    """Snapshot queries."""

    def test_filters_by_resource_and_window(self):
        store = InMemoryAppointmentStore(appointments=[
            _appointment("inside", "2024-03-04 10:00", "2024-03-04 11:00"),
            _appointment("straddling", "2024-03-04 08:30", "2024-03-04 09:30"),
            _appointment("before", "2024-03-04 07:00", "2024-03-04 09:00"),
            _appointment("after", "2024-03-04 12:00", "2024-03-04 13:00"),
            _appointment("other", "2024-03-04 10:00", "2024-03-04 11:00", resource_id="marko"),
        ])

        loaded = asyncio.run(store.load_committed_appointments(
            "ana",
            pendulum.parse("2024-03-04 09:00", tz="UTC"),
            pendulum.parse("2024-03-04 12:00", tz="UTC"),
        ))

        assert [a.id for a in loaded] == ["straddling", "inside"]

    def test_cancelled_appointments_are_returned(self):
        """Filtering out released statuses is the engine's job."""
        store = InMemoryAppointmentStore(appointments=[
            _appointment("gone", "2024-03-04 10:00", "2024-03-04 11:00", status=AppointmentStatus.CANCELLED),
        ])

        loaded = asyncio.run(store.load_committed_appointments(
            "ana",
            pendulum.parse("2024-03-04 00:00", tz="UTC"),
            pendulum.parse("2024-03-05 00:00", tz="UTC"),
        ))

        assert [a.status for a in loaded] == [AppointmentStatus.CANCELLED]


class TestCommit:
    """Commit-time re-validation."""

    def test_commit_assigns_id(self):
        store = InMemoryAppointmentStore(policies={"ana": _policy()})

        stored = asyncio.run(store.commit_appointment(
            "ana", _range("2024-03-04 10:00", "2024-03-04 11:00"), client_ref="c-1"
        ))

        assert stored.id
        assert stored.status is AppointmentStatus.SCHEDULED
        assert stored.client_ref == "c-1"
        assert store.appointments("ana") == [stored]

    def test_conflicting_commit_is_refused(self):
        store = InMemoryAppointmentStore(
            policies={"ana": _policy()},
            appointments=[_appointment("existing", "2024-03-04 10:00", "2024-03-04 11:00")],
        )

        with pytest.raises(CommitConflictError) as excinfo:
            asyncio.run(store.commit_appointment("ana", _range("2024-03-04 11:10", "2024-03-04 12:10")))

        assert excinfo.value.conflicting_appointment_id == "existing"
        assert len(store.appointments()) == 1

    def test_commit_after_buffer_succeeds(self):
        store = InMemoryAppointmentStore(
            policies={"ana": _policy()},
            appointments=[_appointment("existing", "2024-03-04 10:00", "2024-03-04 11:00")],
        )

        asyncio.run(store.commit_appointment("ana", _range("2024-03-04 11:15", "2024-03-04 12:15")))

        assert len(store.appointments("ana")) == 2

    def test_commit_for_unknown_resource(self):
        store = InMemoryAppointmentStore()

        with pytest.raises(UnknownResourceError):
            asyncio.run(store.commit_appointment("ana", _range("2024-03-04 10:00", "2024-03-04 11:00")))


class TestCancel:
    """Releasing booked time."""

    def test_cancel_frees_time(self):
        store = InMemoryAppointmentStore(
            policies={"ana": _policy()},
            appointments=[_appointment("existing", "2024-03-04 10:00", "2024-03-04 11:00", client_ref="c-1")],
        )

        cancelled = store.cancel_appointment("existing")
        asyncio.run(store.commit_appointment("ana", _range("2024-03-04 10:00", "2024-03-04 11:00")))

        assert cancelled.status is AppointmentStatus.CANCELLED
        assert cancelled.client_ref == "c-1"
        assert len(store.appointments("ana")) == 2

    def test_cancel_unknown(self):
        with pytest.raises(KeyError):
            InMemoryAppointmentStore().cancel_appointment("missing")


class TestJsonPersistence:
    """Saving to and loading from disk."""

    def test_missing_file_loads_nothing(self, tmp_path):
        store = InMemoryAppointmentStore()

        assert store.load_json(tmp_path / "missing.json") == 0
        assert store.appointments() == []

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "data" / "appointments.json"
        original = InMemoryAppointmentStore(appointments=[
            _appointment("a1", "2024-03-04 10:00", "2024-03-04 11:00", client_ref="c-1", service_ref="cut"),
            _appointment("a2", "2024-03-05 10:00", "2024-03-05 11:00", status=AppointmentStatus.NO_SHOW),
        ])

        original.save_json(path)
        restored = InMemoryAppointmentStore()
        count = restored.load_json(path)

        assert count == 2
        assert restored.appointments() == original.appointments()
        assert json.loads(path.read_text())[0]["resource_id"] == "ana"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "appointments.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            InMemoryAppointmentStore().load_json(path)

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "appointments.json"
        path.write_text(json.dumps({"id": "a1"}))

        with pytest.raises(ValueError, match="list of appointments"):
            InMemoryAppointmentStore().load_json(path)

    @pytest.mark.parametrize(
        "entry",
        [
            {"resource_id": "ana", "start": "2024-03-04T10:00:00+00:00", "end": "2024-03-04T11:00:00+00:00"},
            {"id": "a1", "resource_id": "ana", "start": "2024-03-04T11:00:00+00:00", "end": "2024-03-04T10:00:00+00:00"},
            {"id": "a1", "resource_id": "ana", "start": "2024-03-04T10:00:00+00:00",
             "end": "2024-03-04T11:00:00+00:00", "status": "lost"},
            "oops",
            1,
        ],
    )
    def test_malformed_entry(self, tmp_path, entry):
        path = tmp_path / "appointments.json"
        path.write_text(json.dumps([entry]))

        with pytest.raises(ValueError, match="Malformed appointment"):
            InMemoryAppointmentStore().load_json(path)
