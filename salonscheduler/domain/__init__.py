"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .availability import AvailabilityComputer
from .conflict_guard import Accepted, ConflictGuard, Rejected, RejectionReason, find_conflict
from .models import (
    AppointmentStatus,
    CommittedAppointment,
    ScheduleException,
    Slot,
    TimeRange,
    Weekday,
    WeekdayWindow,
)
from .policy import SchedulingPolicy, default_policy, default_weekly_windows

__all__ = [
    "Accepted",
    "AppointmentStatus",
    "AvailabilityComputer",
    "CommittedAppointment",
    "ConflictGuard",
    "Rejected",
    "RejectionReason",
    "ScheduleException",
    "SchedulingPolicy",
    "Slot",
    "TimeRange",
    "Weekday",
    "WeekdayWindow",
    "default_policy",
    "default_weekly_windows",
    "find_conflict",
]
