"""
Domain-specific exception hierarchy for the salon scheduler.

Booking rejections are *not* exceptions: they are returned as ``Rejected``
values by the conflict guard and the scheduling service.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidPolicy(SchedulingError):
    """Raised when working hours or booking policy values are inconsistent."""


class StorageUnavailable(SchedulingError):
    """Raised by a persistence collaborator that cannot serve a request."""


class CommitConflictError(SchedulingError):
    """Raised when the store refuses a commit because the slot was taken."""

    def __init__(self, message: str, conflicting_appointment_id: str | None = None):
        super().__init__(message)
        self.conflicting_appointment_id = conflicting_appointment_id


class UnknownResourceError(SchedulingError):
    """Raised when no policy exists for the requested resource."""
