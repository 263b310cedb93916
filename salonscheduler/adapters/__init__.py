"""
Adapters layer - Persistence collaborators for the scheduling service.
"""

from .memory_store import InMemoryAppointmentStore

__all__ = ["InMemoryAppointmentStore"]
