"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling_service import AppointmentStoreProtocol, SchedulingService
from .seeder import AppointmentSeeder

__all__ = ["AppointmentSeeder", "AppointmentStoreProtocol", "SchedulingService"]
