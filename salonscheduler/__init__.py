"""
Appointment scheduling and availability engine for salons and clinics.
"""

__version__ = "0.1.0"
