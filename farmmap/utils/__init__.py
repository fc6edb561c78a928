"""Utility package exports for FarmParcelMap."""

from farmmap.utils.scheduling import Scheduler, qt_scheduler

__all__ = [
    "Scheduler",
    "qt_scheduler",
]
