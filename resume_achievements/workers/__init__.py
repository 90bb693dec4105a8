"""Background workers started with the application."""

from .housekeeping import HousekeepingWorker

__all__ = ["HousekeepingWorker"]
