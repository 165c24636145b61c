"""Periodic refresh of the rate series."""

from krw_rate_dashboard.scheduler.refresh import RefreshScheduler, ScheduleHandle

__all__ = ["RefreshScheduler", "ScheduleHandle"]
