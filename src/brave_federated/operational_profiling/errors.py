"""Exceptions raised by the operational profiling components."""


class OperationalProfilingError(Exception):
    """Base class for operational profiling errors."""


class SchedulerError(OperationalProfilingError):
    """Raised when the scheduler lifecycle is misused (double start, start after close)."""
