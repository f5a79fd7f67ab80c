"""Custom exceptions for detection scheduling."""


class SchedulerError(Exception):
    """Base scheduler exception."""


class SchedulerClosedError(SchedulerError):
    """Raised when frames or requests arrive after shutdown()."""
