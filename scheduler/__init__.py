"""Detection scheduling package."""

from .exceptions import SchedulerClosedError, SchedulerError
from .scheduler import DetectionScheduler
from .types import PassKind, PassResult, PipelineState, SchedulerStats

__all__ = [
    "DetectionScheduler",
    "PassKind",
    "PassResult",
    "PipelineState",
    "SchedulerClosedError",
    "SchedulerError",
    "SchedulerStats",
]
