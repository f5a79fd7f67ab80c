"""Distance estimation from dense depth and horizontal direction."""

from .aggregator import DEFAULT_POST_SCALE_DIVISOR, DepthAggregator
from .direction import classify, classify_rect

__all__ = [
    "DEFAULT_POST_SCALE_DIVISOR",
    "DepthAggregator",
    "classify",
    "classify_rect",
]
