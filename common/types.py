"""
Internal data structures shared by the geometry, depth and scheduling code.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel coordinates (right/bottom exclusive)."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2.0

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class Detection:
    """Detector output. The box is in whatever space the producer says it is."""
    box: Rect
    label: str
    confidence: float

    def with_box(self, box: Rect) -> Detection:
        return replace(self, box=box)


class Direction(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass
class DepthBuffer:
    """Row-major depth samples as produced by the depth model."""
    values: np.ndarray  # flat, length width * height (or shorter, see aggregator)
    width: int
    height: int


@dataclass(frozen=True)
class DistanceEstimate:
    detection: Optional[Detection]
    mean_depth: Optional[float]  # meters after the post-scale divisor; None when failed
    sample_count: int

    @property
    def is_valid(self) -> bool:
        return self.mean_depth is not None and self.sample_count > 0


@dataclass(frozen=True)
class Announcement:
    label: str
    distance_m: float
    direction: Direction
