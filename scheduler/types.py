"""Types for the detection scheduler."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

import numpy as np

from common.types import Announcement, Detection, DistanceEstimate
from geometry.frame_geometry import GeometrySnapshot


class PipelineState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"


class PassKind(str, Enum):
    DETECTION = "detection"
    DISTANCE = "distance"


class Detector(Protocol):
    def recognize_image(self, image: np.ndarray) -> List[Detection]:
        ...

    def set_thread_count(self, count: int) -> None:
        ...

    def set_acceleration_enabled(self, enabled: bool) -> None:
        ...


class DepthModel(Protocol):
    def infer(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        ...


@dataclass
class PassJob:
    """Everything one background pass needs. Owned by that pass alone."""

    kind: PassKind
    frame_index: int
    frame: np.ndarray
    geometry: GeometrySnapshot
    detections: List[Detection] = field(default_factory=list)


@dataclass
class PassResult:
    """Posted by the worker, applied on the interaction thread."""

    kind: PassKind
    frame_index: int
    frame_size: tuple[int, int]
    crop_size: tuple[int, int]
    preview_detections: List[Detection] = field(default_factory=list)
    crop_detections: List[Detection] = field(default_factory=list)
    estimates: List[DistanceEstimate] = field(default_factory=list)
    announcements: List[Announcement] = field(default_factory=list)
    inference_ms: float = 0.0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def status(self) -> dict:
        return {
            "frame": f"{self.frame_size[0]}x{self.frame_size[1]}",
            "crop": f"{self.crop_size[0]}x{self.crop_size[1]}",
            "inference": f"{int(round(self.inference_ms))}ms",
        }


@dataclass
class SchedulerStats:
    frames_seen: int = 0
    frames_dropped: int = 0
    passes_dispatched: int = 0
    passes_failed: int = 0
    distance_requests: int = 0

    def to_dict(self) -> dict:
        return {
            "frames_seen": self.frames_seen,
            "frames_dropped": self.frames_dropped,
            "passes_dispatched": self.passes_dispatched,
            "passes_failed": self.passes_failed,
            "distance_requests": self.distance_requests,
        }
