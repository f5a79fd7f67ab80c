"""Per-session set of transforms between preview, detector-crop and depth space."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from geometry.exceptions import GeometryError, GeometryNotConfiguredError
from geometry.transform import Transform, compose, invert

logger = logging.getLogger(__name__)


class Space(str, Enum):
    PREVIEW = "preview"
    CROP = "crop"
    DEPTH = "depth"


@dataclass(frozen=True)
class GeometrySnapshot:
    """All transforms of one configuration. Never mutated, only replaced."""

    preview_size: tuple[int, int]
    crop_size: tuple[int, int]
    depth_size: tuple[int, int]
    rotation: int
    maintain_aspect: bool
    preview_to_crop: Transform
    crop_to_preview: Transform
    preview_to_depth: Transform
    crop_to_depth: Transform
    depth_to_crop: Transform

    @classmethod
    def build(
        cls,
        preview_size: tuple[int, int],
        crop_size: tuple[int, int],
        depth_size: tuple[int, int],
        rotation: int,
        maintain_aspect: bool,
    ) -> GeometrySnapshot:
        preview_to_crop = Transform.build(*preview_size, *crop_size, rotation, maintain_aspect)
        preview_to_depth = Transform.build(*preview_size, *depth_size, rotation, maintain_aspect)
        crop_to_preview = invert(preview_to_crop)
        # Crop and depth are both already rotated; go through preview so the
        # sensor rotation is not applied a second time.
        crop_to_depth = compose(crop_to_preview, preview_to_depth)
        return cls(
            preview_size=tuple(preview_size),
            crop_size=tuple(crop_size),
            depth_size=tuple(depth_size),
            rotation=preview_to_crop.rotation,
            maintain_aspect=maintain_aspect,
            preview_to_crop=preview_to_crop,
            crop_to_preview=crop_to_preview,
            preview_to_depth=preview_to_depth,
            crop_to_depth=crop_to_depth,
            depth_to_crop=invert(crop_to_depth),
        )

    def transform(self, source: Space, dest: Space) -> Transform:
        try:
            return getattr(self, f"{Space(source).value}_to_{Space(dest).value}")
        except AttributeError:
            raise GeometryError(f"No transform from {source} to {dest}") from None


class FrameGeometry:
    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: GeometrySnapshot | None = None

    def configure(
        self,
        preview_size: tuple[int, int],
        crop_size: tuple[int, int],
        depth_size: tuple[int, int],
        rotation: int = 0,
        maintain_aspect: bool = False,
    ) -> GeometrySnapshot:
        # Build fully before publishing; readers keep whatever snapshot they hold.
        snapshot = GeometrySnapshot.build(preview_size, crop_size, depth_size, rotation, maintain_aspect)
        with self._lock:
            self._snapshot = snapshot
        logger.info(
            "Geometry configured: preview=%sx%s crop=%sx%s depth=%sx%s rotation=%d maintain_aspect=%s",
            *snapshot.preview_size,
            *snapshot.crop_size,
            *snapshot.depth_size,
            snapshot.rotation,
            snapshot.maintain_aspect,
        )
        return snapshot

    def snapshot(self) -> GeometrySnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise GeometryNotConfiguredError("FrameGeometry used before configure()")
        return snapshot

    def matches(self, preview_size: tuple[int, int]) -> bool:
        snapshot = self._snapshot
        return snapshot is not None and snapshot.preview_size == tuple(preview_size)

