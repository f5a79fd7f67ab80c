"""
Affine mappings between fixed-size pixel grids.

A transform is built once per session from the source and destination grid
sizes, the sensor rotation and the aspect policy, and is immutable afterwards.
Matrices are 3x3 homogeneous, applied to column vectors ``[x, y, 1]``.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from common.types import Rect
from geometry.exceptions import GeometryError

# Exact values so 90-degree rotations do not leave 1e-17 residue in the matrix.
_ROTATIONS = {
    0: (1.0, 0.0),
    90: (0.0, 1.0),
    180: (-1.0, 0.0),
    270: (0.0, -1.0),
}


def normalize_rotation(degrees: int) -> int:
    if degrees % 90 != 0:
        raise GeometryError(f"Rotation must be a multiple of 90 degrees, got {degrees}")
    return degrees % 360


def _translation(dx: float, dy: float) -> np.ndarray:
    return np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])


def _scaling(sx: float, sy: float) -> np.ndarray:
    return np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]])


def _rotation(degrees: int) -> np.ndarray:
    # y points down on screen, so a positive angle turns clockwise.
    cos, sin = _ROTATIONS[degrees]
    return np.array([[cos, -sin, 0.0], [sin, cos, 0.0], [0.0, 0.0, 1.0]])


def _frozen(matrix: np.ndarray) -> np.ndarray:
    matrix = np.array(matrix, dtype=np.float64)
    matrix.setflags(write=False)
    return matrix


@dataclass(frozen=True, eq=False)
class Transform:
    source_size: tuple[int, int]
    dest_size: tuple[int, int]
    rotation: int
    maintain_aspect: bool
    matrix: np.ndarray

    @classmethod
    def build(
        cls,
        src_width: int,
        src_height: int,
        dst_width: int,
        dst_height: int,
        rotation: int = 0,
        maintain_aspect: bool = False,
    ) -> Transform:
        """Map a ``src`` grid onto a ``dst`` grid, rotating about the midpoint.

        Without ``maintain_aspect`` each axis is scaled to fill the destination
        exactly. With it, one uniform factor fills the destination and the
        overflow is centered (the source gets center-cropped).
        """
        if min(src_width, src_height, dst_width, dst_height) <= 0:
            raise GeometryError(
                f"Transform dimensions must be positive: "
                f"{src_width}x{src_height} -> {dst_width}x{dst_height}"
            )
        rotation = normalize_rotation(rotation)

        matrix = _translation(-src_width / 2.0, -src_height / 2.0)
        matrix = _rotation(rotation) @ matrix

        # After a quarter turn the source's width lies along the destination's height.
        transpose = rotation in (90, 270)
        in_width, in_height = (src_height, src_width) if transpose else (src_width, src_height)
        scale_x = dst_width / float(in_width)
        scale_y = dst_height / float(in_height)
        if maintain_aspect:
            scale = max(scale_x, scale_y)
            scale_x = scale_y = scale
        matrix = _scaling(scale_x, scale_y) @ matrix
        matrix = _translation(dst_width / 2.0, dst_height / 2.0) @ matrix

        return cls(
            source_size=(int(src_width), int(src_height)),
            dest_size=(int(dst_width), int(dst_height)),
            rotation=rotation,
            maintain_aspect=maintain_aspect,
            matrix=_frozen(matrix),
        )

    @property
    def affine(self) -> np.ndarray:
        """2x3 form accepted by ``cv2.warpAffine``."""
        return np.ascontiguousarray(self.matrix[:2, :])

    def map_point(self, x: float, y: float) -> tuple[float, float]:
        px, py, _ = self.matrix @ np.array([x, y, 1.0])
        return float(px), float(py)

    def map_points(self, points: np.ndarray) -> np.ndarray:
        """Map an ``(N, 2)`` array of points."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        homogeneous = np.hstack([points, np.ones((len(points), 1))])
        return (homogeneous @ self.matrix.T)[:, :2]

    def map_rect(self, rect: Rect) -> Rect:
        """Bounding box of the four mapped corners."""
        corners = np.array(
            [
                [rect.left, rect.top],
                [rect.right, rect.top],
                [rect.right, rect.bottom],
                [rect.left, rect.bottom],
            ]
        )
        mapped = self.map_points(corners)
        xs, ys = mapped[:, 0], mapped[:, 1]
        return Rect(float(xs.min()), float(ys.min()), float(xs.max()), float(ys.max()))

    def __repr__(self) -> str:
        return (
            f"Transform({self.source_size[0]}x{self.source_size[1]} -> "
            f"{self.dest_size[0]}x{self.dest_size[1]}, rotation={self.rotation}, "
            f"maintain_aspect={self.maintain_aspect})"
        )


def invert(transform: Transform) -> Transform:
    if abs(np.linalg.det(transform.matrix)) < 1e-12:
        raise GeometryError(f"Cannot invert singular transform {transform!r}")
    try:
        inverse = np.linalg.inv(transform.matrix)
    except np.linalg.LinAlgError as exc:
        raise GeometryError(f"Cannot invert transform {transform!r}") from exc
    return Transform(
        source_size=transform.dest_size,
        dest_size=transform.source_size,
        rotation=(360 - transform.rotation) % 360,
        maintain_aspect=transform.maintain_aspect,
        matrix=_frozen(inverse),
    )


def compose(first: Transform, second: Transform) -> Transform:
    """Transform that applies ``first`` and then ``second``."""
    if first.dest_size != second.source_size:
        raise GeometryError(
            f"Cannot compose {first!r} with {second!r}: "
            f"{first.dest_size} does not feed {second.source_size}"
        )
    return Transform(
        source_size=first.source_size,
        dest_size=second.dest_size,
        rotation=(first.rotation + second.rotation) % 360,
        maintain_aspect=first.maintain_aspect or second.maintain_aspect,
        matrix=_frozen(second.matrix @ first.matrix),
    )
