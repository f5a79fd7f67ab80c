"""Coordinate-space transforms between preview, crop and depth grids."""

from .exceptions import GeometryError, GeometryNotConfiguredError
from .frame_geometry import FrameGeometry, GeometrySnapshot, Space
from .transform import Transform, compose, invert

__all__ = [
    "FrameGeometry",
    "GeometryError",
    "GeometryNotConfiguredError",
    "GeometrySnapshot",
    "Space",
    "Transform",
    "compose",
    "invert",
]
