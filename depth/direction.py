"""Left / center / right split of a box position."""
from __future__ import annotations

from common.types import Direction, Rect


def classify(center_x: float, reference_width: float) -> Direction:
    """Place ``center_x`` in thirds of ``reference_width``.

    ``reference_width`` must be the width of the space ``center_x`` was measured
    in; mixing spaces silently skews the split.
    """
    if center_x <= reference_width / 3.0:
        return Direction.LEFT
    if center_x <= reference_width * 2.0 / 3.0:
        return Direction.CENTER
    return Direction.RIGHT


def classify_rect(rect: Rect, reference_width: float) -> Direction:
    return classify(rect.center_x, reference_width)
