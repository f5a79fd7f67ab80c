"""
Depth-under-box aggregation.

The detection rectangle is expected in depth space already. Pixels of the box
that fall off the depth grid are dropped from the sum *and* from the sample
count, so a box hanging over the frame edge is averaged over what is visible
instead of being pulled toward zero.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from common.types import DepthBuffer, Detection, DistanceEstimate, Rect

logger = logging.getLogger(__name__)

DEFAULT_POST_SCALE_DIVISOR = 8.0


class DepthAggregator:
    def __init__(self, post_scale_divisor: float = DEFAULT_POST_SCALE_DIVISOR):
        if not post_scale_divisor > 0:
            raise ValueError(f"post_scale_divisor must be positive, got {post_scale_divisor}")
        self.post_scale_divisor = float(post_scale_divisor)

    def estimate_distance(
        self,
        depth: DepthBuffer,
        rect: Rect,
        detection: Optional[Detection] = None,
    ) -> DistanceEstimate:
        values = np.asarray(depth.values).reshape(-1)

        # int() truncates toward zero.
        xs = np.arange(int(rect.left), int(rect.right))
        ys = np.arange(int(rect.top), int(rect.bottom))
        xs = xs[(xs >= 0) & (xs < depth.width)]
        ys = ys[(ys >= 0) & (ys < depth.height)]

        count = int(xs.size * ys.size)
        if count <= 0:
            logger.debug("No depth samples under %s on %dx%d grid", rect, depth.width, depth.height)
            return DistanceEstimate(detection=detection, mean_depth=None, sample_count=0)

        indices = (ys[:, None] * depth.width + xs[None, :]).reshape(-1)
        # A buffer shorter than width * height keeps those samples in the count
        # but contributes nothing to the sum.
        indices = indices[indices < values.size]
        total = float(values[indices].sum(dtype=np.float64))

        mean = total / count
        if not np.isfinite(mean):
            logger.debug("Non-finite depth under %s", rect)
            return DistanceEstimate(detection=detection, mean_depth=None, sample_count=count)
        return DistanceEstimate(
            detection=detection,
            mean_depth=mean / self.post_scale_divisor,
            sample_count=count,
        )
