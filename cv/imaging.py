"""
Image plumbing between camera frames and model inputs.
"""
from __future__ import annotations

import cv2
import numpy as np

from geometry.transform import Transform


def warp(frame: np.ndarray, transform: Transform) -> np.ndarray:
    """Render ``frame`` into the destination grid of ``transform``.

    Equivalent to drawing the frame through the transform matrix onto a blank
    canvas of the destination size; uncovered pixels stay black.
    """
    width, height = transform.dest_size
    return cv2.warpAffine(
        frame,
        transform.affine,
        (width, height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )


def to_pixel_buffer(image_bgr: np.ndarray) -> np.ndarray:
    """Flatten a BGR uint8 image into interleaved RGB floats in [0, 1].

    Output length is ``width * height * 3``, row-major, channel order R, G, B.
    """
    rgb = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)
    return (rgb.astype(np.float32) / 255.0).reshape(-1)
