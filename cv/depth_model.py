"""
Monocular depth model (MiDaS via torch.hub).
"""
from __future__ import annotations

import logging

import numpy as np
import torch

from cv.exceptions import ModelLoadError

logger = logging.getLogger(__name__)

MIDAS_REPO = "intel-isl/MiDaS"
# ImageNet statistics used by the MiDaS small/hybrid transforms.
_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


class MidasDepthModel:
    DEFAULT_MODEL = "MiDaS_small"

    def __init__(self, model_type: str | None = None, use_acceleration: bool = False):
        self.model_type = model_type or self.DEFAULT_MODEL
        self.device = torch.device("cuda" if use_acceleration and torch.cuda.is_available() else "cpu")
        self.model = self._load_model()

    def _load_model(self):
        logger.info("Loading depth model %s from %s on %s", self.model_type, MIDAS_REPO, self.device)
        try:
            model = torch.hub.load(MIDAS_REPO, self.model_type, trust_repo=True)
        except Exception as exc:
            raise ModelLoadError(f"Depth model '{self.model_type}' could not be loaded") from exc
        model.to(self.device)
        model.eval()
        return model

    def infer(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        """Run depth on a flattened RGB buffer; returns ``width * height`` values row-major."""
        pixels = np.asarray(pixels, dtype=np.float32)
        expected = width * height * 3
        if pixels.size != expected:
            raise ValueError(f"Expected {expected} channel values for {width}x{height}, got {pixels.size}")

        image = (pixels.reshape(height, width, 3) - _MEAN) / _STD
        batch = torch.from_numpy(np.ascontiguousarray(image.transpose(2, 0, 1))).unsqueeze(0)

        with torch.no_grad():
            prediction = self.model(batch.to(self.device))
            prediction = torch.nn.functional.interpolate(
                prediction.unsqueeze(1),
                size=(height, width),
                mode="bicubic",
                align_corners=False,
            ).squeeze()

        return prediction.cpu().numpy().astype(np.float32).reshape(-1)


def get_depth_model(model_type: str | None = None, use_acceleration: bool = False) -> MidasDepthModel:
    return MidasDepthModel(model_type=model_type, use_acceleration=use_acceleration)
