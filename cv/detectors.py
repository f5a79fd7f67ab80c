"""
YOLO object detector working on the square detector crop.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import numpy as np
import torch
from ultralytics import YOLO

from common.types import Detection, Rect
from cv.exceptions import ModelLoadError

logger = logging.getLogger(__name__)

CONFIDENCE = 0.25
IOU_THRESHOLD = 0.45


class YoloDetector:
    DEFAULT_MODEL = "yolov8n.pt"

    def __init__(
        self,
        model_path: str | None = None,
        confidence: float = CONFIDENCE,
        use_acceleration: bool = False,
    ):
        self.confidence = confidence
        self._device = "cpu"
        self._use_half = False
        self.model = self._load_model(model_path or self.DEFAULT_MODEL)
        self.set_acceleration_enabled(use_acceleration)

    def _load_model(self, model_path: str) -> YOLO:
        path = Path(model_path)
        source = str(path) if path.exists() else model_path
        logger.info("Loading detector model from: %s", source)
        try:
            return YOLO(source)
        except Exception as exc:
            raise ModelLoadError(f"Detector model '{model_path}' could not be loaded") from exc

    def set_thread_count(self, count: int) -> None:
        torch.set_num_threads(max(1, int(count)))
        logger.info("Detector using %d CPU threads", torch.get_num_threads())

    def set_acceleration_enabled(self, enabled: bool) -> None:
        if enabled and torch.cuda.is_available():
            self._device = "cuda"
            self._use_half = True
            logger.info("Detector accelerated on %s", torch.cuda.get_device_name(0))
        else:
            if enabled:
                logger.warning("Acceleration requested but CUDA is not available; staying on CPU")
            self._device = "cpu"
            self._use_half = False

    def recognize_image(self, image: np.ndarray) -> List[Detection]:
        """Detect objects in ``image``; boxes come back in its pixel space."""
        height, width = image.shape[:2]
        results = self.model(
            image,
            conf=self.confidence,
            iou=IOU_THRESHOLD,
            imgsz=max(width, height),
            device=self._device,
            half=self._use_half,
            verbose=False,
        )[0]

        detections: List[Detection] = []
        boxes = results.boxes
        if boxes is None or len(boxes) == 0:
            return detections

        # Batch GPU->CPU transfer: one round-trip instead of per-box
        xyxy_all = boxes.xyxy.cpu().numpy()
        conf_all = boxes.conf.cpu().numpy()
        cls_all = boxes.cls.cpu().numpy().astype(int)

        for i in range(len(xyxy_all)):
            x1, y1, x2, y2 = (float(v) for v in xyxy_all[i])
            class_id = int(cls_all[i])
            detections.append(
                Detection(
                    box=Rect(x1, y1, x2, y2),
                    label=str(results.names.get(class_id, class_id)),
                    confidence=float(conf_all[i]),
                )
            )
        return detections


def get_detector(
    model_path: str | None = None,
    confidence: float = CONFIDENCE,
    use_acceleration: bool = False,
) -> YoloDetector:
    return YoloDetector(model_path=model_path, confidence=confidence, use_acceleration=use_acceleration)
