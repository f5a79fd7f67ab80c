"""
Camera frame source with explicit buffer hand-back.

The capture thread owns a single frame slot. A packet handed to the consumer
keeps that slot busy until its release callable runs; until then no new frame
is captured. Forgetting to release a packet stalls the camera.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import cv2
import numpy as np

from cv.exceptions import CameraUnavailableError

logger = logging.getLogger(__name__)

Release = Callable[[], None]


@dataclass
class FramePacket:
    frame_index: int
    timestamp: float
    frame: np.ndarray

    @property
    def size(self) -> tuple[int, int]:
        height, width = self.frame.shape[:2]
        return width, height


def parse_source(source: Union[str, int]) -> Union[str, int]:
    if isinstance(source, str) and source.strip().isdigit():
        return int(source.strip())
    return source


class CameraSource:
    def __init__(
        self,
        source: Union[str, int],
        width: int | None = None,
        height: int | None = None,
        loop: bool = True,
    ) -> None:
        self.source = parse_source(source)
        self.width = width
        self.height = height
        self.loop = loop
        self._cap: cv2.VideoCapture | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._slot_free = threading.Event()
        self._ready = threading.Event()
        self._pending: FramePacket | None = None
        self._start_wall = time.monotonic()
        self._frame_index = 0

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            cap = cv2.VideoCapture(self.source)
            if not cap.isOpened():
                raise CameraUnavailableError(f"Failed to open camera source: {self.source}")
            # Desired size only; the device may pick something else.
            if self.width:
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            if self.height:
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self._cap = cap
            self._stopped.clear()
            self._slot_free.set()
            self._start_wall = time.monotonic()
            self._thread = threading.Thread(target=self._run, name="camera", daemon=True)
            self._thread.start()
        logger.info("Camera source %s started", self.source)

    def stop(self) -> None:
        self._stopped.set()
        self._slot_free.set()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        logger.info("Camera source %s stopped", self.source)

    def next_frame(self, timeout: float | None = None) -> Optional[Tuple[FramePacket, Release]]:
        """Take the captured frame, if any. The caller must invoke the release."""
        if not self._ready.wait(timeout):
            return None
        with self._lock:
            packet = self._pending
            self._pending = None
            self._ready.clear()
        if packet is None:
            return None
        return packet, self._make_release()

    def _make_release(self) -> Release:
        released = threading.Event()

        def release() -> None:
            if released.is_set():
                return
            released.set()
            self._slot_free.set()

        return release

    def _timestamp_from_capture(self, cap: cv2.VideoCapture) -> float:
        # Prefer capture timestamps when the backend reports them.
        pos_msec = cap.get(cv2.CAP_PROP_POS_MSEC)
        if pos_msec and pos_msec > 0:
            return pos_msec / 1000.0
        return time.monotonic() - self._start_wall

    def _run(self) -> None:
        cap = self._cap
        try:
            while not self._stopped.is_set():
                # Camera buffer is still held downstream.
                if not self._slot_free.wait(timeout=0.1):
                    continue
                if self._stopped.is_set():
                    break

                ret, frame = cap.read()
                if not ret:
                    if self.loop and isinstance(self.source, str):
                        # Loop file sources for demo repeatability.
                        cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                        self._start_wall = time.monotonic()
                        continue
                    logger.warning("Camera source %s ended", self.source)
                    break

                self._frame_index += 1
                packet = FramePacket(
                    frame_index=self._frame_index,
                    timestamp=self._timestamp_from_capture(cap),
                    frame=frame,
                )
                with self._lock:
                    self._slot_free.clear()
                    self._pending = packet
                    self._ready.set()
        finally:
            cap.release()
            self._stopped.set()

    @property
    def is_running(self) -> bool:
        return not self._stopped.is_set()
