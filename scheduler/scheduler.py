"""Single-flight scheduling of detection and on-demand distance passes."""
from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional

import numpy as np

from common.settings import PipelineSettings, get_settings
from common.types import Announcement, DepthBuffer, Detection
from cv import imaging
from cv.frame_source import FramePacket, Release
from depth.aggregator import DepthAggregator
from depth.direction import classify_rect
from geometry.frame_geometry import FrameGeometry, GeometrySnapshot, Space
from scheduler.exceptions import SchedulerClosedError, SchedulerError
from scheduler.types import (
    DepthModel,
    Detector,
    PassJob,
    PassKind,
    PassResult,
    PipelineState,
    SchedulerStats,
)
from speech.annunciator import Annunciator

logger = logging.getLogger(__name__)

ResultHandler = Callable[[PassResult], None]


class DetectionScheduler:
    """Runs at most one background pass at a time.

    ``on_frame``, ``request_distance`` and ``process_results`` belong to the
    interaction thread; only that thread reads or writes the state flag. The
    worker touches the most-recent frame/detections only while it owns the one
    pass in flight, and hands results back through a queue.
    """

    def __init__(
        self,
        detector: Detector,
        depth_model: DepthModel,
        annunciator: Annunciator,
        geometry: FrameGeometry | None = None,
        aggregator: DepthAggregator | None = None,
        settings: PipelineSettings | None = None,
        executor: Executor | None = None,
        result_handler: ResultHandler | None = None,
    ):
        self._settings = settings or get_settings()
        self._detector = detector
        self._depth_model = depth_model
        self._annunciator = annunciator
        self._geometry = geometry or FrameGeometry()
        self._aggregator = aggregator or DepthAggregator(self._settings.depth_scale_divisor)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")
        self._result_handler = result_handler
        self._results: queue.Queue = queue.Queue()
        self._distance_pending = threading.Event()
        self._closed = False

        self._state = PipelineState.IDLE
        self._latest_frame: np.ndarray | None = None
        self._latest_frame_index = 0
        self._latest_geometry: GeometrySnapshot | None = None
        self._latest_detections: List[Detection] = []
        self.stats = SchedulerStats()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def geometry(self) -> FrameGeometry:
        return self._geometry

    def start_session(self) -> None:
        self._ensure_open()
        if self._state is PipelineState.DETECTING:
            raise SchedulerError("Cannot start a session while a pass is in flight")
        self._state = PipelineState.IDLE
        self._latest_frame = None
        self._latest_frame_index = 0
        self._latest_geometry = None
        self._latest_detections = []
        self._distance_pending.clear()
        self.stats = SchedulerStats()
        while True:
            try:
                self._results.get_nowait()
            except queue.Empty:
                break
        logger.info("Detection session started")

    # ---------- Interaction thread ----------

    def on_frame(self, packet: FramePacket, release: Release) -> bool:
        """Offer a camera frame. Returns True if a detection pass was dispatched.

        ``release`` hands the camera buffer back and is called exactly once,
        whether the frame is processed, dropped or an error is raised.
        """
        try:
            self._ensure_open()
            self.stats.frames_seen += 1
            if self._state is PipelineState.DETECTING:
                self.stats.frames_dropped += 1
                logger.debug("Dropping frame %d, pass in flight", packet.frame_index)
                return False
            frame = np.array(packet.frame, copy=True)
            preview_size = packet.size
        finally:
            release()

        snapshot = self._geometry_for(preview_size)
        logger.debug("Preparing frame %d for detection in background", packet.frame_index)
        self._dispatch(
            PassJob(
                kind=PassKind.DETECTION,
                frame_index=packet.frame_index,
                frame=frame,
                geometry=snapshot,
            )
        )
        return True

    def request_distance(self) -> bool:
        """Measure and announce the most recent detections.

        While a pass is in flight the request is parked and served by that pass
        or right after it. Returns False when there is nothing to measure.
        """
        self._ensure_open()
        self.stats.distance_requests += 1
        if self._state is PipelineState.DETECTING:
            self._distance_pending.set()
            logger.debug("Distance request parked behind running pass")
            return True
        return self._dispatch_distance()

    def process_results(self, timeout: float | None = None) -> int:
        """Apply posted pass results; optionally wait up to ``timeout`` for the first."""
        applied = 0
        while True:
            try:
                if timeout is not None and applied == 0:
                    result = self._results.get(timeout=timeout)
                else:
                    result = self._results.get_nowait()
            except queue.Empty:
                break
            self._apply(result)
            applied += 1
        return applied

    def set_thread_count(self, count: int) -> Future:
        return self._submit_config(self._detector.set_thread_count, count)

    def set_acceleration_enabled(self, enabled: bool) -> Future:
        return self._submit_config(self._detector.set_acceleration_enabled, enabled)

    def shutdown(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
        logger.info("Detection scheduler shut down (%s)", self.stats.to_dict())

    def _ensure_open(self) -> None:
        if self._closed:
            raise SchedulerClosedError("DetectionScheduler has been shut down")

    def _geometry_for(self, preview_size: tuple[int, int]) -> GeometrySnapshot:
        if not self._geometry.matches(preview_size):
            self._geometry.configure(
                preview_size=preview_size,
                crop_size=self._settings.crop_dims,
                depth_size=self._settings.depth_size,
                rotation=self._settings.sensor_rotation,
                maintain_aspect=self._settings.maintain_aspect,
            )
        return self._geometry.snapshot()

    def _dispatch(self, job: PassJob) -> None:
        self._state = PipelineState.DETECTING
        self.stats.passes_dispatched += 1
        try:
            self._executor.submit(self._run_pass, job)
        except Exception:
            self._state = PipelineState.IDLE
            raise

    def _dispatch_distance(self) -> bool:
        if self._latest_frame is None or not self._latest_detections:
            logger.warning("Distance request ignored: no frame or detections yet")
            return False
        self._dispatch(
            PassJob(
                kind=PassKind.DISTANCE,
                frame_index=self._latest_frame_index,
                frame=self._latest_frame,
                geometry=self._latest_geometry,
                detections=list(self._latest_detections),
            )
        )
        return True

    def _submit_config(self, fn: Callable, value) -> Future:
        self._ensure_open()
        future = self._executor.submit(fn, value)
        future.add_done_callback(_log_config_failure)
        return future

    def _apply(self, result: PassResult) -> None:
        try:
            self._deliver(result)
        finally:
            # A parked request is served on every path back to IDLE.
            self._state = PipelineState.IDLE
            if self._distance_pending.is_set() and not self._closed:
                self._distance_pending.clear()
                self._dispatch_distance()

    def _deliver(self, result: PassResult) -> None:
        if not result.ok:
            self.stats.passes_failed += 1
            logger.warning(
                "%s pass for frame %d failed: %s",
                result.kind.value,
                result.frame_index,
                result.error,
            )
            return
        if self._result_handler is not None:
            self._result_handler(result)
        for announcement in result.announcements:
            self._annunciator.announce(
                announcement.label,
                announcement.distance_m,
                announcement.direction,
            )

    # ---------- Worker ----------

    def _run_pass(self, job: PassJob) -> None:
        snapshot = job.geometry
        result = PassResult(
            kind=job.kind,
            frame_index=job.frame_index,
            frame_size=snapshot.preview_size,
            crop_size=snapshot.crop_size,
        )
        try:
            if job.kind is PassKind.DETECTION:
                self._detect(job, result)
                if self._distance_pending.is_set():
                    self._distance_pending.clear()
                    self._measure(job.frame, self._latest_detections, snapshot, result)
            else:
                self._measure(job.frame, job.detections, snapshot, result)
        except Exception as exc:
            logger.exception("%s pass failed on frame %d", job.kind.value, job.frame_index)
            result.error = exc
        finally:
            self._results.put(result)

    def _detect(self, job: PassJob, result: PassResult) -> None:
        logger.debug("Running detection on frame %d", job.frame_index)
        crop = imaging.warp(job.frame, job.geometry.transform(Space.PREVIEW, Space.CROP))

        start = time.monotonic()
        detections = self._detector.recognize_image(crop)
        result.inference_ms = (time.monotonic() - start) * 1000.0

        tracked = [d for d in detections if d.confidence >= self._settings.tracking_confidence]
        to_preview = job.geometry.transform(Space.CROP, Space.PREVIEW)
        result.crop_detections = tracked
        result.preview_detections = [d.with_box(to_preview.map_rect(d.box)) for d in tracked]

        self._latest_frame = job.frame
        self._latest_frame_index = job.frame_index
        self._latest_geometry = job.geometry
        self._latest_detections = list(detections)

    def _measure(
        self,
        frame: Optional[np.ndarray],
        detections: List[Detection],
        snapshot: GeometrySnapshot,
        result: PassResult,
    ) -> None:
        speakable = [d for d in detections if d.confidence >= self._settings.speech_confidence]
        if frame is None or not speakable:
            logger.info("Nothing to measure on frame %d", result.frame_index)
            return

        width, height = snapshot.depth_size
        depth_input = imaging.warp(frame, snapshot.transform(Space.PREVIEW, Space.DEPTH))
        start = time.monotonic()
        values = self._depth_model.infer(imaging.to_pixel_buffer(depth_input), width, height)
        logger.debug("Depth inference took %.1fms", (time.monotonic() - start) * 1000.0)
        depth = DepthBuffer(values=np.asarray(values).reshape(-1), width=width, height=height)

        to_depth = snapshot.transform(Space.CROP, Space.DEPTH)
        crop_width = snapshot.crop_size[0]
        for detection in speakable:
            rect = to_depth.map_rect(detection.box)
            estimate = self._aggregator.estimate_distance(depth, rect, detection)
            result.estimates.append(estimate)
            if not estimate.is_valid:
                logger.debug("No usable depth for %s at %s", detection.label, rect)
                continue
            result.announcements.append(
                Announcement(
                    label=detection.label,
                    distance_m=estimate.mean_depth,
                    direction=classify_rect(detection.box, crop_width),
                )
            )


def _log_config_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Detector configuration failed: %s", exc)
