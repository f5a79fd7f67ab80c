"""Camera loop that detects objects, measures them on demand and speaks the result."""
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import List, Optional

import cv2
import numpy as np

from common.settings import PipelineSettings, get_settings
from common.types import Detection
from cv.depth_model import get_depth_model
from cv.detectors import get_detector
from cv.exceptions import CameraUnavailableError, ModelLoadError
from cv.frame_source import CameraSource
from depth.aggregator import DepthAggregator
from geometry.frame_geometry import FrameGeometry
from scheduler import DetectionScheduler, PassKind, PassResult
from speech.annunciator import Annunciator
from speech.engine import Pyttsx3Speaker

logger = logging.getLogger(__name__)

WINDOW_NAME = "depth-announcer"
BOX_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 255)


@dataclass
class OverlayState:
    detections: List[Detection] = field(default_factory=list)
    status: dict = field(default_factory=dict)

    def update(self, result: PassResult) -> None:
        if result.kind is PassKind.DETECTION:
            self.detections = result.preview_detections
            self.status = result.status()
        for estimate in result.estimates:
            if estimate.is_valid:
                logger.info("%s at %.2fm", estimate.detection.label, estimate.mean_depth)


def draw_overlay(frame: np.ndarray, state: OverlayState) -> np.ndarray:
    for det in state.detections:
        left, top, right, bottom = (int(v) for v in det.box.as_tuple())
        cv2.rectangle(frame, (left, top), (right, bottom), BOX_COLOR, 2)
        cv2.putText(
            frame,
            f"{det.label} {det.confidence:.2f}",
            (left, max(12, top - 4)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.45,
            BOX_COLOR,
            1,
        )
    y = 18
    for key in ("frame", "crop", "inference"):
        if key in state.status:
            cv2.putText(frame, f"{key}: {state.status[key]}", (8, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, TEXT_COLOR, 1)
            y += 18
    return frame


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect objects, estimate their distance from monocular depth and announce them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Webcam with preview window; press SPACE to hear distances, q to quit
  depth-announcer --source 0

  # Video file without a window, announce every 5 seconds
  depth-announcer --source walk.mp4 --headless --announce-every 5
        """,
    )
    parser.add_argument("--source", default=None, help="Camera index, file path or stream URL")
    parser.add_argument("--detector-model", default=None, help="YOLO weights path or name")
    parser.add_argument("--depth-model", default=None, help="MiDaS model type (e.g. MiDaS_small, DPT_Hybrid)")
    parser.add_argument("--rotation", type=int, default=None, help="Sensor rotation in degrees (multiple of 90)")
    parser.add_argument("--maintain-aspect", action="store_true", default=None,
                        help="Scale uniformly into the crop/depth grids instead of stretching")
    parser.add_argument("--tracking-confidence", type=float, default=None,
                        help="Minimum confidence to show a detection")
    parser.add_argument("--speech-confidence", type=float, default=None,
                        help="Minimum confidence to measure and announce a detection")
    parser.add_argument("--depth-scale", type=float, default=None,
                        help="Divisor mapping raw depth output to meters")
    parser.add_argument("--threads", type=int, default=None, help="Detector CPU threads")
    parser.add_argument("--accelerate", action="store_true", default=None, help="Use CUDA when available")
    parser.add_argument("--headless", action="store_true", help="Do not open a preview window")
    parser.add_argument("--announce-every", type=float, default=0.0,
                        help="Trigger a distance announcement every N seconds (0 = key only)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def settings_from_args(args: argparse.Namespace, base: PipelineSettings | None = None) -> PipelineSettings:
    base = base or get_settings()
    overrides = {
        "camera_source": args.source,
        "detector_model": args.detector_model,
        "depth_model": args.depth_model,
        "sensor_rotation": args.rotation,
        "maintain_aspect": args.maintain_aspect,
        "tracking_confidence": args.tracking_confidence,
        "speech_confidence": args.speech_confidence,
        "depth_scale_divisor": args.depth_scale,
        "detector_threads": args.threads,
        "use_acceleration": args.accelerate,
    }
    values = base.model_dump()
    values.update({key: value for key, value in overrides.items() if value is not None})
    return PipelineSettings(**values)


def run(settings: PipelineSettings, headless: bool = False, announce_every: float = 0.0) -> int:
    try:
        detector = get_detector(
            model_path=settings.detector_model,
            confidence=min(settings.tracking_confidence, settings.speech_confidence),
            use_acceleration=settings.use_acceleration,
        )
        depth_model = get_depth_model(settings.depth_model, use_acceleration=settings.use_acceleration)
    except ModelLoadError as exc:
        logger.error("Model initialization failed: %s", exc, exc_info=exc.__cause__)
        print(f"Models could not be initialized: {exc}", file=sys.stderr)
        return 1

    camera = CameraSource(settings.camera_source, settings.preview_width, settings.preview_height)
    try:
        camera.start()
    except CameraUnavailableError as exc:
        logger.error("%s", exc)
        print(f"Camera could not be opened: {exc}", file=sys.stderr)
        return 1

    speaker = Pyttsx3Speaker(rate=settings.speech_rate)
    speaker.start()
    overlay = OverlayState()
    scheduler = DetectionScheduler(
        detector=detector,
        depth_model=depth_model,
        annunciator=Annunciator(speaker, tag=settings.utterance_tag),
        geometry=FrameGeometry(),
        aggregator=DepthAggregator(settings.depth_scale_divisor),
        settings=settings,
        result_handler=overlay.update,
    )
    scheduler.set_thread_count(settings.detector_threads)
    scheduler.start_session()

    last_request = time.monotonic()
    view: Optional[np.ndarray] = None
    try:
        while camera.is_running:
            item = camera.next_frame(timeout=0.05)
            if item is not None:
                packet, release = item
                if not headless:
                    view = packet.frame.copy()
                scheduler.on_frame(packet, release)

            scheduler.process_results()

            now = time.monotonic()
            if announce_every > 0 and now - last_request >= announce_every:
                scheduler.request_distance()
                last_request = now

            if headless:
                continue
            if view is not None:
                cv2.imshow(WINDOW_NAME, draw_overlay(view.copy(), overlay))
            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                break
            if key == ord(" "):
                scheduler.request_distance()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        camera.stop()
        scheduler.shutdown()
        speaker.close()
        if not headless:
            cv2.destroyAllWindows()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = settings_from_args(args)
    return run(settings, headless=args.headless, announce_every=args.announce_every)


if __name__ == "__main__":
    sys.exit(main())
