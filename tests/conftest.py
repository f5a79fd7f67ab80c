"""Shared test fixtures.

Scheduler tests run the background pass inline through an immediate
executor unless a test asks for a real worker thread.
"""
from __future__ import annotations

import numpy as np
import pytest

from common.settings import PipelineSettings
from common.types import Detection, Rect
from cv.frame_source import FramePacket


# ---------- Settings ----------

@pytest.fixture()
def settings() -> PipelineSettings:
    return PipelineSettings(
        camera_source="0",
        preview_width=640,
        preview_height=480,
        crop_size=300,
        depth_width=640,
        depth_height=448,
        sensor_rotation=0,
        maintain_aspect=False,
        tracking_confidence=0.5,
        speech_confidence=0.6,
        depth_scale_divisor=8.0,
    )


# ---------- Frames and detections ----------

@pytest.fixture()
def make_packet():
    counter = {"idx": 0}

    def _factory(width: int = 640, height: int = 480, value: int = 0) -> FramePacket:
        counter["idx"] += 1
        frame = np.full((height, width, 3), value, dtype=np.uint8)
        return FramePacket(frame_index=counter["idx"], timestamp=counter["idx"] / 30.0, frame=frame)

    return _factory


@pytest.fixture()
def person() -> Detection:
    # Crop-space box [100, 200) x [100, 200) of a 300x300 crop.
    return Detection(box=Rect(100.0, 100.0, 200.0, 200.0), label="person", confidence=0.9)


# ---------- Scheduler ----------

@pytest.fixture()
def scheduler_factory(settings):
    """Create a DetectionScheduler with fakes for every collaborator.

    Returns a factory accepting keyword overrides; all schedulers are shut
    down on teardown.
    """
    from scheduler import DetectionScheduler
    from speech.annunciator import Annunciator
    from tests.fakes import FakeDepthModel, FakeDetector, FakeSpeaker, ImmediateExecutor

    created: list[DetectionScheduler] = []

    def _factory(**kwargs) -> DetectionScheduler:
        speaker = kwargs.pop("speaker", None) or FakeSpeaker()
        defaults = dict(
            detector=FakeDetector(),
            depth_model=FakeDepthModel(),
            annunciator=Annunciator(speaker),
            settings=settings,
            executor=ImmediateExecutor(),
        )
        defaults.update(kwargs)
        sched = DetectionScheduler(**defaults)
        sched.speaker = speaker
        sched.start_session()
        created.append(sched)
        return sched

    yield _factory

    for sched in created:
        sched.shutdown()
