"""Tests for the camera source and its single-slot buffer hand-back."""
from __future__ import annotations

import pytest

from cv.exceptions import CameraUnavailableError
from cv.frame_source import CameraSource, parse_source
from tests.fakes import FakeCapture


@pytest.fixture()
def capture(monkeypatch):
    created: list[FakeCapture] = []

    def _factory(source):
        cap = FakeCapture(source)
        created.append(cap)
        return cap

    monkeypatch.setattr("cv.frame_source.cv2.VideoCapture", _factory)
    return created


class TestParseSource:
    def test_digits_become_device_index(self):
        assert parse_source("0") == 0
        assert parse_source(" 2 ") == 2

    def test_paths_and_urls_pass_through(self):
        assert parse_source("walk.mp4") == "walk.mp4"
        assert parse_source("rtsp://cam/1") == "rtsp://cam/1"


class TestCameraSource:
    def test_open_failure_raises(self, monkeypatch):
        monkeypatch.setattr("cv.frame_source.cv2.VideoCapture", lambda source: FakeCapture(source, opened=False))
        with pytest.raises(CameraUnavailableError):
            CameraSource("0").start()

    def test_unreleased_frame_stalls_capture(self, capture):
        camera = CameraSource("0")
        camera.start()
        try:
            first = camera.next_frame(timeout=2)
            assert first is not None
            packet, release = first
            assert packet.frame_index == 1
            assert packet.size == (64, 48)

            assert camera.next_frame(timeout=0.3) is None
            assert capture[0].reads == 1

            release()
            second = camera.next_frame(timeout=2)
            assert second is not None
            assert second[0].frame_index == 2
            second[1]()
        finally:
            camera.stop()
        assert capture[0].released

    def test_release_is_idempotent(self, capture):
        camera = CameraSource("0")
        camera.start()
        try:
            packet, release = camera.next_frame(timeout=2)
            release()
            release()
            nxt = camera.next_frame(timeout=2)
            assert nxt is not None
            nxt[1]()
        finally:
            camera.stop()

    def test_stop_ends_running(self, capture):
        camera = CameraSource("0")
        camera.start()
        assert camera.is_running
        camera.stop()
        assert not camera.is_running
