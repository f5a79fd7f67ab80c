"""Tests for environment-driven pipeline settings."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from common.settings import PipelineSettings

ENV_VARS = [
    "CAMERA_SOURCE",
    "PREVIEW_WIDTH",
    "PREVIEW_HEIGHT",
    "DETECTOR_INPUT_SIZE",
    "DEPTH_WIDTH",
    "DEPTH_HEIGHT",
    "SENSOR_ROTATION",
    "MAINTAIN_ASPECT",
    "TRACKING_CONFIDENCE",
    "SPEECH_CONFIDENCE",
    "DEPTH_SCALE_DIVISOR",
    "DETECTOR_MODEL",
    "DETECTOR_THREADS",
    "USE_ACCELERATION",
    "DEPTH_MODEL",
    "SPEECH_RATE",
    "UTTERANCE_TAG",
]


@pytest.fixture()
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    def test_reference_defaults(self, clean_env):
        settings = PipelineSettings()
        assert settings.preview_size == (640, 480)
        assert settings.crop_dims == (300, 300)
        assert settings.depth_size == (640, 448)
        assert settings.tracking_confidence == 0.5
        assert settings.speech_confidence == 0.6
        assert settings.depth_scale_divisor == 8.0
        assert settings.sensor_rotation == 0
        assert settings.maintain_aspect is False
        assert settings.use_acceleration is False
        assert settings.utterance_tag == "Object Annotation"


class TestEnvironment:
    def test_numeric_overrides(self, clean_env):
        clean_env.setenv("DEPTH_SCALE_DIVISOR", "4")
        clean_env.setenv("DETECTOR_INPUT_SIZE", "320")
        clean_env.setenv("SENSOR_ROTATION", "90")
        settings = PipelineSettings()
        assert settings.depth_scale_divisor == 4.0
        assert settings.crop_dims == (320, 320)
        assert settings.sensor_rotation == 90

    @pytest.mark.parametrize("raw, expected", [("yes", True), ("1", True), ("On", True), ("no", False), ("", False)])
    def test_boolean_flags(self, clean_env, raw, expected):
        clean_env.setenv("MAINTAIN_ASPECT", raw)
        assert PipelineSettings().maintain_aspect is expected

    def test_camera_source_is_stripped(self, clean_env):
        clean_env.setenv("CAMERA_SOURCE", "  rtsp://cam/stream ")
        assert PipelineSettings().camera_source == "rtsp://cam/stream"


class TestValidation:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("tracking_confidence", 1.5),
            ("speech_confidence", -0.1),
            ("depth_scale_divisor", 0.0),
            ("crop_size", 0),
            ("depth_width", -640),
            ("sensor_rotation", 45),
        ],
    )
    def test_out_of_range_rejected(self, clean_env, field, value):
        with pytest.raises(ValidationError):
            PipelineSettings(**{field: value})

    def test_bad_environment_value_rejected(self, clean_env):
        clean_env.setenv("SPEECH_CONFIDENCE", "2")
        with pytest.raises(ValidationError):
            PipelineSettings()

    def test_rotation_from_environment_rejected(self, clean_env):
        clean_env.setenv("SENSOR_ROTATION", "45")
        with pytest.raises(ValidationError):
            PipelineSettings()

    @pytest.mark.parametrize("raw, expected", [(-90, 270), (450, 90), (180, 180)])
    def test_rotation_normalized(self, clean_env, raw, expected):
        assert PipelineSettings(sensor_rotation=raw).sensor_rotation == expected
