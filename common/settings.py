"""
Pipeline configuration resolved from the environment.
"""
from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from geometry.transform import normalize_rotation

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(dotenv_path=os.path.join(BASE_DIR, ".env"))


def _truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class PipelineSettings(BaseModel):
    """Runtime configuration for one camera session."""

    # Environment values arrive through default factories and must be checked too.
    model_config = ConfigDict(validate_default=True)

    camera_source: str = Field(default_factory=lambda: os.getenv("CAMERA_SOURCE", "0").strip())
    preview_width: int = Field(default_factory=lambda: _env_int("PREVIEW_WIDTH", 640), gt=0)
    preview_height: int = Field(default_factory=lambda: _env_int("PREVIEW_HEIGHT", 480), gt=0)

    # Detector input is square, the SSD-style models take 300x300.
    crop_size: int = Field(default_factory=lambda: _env_int("DETECTOR_INPUT_SIZE", 300), gt=0)
    depth_width: int = Field(default_factory=lambda: _env_int("DEPTH_WIDTH", 640), gt=0)
    depth_height: int = Field(default_factory=lambda: _env_int("DEPTH_HEIGHT", 448), gt=0)

    sensor_rotation: int = Field(default_factory=lambda: _env_int("SENSOR_ROTATION", 0))
    maintain_aspect: bool = Field(default_factory=lambda: _truthy(os.getenv("MAINTAIN_ASPECT")))

    tracking_confidence: float = Field(
        default_factory=lambda: _env_float("TRACKING_CONFIDENCE", 0.5), ge=0.0, le=1.0
    )
    speech_confidence: float = Field(
        default_factory=lambda: _env_float("SPEECH_CONFIDENCE", 0.6), ge=0.0, le=1.0
    )
    # Raw network units -> meters. Calibration constant, no derivation available.
    depth_scale_divisor: float = Field(
        default_factory=lambda: _env_float("DEPTH_SCALE_DIVISOR", 8.0), gt=0.0
    )

    detector_model: str = Field(default_factory=lambda: os.getenv("DETECTOR_MODEL", "yolov8n.pt").strip())
    detector_threads: int = Field(default_factory=lambda: _env_int("DETECTOR_THREADS", 1), gt=0)
    use_acceleration: bool = Field(default_factory=lambda: _truthy(os.getenv("USE_ACCELERATION")))
    depth_model: str = Field(default_factory=lambda: os.getenv("DEPTH_MODEL", "MiDaS_small").strip())

    speech_rate: int = Field(default_factory=lambda: _env_int("SPEECH_RATE", 160), gt=0)
    utterance_tag: str = Field(
        default_factory=lambda: os.getenv("UTTERANCE_TAG", "Object Annotation"), min_length=1
    )

    @field_validator("sensor_rotation")
    @classmethod
    def _quarter_turns(cls, value: int) -> int:
        return normalize_rotation(value)

    @property
    def preview_size(self) -> tuple[int, int]:
        return self.preview_width, self.preview_height

    @property
    def crop_dims(self) -> tuple[int, int]:
        return self.crop_size, self.crop_size

    @property
    def depth_size(self) -> tuple[int, int]:
        return self.depth_width, self.depth_height


@lru_cache(maxsize=1)
def get_settings() -> PipelineSettings:
    return PipelineSettings()
