"""Turns a measured object into one spoken sentence."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from common.types import Direction

logger = logging.getLogger(__name__)

DEFAULT_UTTERANCE_TAG = "Object Annotation"

TEMPLATES = {
    Direction.LEFT: "The {label} is {distance:.2f} meters away, slightly to the left of you.",
    Direction.CENTER: "The {label} is {distance:.2f} meters in front of you.",
    Direction.RIGHT: "The {label} is {distance:.2f} meters away, slightly to the right of you.",
}


class QueueMode(str, Enum):
    ADD = "add"  # append behind whatever is being spoken


class Speaker(Protocol):
    def speak(self, text: str, mode: QueueMode = QueueMode.ADD, tag: str | None = None) -> None:
        ...


def format_utterance(label: str, distance_m: float, direction: Direction) -> str:
    return TEMPLATES[Direction(direction)].format(label=label, distance=distance_m)


class Annunciator:
    def __init__(self, speaker: Speaker, tag: str = DEFAULT_UTTERANCE_TAG):
        self._speaker = speaker
        self.tag = tag

    def announce(self, label: str, distance_m: float, direction: Direction) -> str:
        text = format_utterance(label, distance_m, direction)
        try:
            self._speaker.speak(text, mode=QueueMode.ADD, tag=self.tag)
        except Exception:
            # Speech is best-effort; the pipeline never waits on or retries it.
            logger.warning("Speaker rejected utterance %r", text, exc_info=True)
        return text
