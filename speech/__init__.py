"""Spoken annunciation of measured objects."""

from .annunciator import (
    DEFAULT_UTTERANCE_TAG,
    Annunciator,
    QueueMode,
    Speaker,
    format_utterance,
)

__all__ = [
    "DEFAULT_UTTERANCE_TAG",
    "Annunciator",
    "QueueMode",
    "Speaker",
    "format_utterance",
]
