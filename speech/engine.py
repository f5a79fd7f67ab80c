"""Text-to-speech output on a dedicated thread."""
from __future__ import annotations

import logging
import queue
import threading

import pyttsx3

from speech.annunciator import QueueMode

logger = logging.getLogger(__name__)


class Pyttsx3Speaker:
    """Queues utterances for a single pyttsx3 engine owned by a daemon thread.

    pyttsx3 engines are not safe to drive from several threads, so the engine
    is created and used only inside the worker.
    """

    def __init__(self, rate: int = 160, volume: float = 0.9, voice_id: str | None = None):
        self.rate = rate
        self.volume = volume
        self.voice_id = voice_id
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._available = True

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name="speech", daemon=True)
            self._thread.start()

    def speak(self, text: str, mode: QueueMode = QueueMode.ADD, tag: str | None = None) -> None:
        if not self._available:
            logger.warning("Speech engine unavailable, dropping %r", text)
            return
        self._queue.put((text, tag))

    def close(self, timeout: float = 2.0) -> None:
        self._queue.put(None)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        try:
            engine = pyttsx3.init()
            engine.setProperty("rate", self.rate)
            engine.setProperty("volume", self.volume)
            if self.voice_id:
                engine.setProperty("voice", self.voice_id)
        except Exception:
            self._available = False
            logger.exception("Failed to initialize pyttsx3; speech disabled")
            return

        while True:
            item = self._queue.get()
            if item is None:
                break
            text, tag = item
            try:
                engine.say(text)
                engine.runAndWait()
            except Exception:
                logger.exception("Speech output failed for utterance tagged %r", tag)
        try:
            engine.stop()
        except Exception:
            logger.debug("pyttsx3 stop failed", exc_info=True)
