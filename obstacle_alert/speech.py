from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Sequence, Tuple

from obstacle_kit.types import Detection

from .config import DEFAULT_SPEAK_INTERVAL_S
from .interfaces import SpeechSink

logger = logging.getLogger(__name__)

MESSAGE_TEMPLATE = "There is a {label} in {position}"


def horizontal_position(det: Detection, image_width: float) -> str:
    """
    Coarse position of a detection by image thirds: "left", "center" or "right".
    """

    center_x = (det.x_min + det.x_max) / 2.0
    if center_x < image_width / 3.0:
        return "left"
    if center_x > image_width * 2.0 / 3.0:
        return "right"
    return "center"


def format_message(det: Detection, image_width: float, template: str = MESSAGE_TEMPLATE) -> str:
    return template.format(label=det.label, position=horizontal_position(det, image_width))


class SpeechNotifier:
    """
    Rate-limited announcer: at most one utterance per `interval_s`, about the
    highest-scoring detection of the frame.

    Messages are delivered to the sink on a separate daemon thread through a
    one-slot mailbox, so `update()` never waits for speech to finish. A message
    still waiting when a newer one arrives is replaced.

    Owns the last-spoken state for one session; create a new one per session.
    """

    def __init__(
        self,
        sink: SpeechSink,
        *,
        interval_s: float = DEFAULT_SPEAK_INTERVAL_S,
        template: str = MESSAGE_TEMPLATE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self.sink = sink
        self.interval_s = interval_s
        self.template = template
        self._clock = clock
        self._last_spoken_at: Optional[float] = None
        self.last_message: Optional[str] = None

        self._t: Optional[threading.Thread] = None
        self._cond = threading.Condition()
        self._pending: Optional[str] = None
        self._speaking = False
        self._closed = False
        self._running = False
        self.replaced_messages = 0

    def update(self, detections: Sequence[Detection], frame_size: Tuple[int, int]) -> Optional[str]:
        """
        Announce the first detection if the rate limit allows; returns the
        message handed to the sink, or None when nothing was said.
        """

        if not detections:
            return None

        now = self._clock()
        if self._last_spoken_at is not None and now - self._last_spoken_at <= self.interval_s:
            return None

        message = format_message(detections[0], frame_size[0], self.template)
        self._last_spoken_at = now
        self.last_message = message
        logger.debug("speak: %s", message)
        self._post(message)
        return message

    def reset(self) -> None:
        self._last_spoken_at = None
        self.last_message = None

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every posted message has been spoken; False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and not self._speaking, timeout=timeout)

    def close(self, timeout: float = 1.0) -> None:
        """Speak what is still pending, then stop the delivery thread."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        if self._t and self._t.is_alive():
            self._t.join(timeout=timeout)

    def _post(self, message: str) -> None:
        with self._cond:
            if self._pending is not None:
                self.replaced_messages += 1
            self._pending = message
            self._closed = False
            if not self._running:
                self._running = True
                self._t = threading.Thread(target=self._deliver_loop, name="SpeechNotifier", daemon=True)
                self._t.start()
            self._cond.notify_all()

    def _deliver_loop(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or self._closed)
                if self._pending is None:
                    self._running = False
                    return
                message, self._pending = self._pending, None
                self._speaking = True
            try:
                self.sink.speak(message)
            except Exception:
                logger.exception("Speech sink %r failed", self.sink)
            finally:
                with self._cond:
                    self._speaking = False
                    self._cond.notify_all()


class LoggingSpeechSink:
    """Speech sink that only logs; used when no TTS engine is available."""

    def __init__(self) -> None:
        self.spoken: List[str] = []

    def speak(self, text: str) -> None:
        self.spoken.append(text)
        logger.info("Voice: %s", text)


class Pyttsx3SpeechSink:
    """
    Offline text-to-speech via pyttsx3. `speak` blocks until the phrase is done,
    so it is meant to be driven from `SpeechNotifier`'s delivery thread. The
    engine is created on first use, on the thread that speaks.
    """

    def __init__(self, *, rate: Optional[int] = None, volume: Optional[float] = None) -> None:
        try:
            import pyttsx3  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("pyttsx3 is required for spoken alerts. Install with `pip install pyttsx3`.") from e

        self._pyttsx3 = pyttsx3
        self.rate = rate
        self.volume = volume
        self._engine = None

    def _get_engine(self):
        if self._engine is None:
            self._engine = self._pyttsx3.init()
            if self.rate is not None:
                self._engine.setProperty("rate", int(self.rate))
            if self.volume is not None:
                self._engine.setProperty("volume", float(self.volume))
        return self._engine

    def speak(self, text: str) -> None:
        engine = self._get_engine()
        # Drop anything still queued; only the newest alert matters.
        engine.stop()
        engine.say(text)
        engine.runAndWait()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.stop()
