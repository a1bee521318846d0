"""Single-thread detection worker with keep-only-latest backpressure.

A frame submitted while another is still waiting replaces it; the waiting
frame is dropped, never queued. Frames are processed independently, so a
failing frame is logged and counted and the next one runs normally.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Tuple

import numpy as np

from obstacle_kit.errors import ObstacleKitError
from obstacle_kit.types import Detection

from .interfaces import DetectionSink

logger = logging.getLogger(__name__)

FPS_WINDOW_S = 1.0


class LatestFrameWorker:
    def __init__(
        self,
        detect: Callable[[np.ndarray], List[Detection]],
        sinks: Sequence[DetectionSink] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            detect: per-frame detection call, typically a `DetectionPipeline`.
            sinks: receive `(detections, (width, height))` after every processed frame.
        """
        self._detect = detect
        self._sinks = list(sinks)
        self._clock = clock

        self._t: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._cond = threading.Condition()
        self._pending: Optional[np.ndarray] = None
        self._busy = False

        self.processed_frames = 0
        self.dropped_frames = 0
        self.failed_frames = 0
        self._done_at: Deque[float] = deque()
        self.last_detections: List[Detection] = []

    def start(self) -> None:
        if self._t is not None and self._t.is_alive():
            return
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name="LatestFrameWorker", daemon=True)
        self._t.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        with self._cond:
            self._cond.notify_all()
        if self._t and self._t.is_alive():
            self._t.join(timeout=timeout)

    def submit(self, frame: np.ndarray) -> bool:
        """
        Hand over a frame. Returns False when it replaced a frame that had not
        been picked up yet (that frame is dropped).
        """
        with self._cond:
            replaced = self._pending is not None
            if replaced:
                self.dropped_frames += 1
            self._pending = frame
            self._cond.notify_all()
        return not replaced

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending or running; False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and not self._busy, timeout=timeout)

    @property
    def fps(self) -> float:
        now = self._clock()
        with self._cond:
            self._trim(now)
            return float(len(self._done_at)) / FPS_WINDOW_S

    def _trim(self, now: float) -> None:
        while self._done_at and now - self._done_at[0] > FPS_WINDOW_S:
            self._done_at.popleft()

    def _loop(self) -> None:
        while not self._stop.is_set():
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or self._stop.is_set())
                if self._stop.is_set():
                    break
                frame, self._pending = self._pending, None
                self._busy = True
            try:
                self._process(frame)
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def _process(self, frame: np.ndarray) -> None:
        try:
            detections = self._detect(frame)
        except ObstacleKitError as exc:
            with self._cond:
                self.failed_frames += 1
            logger.warning("Frame dropped: %s", exc)
            return
        except Exception:
            with self._cond:
                self.failed_frames += 1
            logger.exception("Processing frame error")
            return

        frame_size: Tuple[int, int] = (int(frame.shape[1]), int(frame.shape[0]))
        now = self._clock()
        with self._cond:
            self.processed_frames += 1
            self.last_detections = detections
            self._done_at.append(now)
            self._trim(now)

        for sink in self._sinks:
            try:
                sink.update(detections, frame_size)
            except Exception:
                logger.exception("Detection sink %r failed", sink)
