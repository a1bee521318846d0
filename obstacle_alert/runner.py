from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from obstacle_kit.runtime import DetectionPipeline

from .interfaces import DetectionSink, ImageSource
from .overlay import OverlayRenderer
from .speech import SpeechNotifier
from .worker import LatestFrameWorker

logger = logging.getLogger(__name__)

# Return False to stop the loop (e.g. a key press in a preview window).
FrameCallback = Callable[[np.ndarray, Optional[OverlayRenderer]], bool]


@dataclass(frozen=True)
class RunSummary:
    frames_read: int
    frames_processed: int
    frames_dropped: int
    frames_failed: int


def run_alert_loop(
    source: ImageSource,
    pipeline: DetectionPipeline,
    *,
    overlay: Optional[OverlayRenderer] = None,
    notifier: Optional[SpeechNotifier] = None,
    on_frame: Optional[FrameCallback] = None,
    max_frames: int = 0,
    realtime: bool = True,
) -> RunSummary:
    """
    Feed frames from `source` through `pipeline` on a background worker and
    fan the results out to the overlay and the speech notifier.

    realtime=True drops frames the worker cannot keep up with (live cameras);
    realtime=False waits for each frame, so every frame of a file is processed.
    """

    if max_frames < 0:
        raise ValueError("max_frames must be >= 0")

    sinks: List[DetectionSink] = [s for s in (overlay, notifier) if s is not None]
    worker = LatestFrameWorker(pipeline, sinks)
    worker.start()

    frames_read = 0
    try:
        while max_frames == 0 or frames_read < max_frames:
            frame = source.read()
            if frame is None:
                break
            frames_read += 1
            worker.submit(frame)
            if not realtime:
                worker.wait_idle()

            if overlay is not None:
                overlay.update_stats(worker.fps, pipeline.last_inference_ms)
            if on_frame is not None and on_frame(frame, overlay) is False:
                break
        worker.wait_idle(timeout=5.0)
        if notifier is not None:
            notifier.flush(timeout=5.0)
    finally:
        worker.stop()
        source.close()

    summary = RunSummary(
        frames_read=frames_read,
        frames_processed=worker.processed_frames,
        frames_dropped=worker.dropped_frames,
        frames_failed=worker.failed_frames,
    )
    logger.info(
        "frames read=%d processed=%d dropped=%d failed=%d",
        summary.frames_read,
        summary.frames_processed,
        summary.frames_dropped,
        summary.frames_failed,
    )
    return summary
