"""Narrow seams between the detection core and the platform around it.

The pipeline only ever sees RGB arrays coming in and `Detection` lists going
out; cameras, screens and speech engines sit behind these protocols.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

import numpy as np

from obstacle_kit.types import Detection


class ImageSource(Protocol):
    def read(self) -> Optional[np.ndarray]:
        """Return the next RGB frame (H, W, 3), or None when the source is exhausted."""
        ...

    def close(self) -> None: ...


class DetectionSink(Protocol):
    def update(self, detections: List[Detection], frame_size: Tuple[int, int]) -> None:
        """Receive one frame's final detections plus that frame's (width, height)."""
        ...


class SpeechSink(Protocol):
    def speak(self, text: str) -> None: ...
