from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np


@dataclass(frozen=True)
class CaptureInfo:
    fps: Optional[float]
    width: Optional[int]
    height: Optional[int]


def to_landscape(frame: np.ndarray) -> np.ndarray:
    """Rotate portrait frames 90 degrees clockwise so width >= height."""
    if frame.shape[1] < frame.shape[0]:
        return cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
    return frame


class OpenCvImageSource:
    """
    RGB frames from a video file, webcam index or stream URL.

    OpenCV decodes BGR; frames are converted before leaving the source.
    """

    def __init__(
        self,
        *,
        video: Optional[str] = None,
        webcam: Optional[int] = None,
        rtsp: Optional[str] = None,
        landscape: bool = False,
    ) -> None:
        sources = [video is not None, webcam is not None, rtsp is not None]
        if sum(bool(s) for s in sources) != 1:
            raise ValueError("Exactly one of video/webcam/rtsp must be provided.")

        if video is not None:
            cap = cv2.VideoCapture(video)
        elif rtsp is not None:
            cap = cv2.VideoCapture(rtsp)
        else:
            cap = cv2.VideoCapture(int(webcam))

        if not cap.isOpened():
            raise RuntimeError("Failed to open video source.")
        self._cap = cap
        self.landscape = landscape

    def info(self) -> CaptureInfo:
        fps = self._cap.get(cv2.CAP_PROP_FPS)
        if fps is None or fps <= 0:
            fps_val = None
        else:
            fps_val = float(fps)

        w = self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)
        h = self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
        w_val = int(w) if w and w > 0 else None
        h_val = int(h) if h and h > 0 else None

        return CaptureInfo(fps=fps_val, width=w_val, height=h_val)

    def read(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return to_landscape(rgb) if self.landscape else rgb

    def close(self) -> None:
        self._cap.release()


class StaticImageSource:
    """Yields one image file as a single RGB frame."""

    def __init__(self, path: Union[str, Path], *, landscape: bool = False) -> None:
        img = cv2.imread(str(path))
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {path}")
        rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        self._frame: Optional[np.ndarray] = to_landscape(rgb) if landscape else rgb

    def read(self) -> Optional[np.ndarray]:
        frame, self._frame = self._frame, None
        return frame

    def close(self) -> None:
        self._frame = None
