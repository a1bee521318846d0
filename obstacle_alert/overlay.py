from __future__ import annotations

import zlib
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from obstacle_kit.types import Detection

from .speech import horizontal_position

# RGB, frames stay RGB all the way to the renderer.
BASE_COLORS: Tuple[Tuple[int, int, int], ...] = (
    (0, 255, 0),
    (255, 0, 0),
    (0, 0, 255),
    (0, 255, 255),
    (255, 0, 255),
    (255, 255, 0),
    (255, 140, 0),
    (128, 0, 128),
    (0, 128, 128),
    (255, 20, 147),
)


class OverlayRenderer:
    """
    Draws the latest detections and performance stats over a frame.

    Holds the per-session class -> color cache and the most recent
    detections; frame pixels are scaled to `display_size` when one is set.
    """

    def __init__(
        self,
        *,
        display_size: Optional[Tuple[int, int]] = None,
        box_thickness: int = 3,
        font_scale: float = 0.6,
        font_thickness: int = 2,
    ) -> None:
        self.display_size = display_size
        self.box_thickness = box_thickness
        self.font_scale = font_scale
        self.font_thickness = font_thickness
        self._colors: Dict[str, Tuple[int, int, int]] = {}
        # (detections, frame_size) replaced as one object by the worker thread.
        self._latest: Tuple[List[Detection], Optional[Tuple[int, int]]] = ([], None)
        self.fps_text = ""
        self.inference_text = ""

    def color_for(self, label: str) -> Tuple[int, int, int]:
        color = self._colors.get(label)
        if color is None:
            # crc32 keeps colors stable across processes (unlike hash()).
            color = BASE_COLORS[zlib.crc32(label.encode("utf-8")) % len(BASE_COLORS)]
            self._colors[label] = color
        return color

    def update(self, detections: Sequence[Detection], frame_size: Tuple[int, int]) -> None:
        self._latest = (list(detections), frame_size)

    def update_stats(self, fps: float, inference_ms: Optional[float]) -> None:
        self.fps_text = f"FPS: {int(round(fps))}"
        self.inference_text = "" if inference_ms is None else f"Inference: {int(round(inference_ms))}ms"

    @property
    def detections(self) -> List[Detection]:
        return list(self._latest[0])

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        return self._latest[1]

    def render(self, frame_rgb: np.ndarray) -> np.ndarray:
        """
        Return an annotated copy of `frame_rgb` (resized to `display_size` if set).
        """

        try:
            import cv2  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("OpenCV is required for OverlayRenderer.render(). Install with `pip install opencv-python`.") from e

        if frame_rgb is None or not hasattr(frame_rgb, "shape") or frame_rgb.ndim != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(frame_rgb, 'shape', None)}")

        frame_h, frame_w = frame_rgb.shape[:2]
        if self.display_size is not None and self.display_size != (frame_w, frame_h):
            out = cv2.resize(frame_rgb, self.display_size, interpolation=cv2.INTER_LINEAR)
        else:
            out = frame_rgb.copy()
        out_h, out_w = out.shape[:2]

        detections, frame_size = self._latest
        src_w, src_h = frame_size or (frame_w, frame_h)
        if src_w <= 0 or src_h <= 0:
            return out
        sx = out_w / float(src_w)
        sy = out_h / float(src_h)

        for det in detections:
            x1 = int(np.clip(round(det.x_min * sx), 0, out_w - 1))
            y1 = int(np.clip(round(det.y_min * sy), 0, out_h - 1))
            x2 = int(np.clip(round(det.x_max * sx), 0, out_w - 1))
            y2 = int(np.clip(round(det.y_max * sy), 0, out_h - 1))

            color = self.color_for(det.label)
            cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=self.box_thickness)

            position = horizontal_position(det, src_w).capitalize()
            text = f"{det.label} {int(det.score * 100)}% - {position}"
            self._draw_label(cv2, out, text, (x1, y1))

        self._draw_stats(cv2, out)
        return out

    def _draw_label(self, cv2, out: np.ndarray, text: str, anchor: Tuple[int, int]) -> None:
        h, w = out.shape[:2]
        x, y = anchor
        (tw, th), baseline = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, self.font_scale, self.font_thickness)
        # Place label above the box if possible, else inside.
        y_top = y - th - baseline - 8
        if y_top < 0:
            y_top = y
        x_right = min(x + tw + 10, w - 1)
        y_bottom = min(y_top + th + baseline + 8, h - 1)

        cv2.rectangle(out, (x, y_top), (x_right, y_bottom), (0, 0, 0), thickness=-1)
        cv2.putText(
            out,
            text,
            (x + 5, min(y_top + th + 4, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            self.font_scale,
            (255, 255, 255),
            thickness=self.font_thickness,
            lineType=cv2.LINE_AA,
        )

    def _draw_stats(self, cv2, out: np.ndarray) -> None:
        lines = [t for t in (self.fps_text, self.inference_text) if t]
        if not lines:
            return
        line_height = 28
        cv2.rectangle(out, (10, 10), (230, 20 + line_height * len(lines)), (0, 0, 0), thickness=-1)
        for i, text in enumerate(lines):
            cv2.putText(
                out,
                text,
                (20, 36 + i * line_height),
                cv2.FONT_HERSHEY_SIMPLEX,
                self.font_scale,
                (255, 255, 255),
                thickness=self.font_thickness,
                lineType=cv2.LINE_AA,
            )
