from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import InferenceError, InvalidImageError
from .nms import suppress
from .types import Detection

BOX_CHANNELS = 4


@dataclass
class DetectionPostConfig:
    """
    Post-processing configuration for anchor-free YOLO outputs.
    """

    conf_threshold: float = 0.45
    iou_threshold: float = 0.45
    # None keeps every surviving box.
    max_detections: Optional[int] = None
    # If False, skip NMS and only sort by score (capped by `max_detections`).
    apply_nms: bool = True
    # If True, boxes of different classes may suppress each other.
    class_agnostic_nms: bool = False
    # Optional allow-list of label names; None keeps all.
    labels: Optional[Sequence[str]] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")


def label_for(class_id: int, label_table: Sequence[str]) -> str:
    """
    Class name for `class_id`, or `class_<id>` when the table has no usable entry.
    """

    if 0 <= class_id < len(label_table):
        name = label_table[class_id]
        if name:
            return name
    return f"class_{class_id}"


def _channels_first(raw_output: np.ndarray) -> np.ndarray:
    """
    Normalise `[1, C, N]` (or an already squeezed `[C, N]`) to `[C, N]`.
    """

    p = np.asarray(raw_output)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise InferenceError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]
    if p.ndim != 2:
        raise InferenceError(f"Expected output shape [1, 4 + classes, boxes], got {p.shape}")
    if p.shape[0] < BOX_CHANNELS + 1:
        raise InferenceError(f"Output needs at least {BOX_CHANNELS + 1} channels, got shape {p.shape}")
    return p


def decode(
    raw_output: np.ndarray,
    original_width: int,
    original_height: int,
    confidence_threshold: float = 0.45,
    label_table: Sequence[str] = (),
) -> List[Detection]:
    """
    Convert a raw `[1, 4 + C, N]` tensor into detections in original image pixels.

    Rows 0-3 hold normalised cx, cy, w, h; the remaining rows hold per-class
    scores. Each candidate keeps its arg-max class (first index wins ties) and
    is emitted only if that score is strictly above `confidence_threshold`.
    Output follows candidate order; sorting is left to `suppress`.
    """

    if original_width <= 0 or original_height <= 0:
        raise InvalidImageError(f"Original image size must be positive, got {original_width}x{original_height}")

    p = _channels_first(raw_output)
    num_boxes = p.shape[1]
    if num_boxes == 0:
        return []

    geometry = p[:BOX_CHANNELS, :].astype(np.float64)
    class_scores = p[BOX_CHANNELS:, :].astype(np.float64)
    # NaN must never win the arg-max scan.
    class_scores = np.where(np.isnan(class_scores), -np.inf, class_scores)

    class_ids = np.argmax(class_scores, axis=0)
    best_scores = class_scores[class_ids, np.arange(num_boxes)]

    cx, cy, w, h = geometry
    keep = (best_scores > confidence_threshold) & (best_scores > 0.0)
    keep &= np.isfinite(geometry).all(axis=0) & (w > 0) & (h > 0)
    if not keep.any():
        return []

    x_min = np.clip((cx - w / 2) * original_width, 0, original_width)
    y_min = np.clip((cy - h / 2) * original_height, 0, original_height)
    x_max = np.clip((cx + w / 2) * original_width, 0, original_width)
    y_max = np.clip((cy + h / 2) * original_height, 0, original_height)

    detections: List[Detection] = []
    for i in np.flatnonzero(keep):
        cls_id = int(class_ids[i])
        detections.append(
            Detection(
                label=label_for(cls_id, label_table),
                score=float(best_scores[i]),
                x_min=float(x_min[i]),
                y_min=float(y_min[i]),
                x_max=float(x_max[i]),
                y_max=float(y_max[i]),
                class_id=cls_id,
            )
        )
    return detections


class DetectionPostprocessor:
    """
    Decode + filter + suppress for a single frame.

    Input must be a NumPy array; torch outputs should be detached and
    converted with `.cpu().numpy()` before being passed in.
    """

    def __init__(self, cfg: DetectionPostConfig, label_table: Sequence[str] = ()):
        self.cfg = cfg
        self.label_table = list(label_table)

    def process(self, preds: np.ndarray, orig_size: Tuple[int, int]) -> List[Detection]:
        """
        Args:
            preds: raw model output for one image
            orig_size: (width, height) of the frame before preprocessing
        """

        orig_w, orig_h = orig_size
        detections = decode(preds, orig_w, orig_h, self.cfg.conf_threshold, self.label_table)
        if not detections:
            return []

        if self.cfg.labels is not None:
            wanted = set(self.cfg.labels)
            detections = [d for d in detections if d.label in wanted]
            if not detections:
                return []

        if self.cfg.apply_nms:
            return suppress(
                detections,
                self.cfg.iou_threshold,
                max_detections=self.cfg.max_detections,
                class_agnostic=self.cfg.class_agnostic_nms,
            )
        return self._select_topk(detections)

    def _select_topk(self, detections: List[Detection]) -> List[Detection]:
        ranked = sorted(detections, key=lambda d: d.score, reverse=True)
        if self.cfg.max_detections is not None:
            ranked = ranked[: self.cfg.max_detections]
        return ranked
