from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .types import Detection

IOU_EPS = 1e-6


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: Optional[int] = None
    # Older revisions suppressed across classes; per-class is the default.
    class_agnostic: bool = False


def iou(a: Detection, b: Detection) -> float:
    """
    Intersection-over-Union of two detections, stabilised with `IOU_EPS` so
    zero-area boxes yield 0 instead of dividing by zero.
    """

    inter_left = max(a.x_min, b.x_min)
    inter_top = max(a.y_min, b.y_min)
    inter_right = min(a.x_max, b.x_max)
    inter_bottom = min(a.y_max, b.y_max)

    inter = max(0.0, inter_right - inter_left) * max(0.0, inter_bottom - inter_top)
    return inter / (a.area + b.area - inter + IOU_EPS)


def suppress_indices(
    boxes: np.ndarray,
    scores: np.ndarray,
    labels: Sequence[str],
    cfg: NMSConfig,
) -> np.ndarray:
    """
    NumPy NMS. Expects boxes shape (N,4) in xyxy, scores shape (N,) and one
    label per box. Returns indices of kept boxes, best score first.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    boxes = np.asarray(boxes, dtype=np.float64)
    scores = np.asarray(scores, dtype=np.float64)
    label_arr = np.asarray(labels, dtype=object)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    # Stable so equal scores keep their input order.
    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(int(i))
        rest = order[1:]

        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        overlap = inter / (areas[i] + areas[rest] - inter + IOU_EPS)

        suppressed = overlap > cfg.iou_threshold
        if not cfg.class_agnostic:
            suppressed &= label_arr[rest] == label_arr[i]
        order = rest[~suppressed]

    return np.array(keep, dtype=np.int64)


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float = 0.45,
    *,
    max_detections: Optional[int] = None,
    class_agnostic: bool = False,
) -> List[Detection]:
    """
    Per-class non-maximum suppression over `Detection` values.

    A detection is dropped when an already kept detection with the same label
    overlaps it with IOU strictly above `iou_threshold`.
    """

    if not detections:
        return []

    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float64)
    scores = np.array([d.score for d in detections], dtype=np.float64)
    labels = [d.label for d in detections]
    cfg = NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections, class_agnostic=class_agnostic)

    keep = suppress_indices(boxes, scores, labels, cfg)
    return [detections[int(i)] for i in keep]
