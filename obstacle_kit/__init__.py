"""
Lightweight detection post-processing for anchor-free YOLO models.

Turns a raw `[1, 4 + classes, boxes]` output tensor into labeled, de-duplicated
boxes in original frame pixels. Framework-agnostic: the core needs NumPy, and
OpenCV only for resizing frames in `prepare()`.
"""

from .types import Detection
from .errors import InferenceError, InvalidImageError, LabelLoadError, ModelLoadError, ObstacleKitError
from .preprocess import PreprocessResult, prepare, preprocess, to_buffer
from .postprocess import DetectionPostConfig, DetectionPostprocessor, decode, label_for
from .nms import NMSConfig, iou, suppress, suppress_indices
from .labels import load_labels
from .backends import CallableBackend, InferenceBackend
from .runtime import DetectionPipeline, find_project_root, load_pipeline, resolve_path

__all__ = [
    "Detection",
    "ObstacleKitError",
    "InvalidImageError",
    "ModelLoadError",
    "LabelLoadError",
    "InferenceError",
    "PreprocessResult",
    "prepare",
    "preprocess",
    "to_buffer",
    "DetectionPostConfig",
    "DetectionPostprocessor",
    "decode",
    "label_for",
    "NMSConfig",
    "iou",
    "suppress",
    "suppress_indices",
    "load_labels",
    "CallableBackend",
    "InferenceBackend",
    "DetectionPipeline",
    "find_project_root",
    "load_pipeline",
    "resolve_path",
]
