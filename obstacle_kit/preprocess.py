from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import InvalidImageError

DEFAULT_INPUT_SIZE: Tuple[int, int] = (320, 320)


@dataclass(frozen=True)
class PreprocessResult:
    tensor: np.ndarray
    orig_size: Tuple[int, int]
    input_size: Tuple[int, int]
    quantized: bool


def _as_rgb(image: np.ndarray) -> np.ndarray:
    if image is None or not hasattr(image, "shape"):
        raise InvalidImageError("image must be a NumPy array (RGB).")
    if image.ndim == 2:
        image = np.repeat(image[:, :, None], 3, axis=2)
    elif image.ndim != 3 or image.shape[2] not in (3, 4):
        raise InvalidImageError(f"Expected image shape (H, W, 3), got {getattr(image, 'shape', None)}")

    h, w = image.shape[:2]
    if h == 0 or w == 0:
        raise InvalidImageError(f"Image has zero size ({w}x{h}).")

    # RGBA -> RGB
    return np.ascontiguousarray(image[:, :, :3])


def prepare(image: np.ndarray, target_width: int, target_height: int, quantized: bool) -> np.ndarray:
    """
    Resize an RGB frame to the model input and lay it out as `[1, H, W, 3]`.

    - quantized=False: float32, value = raw / 255.0
    - quantized=True: uint8, raw values unmodified

    The source array is left untouched.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for prepare(). Install with `pip install opencv-python`.") from e

    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Target size must be positive, got {target_width}x{target_height}")

    rgb = _as_rgb(image)
    if rgb.dtype != np.uint8:
        rgb = np.clip(rgb, 0, 255).astype(np.uint8)

    h, w = rgb.shape[:2]
    if (w, h) != (target_width, target_height):
        resized = cv2.resize(rgb, (target_width, target_height), interpolation=cv2.INTER_LINEAR)
    else:
        resized = rgb.copy()

    if quantized:
        tensor = np.ascontiguousarray(resized, dtype=np.uint8)
    else:
        tensor = np.ascontiguousarray(resized, dtype="<f4") / np.float32(255.0)
        tensor = tensor.astype("<f4", copy=False)
    return tensor[None, ...]


def to_buffer(tensor: np.ndarray) -> bytes:
    """
    Serialise a prepared tensor as row-major little-endian bytes
    (4 bytes per channel value for float, 1 for quantized).
    """

    t = np.asarray(tensor)
    if t.dtype == np.uint8:
        return np.ascontiguousarray(t).tobytes(order="C")
    return np.ascontiguousarray(t, dtype="<f4").tobytes(order="C")


def preprocess(image: np.ndarray, input_size: Tuple[int, int] = DEFAULT_INPUT_SIZE, quantized: bool = False) -> PreprocessResult:
    rgb = _as_rgb(image)
    orig_h, orig_w = rgb.shape[:2]
    target_w, target_h = input_size
    tensor = prepare(rgb, target_w, target_h, quantized)
    return PreprocessResult(tensor=tensor, orig_size=(orig_w, orig_h), input_size=(target_w, target_h), quantized=quantized)
