from __future__ import annotations

from typing import Callable, Tuple

import numpy as np

from ..errors import InferenceError
from ..preprocess import DEFAULT_INPUT_SIZE


class CallableBackend:
    """
    Adapter for an engine the caller already owns: any `infer_fn(tensor) -> output`.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        input_size: Tuple[int, int] = DEFAULT_INPUT_SIZE,
        quantized: bool = False,
    ):
        if input_size[0] <= 0 or input_size[1] <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        self._infer_fn = infer_fn
        self._input_size = (int(input_size[0]), int(input_size[1]))
        self._quantized = bool(quantized)

    @property
    def input_size(self) -> Tuple[int, int]:
        return self._input_size

    @property
    def quantized(self) -> bool:
        return self._quantized

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        try:
            out = self._infer_fn(tensor)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Inference call failed: {e}") from e
        return np.asarray(out)
