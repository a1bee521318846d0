"""
Inference adapters for obstacle_kit.

Engine-specific backends live in their own modules so the core (pre/post-processing)
stays lightweight and can be used without installing inference runtimes.
"""

from __future__ import annotations

from typing import Protocol, Tuple

import numpy as np

from .callable_backend import CallableBackend

__all__ = ["InferenceBackend", "CallableBackend"]


class InferenceBackend(Protocol):
    """
    What the pipeline needs from an engine: the input size it was built for,
    whether it takes uint8 input, and a blocking `infer` call.
    """

    @property
    def input_size(self) -> Tuple[int, int]:
        """(width, height) of the model input."""
        ...

    @property
    def quantized(self) -> bool:
        ...

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        ...
