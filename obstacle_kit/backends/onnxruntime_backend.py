from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import InferenceError, ModelLoadError
from ..preprocess import DEFAULT_INPUT_SIZE

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    - input_size: (width, height) used when the model declares dynamic spatial dims
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    input_size: Tuple[int, int] = DEFAULT_INPUT_SIZE


def _static_dim(value: Any) -> Optional[int]:
    if isinstance(value, int) and value > 0:
        return value
    return None


def _input_layout(shape: Sequence[Any], fallback: Tuple[int, int]) -> Tuple[Tuple[int, int], bool]:
    """
    Return ((width, height), channels_last) from a 4D model input shape.

    `[1, H, W, C]` is the expected layout; `[1, C, H, W]` is recognised so the
    same NHWC tensor can be transposed before the call.
    """

    if len(shape) != 4:
        raise ModelLoadError(f"Expected a 4D model input, got shape {list(shape)}")

    channels_last = _static_dim(shape[3]) in (1, 3, 4) or _static_dim(shape[1]) not in (1, 3, 4)
    if channels_last:
        h, w = _static_dim(shape[1]), _static_dim(shape[2])
    else:
        h, w = _static_dim(shape[2]), _static_dim(shape[3])
    return (w or fallback[0], h or fallback[1]), channels_last


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Takes the NHWC tensor built by `prepare()`; the input element type of the
    model decides whether frames are fed as float32 or uint8.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:
            raise ModelLoadError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise ModelLoadError(f"Model file not found: {self.model_path}")

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        try:
            self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        except Exception as e:
            raise ModelLoadError(f"ONNX Runtime could not load {self.model_path}: {e}") from e

        model_input = self.session.get_inputs()[0]
        self.input_name = cfg.input_name or model_input.name
        # If output_name not provided, pick first output.
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name

        self._input_size, self.channels_last = _input_layout(model_input.shape, cfg.input_size)
        self._quantized = model_input.type == "tensor(uint8)"
        if not self._quantized and model_input.type != "tensor(float)":
            raise ModelLoadError(f"Unsupported model input type {model_input.type!r}; expected float32 or uint8.")

    @property
    def input_size(self) -> Tuple[int, int]:
        return self._input_size

    @property
    def quantized(self) -> bool:
        return self._quantized

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        x = np.asarray(tensor)
        if not self.channels_last:
            x = np.ascontiguousarray(np.transpose(x, (0, 3, 1, 2)))
        try:
            outputs = self.session.run([self.output_name], {self.input_name: x})
        except Exception as e:
            raise InferenceError(f"ONNX Runtime inference failed: {e}") from e

        out = np.asarray(outputs[0])
        if out.ndim != 3:
            raise InferenceError(f"Expected output shape [1, 4 + classes, boxes], got {out.shape}")
        return out
