from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np

from ..errors import InferenceError, ModelLoadError
from ..preprocess import DEFAULT_INPUT_SIZE

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    TorchScript archives do not carry input metadata, so the input size,
    layout and element type are declared here.

    - device: "cpu" or "cuda" (if available)
    - channels_last: feed NHWC as-is; False transposes to NCHW first
    - output_index: if the model returns multiple outputs, select this index
    """

    device: str = "cpu"
    input_size: Tuple[int, int] = DEFAULT_INPUT_SIZE
    quantized: bool = False
    channels_last: bool = False
    output_index: int = 0


class TorchScriptBackend:
    """
    Minimal TorchScript backend using `torch.jit.load`.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:
            raise ModelLoadError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.cfg = cfg
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise ModelLoadError(f"Model file not found: {self.model_path}")

        self.device = torch.device(cfg.device)
        try:
            model = torch.jit.load(str(self.model_path), map_location=self.device)
        except Exception as e:
            raise ModelLoadError(f"torch.jit.load failed for {self.model_path}: {e}") from e
        model.eval()
        self.model = model

    @property
    def input_size(self) -> Tuple[int, int]:
        return self.cfg.input_size

    @property
    def quantized(self) -> bool:
        return self.cfg.quantized

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.as_tensor(np.asarray(tensor), device=self.device)
        if not self.cfg.channels_last:
            x = x.permute(0, 3, 1, 2)
        if not self.cfg.quantized:
            x = x.float()
        x = x.contiguous()

        try:
            with torch.no_grad():
                y = self.model(x)
        except Exception as e:
            raise InferenceError(f"TorchScript inference failed: {e}") from e

        if isinstance(y, (tuple, list)):
            y = y[self.cfg.output_index]

        if hasattr(y, "detach"):
            y = y.detach()
        out = y.to("cpu").numpy()
        if out.ndim != 3:
            raise InferenceError(f"Expected output shape [1, 4 + classes, boxes], got {out.shape}")
        return out
