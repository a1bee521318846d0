from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .backends import InferenceBackend
from .errors import InferenceError, ModelLoadError
from .labels import load_labels
from .postprocess import DetectionPostConfig, DetectionPostprocessor
from .preprocess import DEFAULT_INPUT_SIZE, PreprocessResult, preprocess
from .types import Detection


PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Lets `models/detector.onnx` and `models/labels.txt` resolve the same way
    whether scripts are started from the repo root or a subdirectory.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against:
      - `root` if provided
      - project root (auto) otherwise
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


class DetectionPipeline:
    """
    Plug-and-play pipeline: prepare -> inference -> decode -> suppress.

    Expects RGB frames as `np.ndarray` (H, W, 3) and returns `Detection`
    values in original frame pixels. Holds no per-frame state, so a failed
    frame does not affect the next one.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        *,
        backend_name: Optional[str] = None,
        label_table: Sequence[str] = (),
        post_cfg: Optional[DetectionPostConfig] = None,
    ):
        self.backend = backend
        self.backend_name = backend_name
        self.labels: List[str] = list(label_table)
        self.post = DetectionPostprocessor(post_cfg or DetectionPostConfig(), self.labels)
        self.last_inference_ms: Optional[float] = None

    @property
    def input_size(self) -> Tuple[int, int]:
        return self.backend.input_size

    def preprocess(self, image_rgb: np.ndarray) -> PreprocessResult:
        return preprocess(image_rgb, self.backend.input_size, self.backend.quantized)

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        t0 = time.perf_counter()
        try:
            out = self.backend.infer(tensor)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e
        finally:
            self.last_inference_ms = (time.perf_counter() - t0) * 1000.0
        return out

    def __call__(self, image_rgb: np.ndarray) -> List[Detection]:
        prep = self.preprocess(image_rgb)
        preds = self.infer(prep.tensor)
        return self.post.process(preds, orig_size=prep.orig_size)


def load_pipeline(
    model_path: PathLike,
    *,
    labels_path: Optional[PathLike] = None,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    post_cfg: Optional[DetectionPostConfig] = None,
    input_size: Tuple[int, int] = DEFAULT_INPUT_SIZE,
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_quantized: bool = False,
    torch_channels_last: bool = False,
) -> DetectionPipeline:
    """
    Create a pipeline for a model on disk.

    Typical usage:
        pipe = load_pipeline("models/detector.onnx", labels_path="models/labels.txt")

    Args:
        model_path: model file; relative paths resolve against project root by default
        labels_path: one class name per line; missing files fall back to `class_<id>` names
        backend: "onnxruntime" or "torchscript"; None infers it from the extension
        input_size: (width, height) used when the model does not declare one

    Raises:
        ModelLoadError: the model could not be found, loaded or initialised.
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ModelLoadError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    labels: List[str] = []
    if labels_path is not None:
        labels = load_labels(resolve_path(labels_path, root=root))

    chosen = chosen.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(
            resolved,
            OnnxRuntimeBackendConfig(providers=onnx_providers, input_size=input_size),
        )
        return DetectionPipeline(ort_backend, backend_name="onnxruntime", label_table=labels, post_cfg=post_cfg)

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(
            resolved,
            TorchScriptBackendConfig(
                device=torch_device,
                input_size=input_size,
                quantized=torch_quantized,
                channels_last=torch_channels_last,
            ),
        )
        return DetectionPipeline(ts_backend, backend_name="torchscript", label_table=labels, post_cfg=post_cfg)

    raise ModelLoadError(f"Unsupported backend: {backend!r}")
