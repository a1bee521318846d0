import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np

from obstacle_kit import CallableBackend, DetectionPipeline, DetectionPostConfig, load_pipeline
from obstacle_kit.errors import InferenceError, InvalidImageError, ModelLoadError


def _two_box_output() -> np.ndarray:
    return np.array(
        [[[0.5, 0.52], [0.5, 0.52], [0.2, 0.2], [0.2, 0.2], [0.9, 0.85], [0.1, 0.05]]],
        dtype=np.float32,
    )


class _RecordingEngine:
    def __init__(self) -> None:
        self.inputs = []
        self.fail_next = False

    def __call__(self, tensor: np.ndarray) -> np.ndarray:
        self.inputs.append(tensor)
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("shape mismatch")
        return _two_box_output()


class TestDetectionPipeline(unittest.TestCase):
    def _pipeline(self, engine, *, quantized: bool = False) -> DetectionPipeline:
        backend = CallableBackend(engine, input_size=(32, 32), quantized=quantized)
        return DetectionPipeline(backend, label_table=["person", "car"], post_cfg=DetectionPostConfig())

    def test_end_to_end_scales_to_original_frame(self) -> None:
        engine = _RecordingEngine()
        pipe = self._pipeline(engine)
        dets = pipe(np.zeros((200, 400, 3), dtype=np.uint8))

        self.assertEqual(engine.inputs[0].shape, (1, 32, 32, 3))
        self.assertEqual(engine.inputs[0].dtype, np.float32)
        self.assertEqual(len(dets), 1)
        det = dets[0]
        self.assertEqual(det.label, "person")
        self.assertAlmostEqual(det.score, 0.9, places=5)
        self.assertAlmostEqual(det.x_min, 160.0, places=3)
        self.assertAlmostEqual(det.x_max, 240.0, places=3)
        self.assertAlmostEqual(det.y_min, 80.0, places=3)
        self.assertAlmostEqual(det.y_max, 120.0, places=3)
        self.assertIsNotNone(pipe.last_inference_ms)

    def test_quantized_backend_gets_uint8(self) -> None:
        engine = _RecordingEngine()
        self._pipeline(engine, quantized=True)(np.full((10, 10, 3), 7, dtype=np.uint8))
        self.assertEqual(engine.inputs[0].dtype, np.uint8)

    def test_inference_failure_is_isolated_to_one_frame(self) -> None:
        engine = _RecordingEngine()
        pipe = self._pipeline(engine)
        frame = np.zeros((100, 100, 3), dtype=np.uint8)

        engine.fail_next = True
        with self.assertRaises(InferenceError):
            pipe(frame)
        self.assertEqual(len(pipe(frame)), 1)

    def test_malformed_output_raises_inference_error(self) -> None:
        pipe = self._pipeline(lambda t: np.zeros((1, 3, 5), dtype=np.float32))
        with self.assertRaises(InferenceError):
            pipe(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_invalid_frame_raises(self) -> None:
        pipe = self._pipeline(_RecordingEngine())
        with self.assertRaises(InvalidImageError):
            pipe(np.zeros((0, 10, 3), dtype=np.uint8))

    def test_no_candidates_returns_empty(self) -> None:
        pipe = self._pipeline(lambda t: np.zeros((1, 6, 50), dtype=np.float32))
        self.assertEqual(pipe(np.zeros((10, 10, 3), dtype=np.uint8)), [])


class TestLoadPipeline(unittest.TestCase):
    def test_unknown_extension_raises_model_load_error(self) -> None:
        with self.assertRaises(ModelLoadError):
            load_pipeline("/tmp/model.bin")

    def test_unknown_backend_raises_model_load_error(self) -> None:
        with self.assertRaises(ModelLoadError):
            load_pipeline("/tmp/model.onnx", backend="tflite")

    def test_missing_onnx_model_raises_model_load_error(self) -> None:
        with self.assertRaises(ModelLoadError):
            load_pipeline("/nonexistent/detector.onnx")

    def test_corrupt_onnx_model_raises_model_load_error(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "broken.onnx"
        path.write_bytes(b"not a model")
        with self.assertRaises(ModelLoadError):
            load_pipeline(path)

    def test_missing_onnx_runtime_raises_model_load_error(self) -> None:
        with mock.patch.dict(sys.modules, {"onnxruntime": None}):
            with self.assertRaises(ModelLoadError):
                load_pipeline("/nonexistent/detector.onnx")

    def test_missing_torch_raises_model_load_error(self) -> None:
        with mock.patch.dict(sys.modules, {"torch": None}):
            with self.assertRaises(ModelLoadError):
                load_pipeline("/nonexistent/detector.torchscript")


if __name__ == "__main__":
    unittest.main()
