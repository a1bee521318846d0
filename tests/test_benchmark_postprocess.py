import importlib.util
import unittest
from pathlib import Path

import numpy as np

_SCRIPT = Path(__file__).resolve().parents[1] / "Scripts" / "benchmark_postprocess.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("benchmark_postprocess", _SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestBenchmarkPostprocess(unittest.TestCase):
    def setUp(self) -> None:
        self.bench = _load_script()

    def test_synthetic_output_layout(self) -> None:
        rng = np.random.default_rng(0)
        out = self.bench.synthetic_output(rng, num_classes=3, num_boxes=50, hit_rate=1.0)
        self.assertEqual(out.shape, (1, 7, 50))
        self.assertEqual(out.dtype, np.float32)
        self.assertTrue(np.all(out[0, 4:, :].max(axis=0) >= 0.5))

    def test_report_line(self) -> None:
        line = self.bench._report("decode", [0.001, 0.002, 0.003])
        self.assertTrue(line.startswith("decode"))
        self.assertIn("mean=2.000ms", line)
        self.assertIn("p50=2.000ms", line)
        self.assertIn("max=3.000ms", line)


if __name__ == "__main__":
    unittest.main()
