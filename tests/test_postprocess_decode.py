import unittest

import numpy as np

from obstacle_kit.errors import InferenceError, InvalidImageError
from obstacle_kit.postprocess import DetectionPostConfig, DetectionPostprocessor, decode


def _raw(boxes, scores, dtype=np.float64) -> np.ndarray:
    """Build a [1, 4 + C, N] tensor from per-box (cx, cy, w, h) and per-box class scores."""
    geometry = np.asarray(boxes, dtype=dtype).T
    class_scores = np.asarray(scores, dtype=dtype).T
    return np.vstack([geometry, class_scores])[None, ...]


def _two_box_output() -> np.ndarray:
    return _raw(
        [(0.5, 0.5, 0.2, 0.2), (0.52, 0.52, 0.2, 0.2)],
        [(0.9, 0.1), (0.85, 0.05)],
        dtype=np.float32,
    )


class TestDecode(unittest.TestCase):
    def test_two_overlapping_boxes_decode_in_candidate_order(self) -> None:
        dets = decode(_two_box_output(), 100, 100, 0.45, ["person", "car"])
        self.assertEqual(len(dets), 2)
        self.assertEqual([d.label for d in dets], ["person", "person"])
        self.assertEqual([d.class_id for d in dets], [0, 0])
        self.assertAlmostEqual(dets[0].score, 0.9, places=5)
        self.assertAlmostEqual(dets[1].score, 0.85, places=5)
        self.assertAlmostEqual(dets[0].x_min, 40.0, places=4)
        self.assertAlmostEqual(dets[0].y_min, 40.0, places=4)
        self.assertAlmostEqual(dets[0].x_max, 60.0, places=4)
        self.assertAlmostEqual(dets[0].y_max, 60.0, places=4)

    def test_score_equal_to_threshold_is_rejected(self) -> None:
        raw = _raw([(0.5, 0.5, 0.2, 0.2), (0.5, 0.5, 0.2, 0.2)], [(0.45, 0.0), (0.4500001, 0.0)])
        dets = decode(raw, 100, 100, 0.45)
        self.assertEqual(len(dets), 1)
        self.assertGreater(dets[0].score, 0.45)

    def test_tie_goes_to_lowest_class_index(self) -> None:
        raw = _raw([(0.5, 0.5, 0.2, 0.2)], [(0.1, 0.7, 0.7)])
        dets = decode(raw, 100, 100, 0.45, ["a", "b", "c"])
        self.assertEqual(dets[0].class_id, 1)
        self.assertEqual(dets[0].label, "b")

    def test_nan_score_never_wins(self) -> None:
        raw = _raw([(0.5, 0.5, 0.2, 0.2)], [(np.nan, 0.6)])
        dets = decode(raw, 100, 100, 0.45)
        self.assertEqual(len(dets), 1)
        self.assertEqual(dets[0].class_id, 1)

    def test_short_label_table_uses_synthetic_names(self) -> None:
        raw = _raw([(0.5, 0.5, 0.2, 0.2), (0.2, 0.2, 0.1, 0.1)], [(0.9, 0.0, 0.0), (0.0, 0.0, 0.8)])
        dets = decode(raw, 100, 100, 0.45, ["person"])
        self.assertEqual([d.label for d in dets], ["person", "class_2"])

    def test_blank_label_entry_uses_synthetic_name(self) -> None:
        raw = _raw([(0.5, 0.5, 0.2, 0.2)], [(0.0, 0.9)])
        dets = decode(raw, 100, 100, 0.45, ["person", ""])
        self.assertEqual(dets[0].label, "class_1")

    def test_nothing_above_threshold_returns_empty(self) -> None:
        raw = _raw([(0.5, 0.5, 0.2, 0.2), (0.3, 0.3, 0.1, 0.1)], [(0.2, 0.1), (0.3, 0.45)])
        self.assertEqual(decode(raw, 100, 100, 0.45), [])

    def test_zero_boxes_returns_empty(self) -> None:
        self.assertEqual(decode(np.zeros((1, 6, 0), dtype=np.float32), 100, 100, 0.45), [])

    def test_boxes_are_clamped_to_image_bounds(self) -> None:
        raw = _raw(
            [
                (0.95, 0.05, 0.3, 0.3),  # overhangs right and top
                (0.0, 1.0, 0.5, 0.5),  # overhangs left and bottom
                (1.5, 0.5, 0.2, 0.2),  # entirely outside on the right
            ],
            [(0.9,), (0.9,), (0.9,)],
        )
        dets = decode(raw, 640, 480, 0.45)
        self.assertEqual(len(dets), 3)
        for d in dets:
            self.assertTrue(0.0 <= d.x_min <= d.x_max <= 640.0, d)
            self.assertTrue(0.0 <= d.y_min <= d.y_max <= 480.0, d)
        self.assertEqual(dets[0].x_max, 640.0)
        self.assertEqual(dets[0].y_min, 0.0)
        self.assertEqual(dets[1].x_min, 0.0)
        self.assertEqual(dets[1].y_max, 480.0)
        self.assertEqual(dets[2].x_min, dets[2].x_max)

    def test_degenerate_and_non_finite_geometry_is_skipped(self) -> None:
        raw = _raw(
            [(0.5, 0.5, 0.0, 0.2), (0.5, 0.5, 0.2, -0.1), (np.nan, 0.5, 0.2, 0.2), (0.5, 0.5, 0.2, 0.2)],
            [(0.9,), (0.9,), (0.9,), (0.9,)],
        )
        dets = decode(raw, 100, 100, 0.45)
        self.assertEqual(len(dets), 1)
        self.assertFalse(any(np.isnan(v) for v in dets[0].as_xyxy()))

    def test_squeezed_2d_output_is_accepted(self) -> None:
        dets = decode(_two_box_output()[0], 100, 100, 0.45)
        self.assertEqual(len(dets), 2)

    def test_structurally_invalid_outputs_raise(self) -> None:
        with self.assertRaises(InferenceError):
            decode(np.zeros((2, 6, 10), dtype=np.float32), 100, 100)
        with self.assertRaises(InferenceError):
            decode(np.zeros((1, 4, 10), dtype=np.float32), 100, 100)
        with self.assertRaises(InferenceError):
            decode(np.zeros((10,), dtype=np.float32), 100, 100)

    def test_zero_original_size_raises(self) -> None:
        with self.assertRaises(InvalidImageError):
            decode(_two_box_output(), 0, 100)


class TestDetectionPostprocessor(unittest.TestCase):
    def test_process_applies_per_class_nms(self) -> None:
        post = DetectionPostprocessor(DetectionPostConfig(), ["person", "car"])
        dets = post.process(_two_box_output(), orig_size=(100, 100))
        self.assertEqual(len(dets), 1)
        self.assertAlmostEqual(dets[0].score, 0.9, places=5)
        self.assertAlmostEqual(dets[0].x_min, 40.0, places=4)

    def test_label_allow_list(self) -> None:
        raw = _raw([(0.2, 0.2, 0.1, 0.1), (0.7, 0.7, 0.1, 0.1)], [(0.9, 0.0), (0.0, 0.8)])
        post = DetectionPostprocessor(DetectionPostConfig(labels=["car"]), ["person", "car"])
        dets = post.process(raw, orig_size=(100, 100))
        self.assertEqual([d.label for d in dets], ["car"])

    def test_without_nms_sorts_and_caps(self) -> None:
        post = DetectionPostprocessor(DetectionPostConfig(apply_nms=False, max_detections=1))
        dets = post.process(_two_box_output(), orig_size=(100, 100))
        self.assertEqual(len(dets), 1)
        self.assertAlmostEqual(dets[0].score, 0.9, places=5)

    def test_config_rejects_out_of_range_thresholds(self) -> None:
        with self.assertRaises(ValueError):
            DetectionPostConfig(conf_threshold=1.5)
        with self.assertRaises(ValueError):
            DetectionPostConfig(iou_threshold=-0.1)
        with self.assertRaises(ValueError):
            DetectionPostConfig(max_detections=0)


if __name__ == "__main__":
    unittest.main()
