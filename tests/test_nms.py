import random
import unittest

import numpy as np

from obstacle_kit.nms import NMSConfig, iou, suppress, suppress_indices
from obstacle_kit.types import Detection


def _det(label: str, score: float, x1: float, y1: float, x2: float, y2: float) -> Detection:
    return Detection(label=label, score=score, x_min=x1, y_min=y1, x_max=x2, y_max=y2)


def _random_detections(rng: random.Random, n: int) -> list:
    dets = []
    for _ in range(n):
        x1 = rng.uniform(0, 80)
        y1 = rng.uniform(0, 80)
        dets.append(
            _det(
                rng.choice(["person", "car", "chair"]),
                round(rng.uniform(0.45, 1.0), 2),  # rounding forces score ties
                x1,
                y1,
                x1 + rng.uniform(0, 30),
                y1 + rng.uniform(0, 30),
            )
        )
    return dets


class TestIou(unittest.TestCase):
    def test_identical_boxes_are_close_to_one(self) -> None:
        a = _det("person", 0.9, 10, 10, 50, 40)
        self.assertAlmostEqual(iou(a, a), 1.0, places=6)
        self.assertLess(iou(a, a), 1.0)

    def test_symmetric(self) -> None:
        rng = random.Random(7)
        dets = _random_detections(rng, 40)
        for a in dets:
            for b in dets:
                self.assertEqual(iou(a, b), iou(b, a))

    def test_disjoint_and_zero_area(self) -> None:
        a = _det("person", 0.9, 0, 0, 10, 10)
        b = _det("person", 0.8, 20, 20, 30, 30)
        point = _det("person", 0.7, 5, 5, 5, 5)
        self.assertEqual(iou(a, b), 0.0)
        self.assertEqual(iou(point, point), 0.0)
        self.assertEqual(iou(a, point), 0.0)

    def test_partial_overlap_value(self) -> None:
        a = _det("person", 0.9, 40, 40, 60, 60)
        b = _det("person", 0.85, 42, 42, 62, 62)
        self.assertAlmostEqual(iou(a, b), 324.0 / 476.0, places=5)


class TestSuppress(unittest.TestCase):
    def test_overlapping_same_label_keeps_best(self) -> None:
        best = _det("person", 0.9, 40, 40, 60, 60)
        other = _det("person", 0.85, 42, 42, 62, 62)
        self.assertEqual(suppress([other, best], 0.45), [best])

    def test_different_labels_never_suppress_each_other(self) -> None:
        a = _det("person", 0.9, 40, 40, 60, 60)
        b = _det("car", 0.85, 41, 41, 61, 61)
        self.assertGreater(iou(a, b), 0.45)
        self.assertEqual(suppress([a, b], 0.45), [a, b])

    def test_class_agnostic_mode_suppresses_across_labels(self) -> None:
        a = _det("person", 0.9, 40, 40, 60, 60)
        b = _det("car", 0.85, 41, 41, 61, 61)
        self.assertEqual(suppress([a, b], 0.45, class_agnostic=True), [a])

    def test_iou_equal_to_threshold_is_kept(self) -> None:
        a = _det("person", 0.9, 0, 0, 10, 10)
        b = _det("person", 0.8, 0, 0, 10, 10)
        overlap = iou(a, b)
        self.assertEqual(len(suppress([a, b], overlap)), 2)

    def test_output_is_best_first_and_stable_on_ties(self) -> None:
        first = _det("person", 0.7, 0, 0, 10, 10)
        second = _det("car", 0.7, 0, 0, 10, 10)
        top = _det("chair", 0.95, 50, 50, 60, 60)
        self.assertEqual(suppress([first, second, top], 0.45), [top, first, second])

    def test_empty_input(self) -> None:
        self.assertEqual(suppress([], 0.45), [])

    def test_idempotent(self) -> None:
        rng = random.Random(1234)
        for n in (1, 5, 30, 120):
            for t in (0.0, 0.3, 0.45, 0.9):
                dets = _random_detections(rng, n)
                once = suppress(dets, t)
                self.assertEqual(suppress(once, t), once)

    def test_survivors_of_same_label_do_not_overlap(self) -> None:
        rng = random.Random(99)
        kept = suppress(_random_detections(rng, 150), 0.45)
        for i, a in enumerate(kept):
            for b in kept[i + 1 :]:
                if a.label == b.label:
                    self.assertLessEqual(iou(a, b), 0.45)

    def test_max_detections_caps_output(self) -> None:
        dets = [_det("person", 0.9 - i * 0.01, i * 20, 0, i * 20 + 10, 10) for i in range(5)]
        self.assertEqual(suppress(dets, 0.45, max_detections=2), dets[:2])


class TestSuppressIndices(unittest.TestCase):
    def test_indices_follow_score_order(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [1, 1, 11, 11], [50, 50, 60, 60]], dtype=np.float32)
        scores = np.array([0.6, 0.9, 0.7], dtype=np.float32)
        keep = suppress_indices(boxes, scores, ["a", "a", "a"], NMSConfig(iou_threshold=0.45))
        self.assertEqual(keep.tolist(), [1, 2])

    def test_empty_arrays(self) -> None:
        keep = suppress_indices(np.zeros((0, 4)), np.zeros((0,)), [], NMSConfig())
        self.assertEqual(keep.shape, (0,))


if __name__ == "__main__":
    unittest.main()
