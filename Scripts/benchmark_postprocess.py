from __future__ import annotations

import argparse
import time
from typing import List

import numpy as np

from obstacle_kit import decode, suppress


def _report(label: str, values_s: List[float]) -> str:
    ms = np.asarray(values_s, dtype=np.float64) * 1000.0
    p50, p95, worst = np.percentile(ms, [50.0, 95.0, 100.0])
    return f"{label:<9} mean={ms.mean():.3f}ms p50={p50:.3f}ms p95={p95:.3f}ms max={worst:.3f}ms"


def synthetic_output(rng: np.random.Generator, num_classes: int, num_boxes: int, hit_rate: float) -> np.ndarray:
    """Random `[1, 4 + C, N]` tensor where roughly `hit_rate` of boxes clear 0.5."""
    out = np.zeros((1, 4 + num_classes, num_boxes), dtype=np.float32)
    out[0, 0:2, :] = rng.uniform(0.1, 0.9, size=(2, num_boxes))
    out[0, 2:4, :] = rng.uniform(0.05, 0.3, size=(2, num_boxes))
    out[0, 4:, :] = rng.uniform(0.0, 0.3, size=(num_classes, num_boxes))
    hits = rng.random(num_boxes) < hit_rate
    cls = rng.integers(0, num_classes, size=num_boxes)
    out[0, 4 + cls[hits], np.flatnonzero(hits)] = rng.uniform(0.5, 1.0, size=int(hits.sum()))
    return out


def main() -> int:
    parser = argparse.ArgumentParser(description="Time decode() and suppress() on synthetic model outputs.")
    parser.add_argument("--classes", type=int, default=80, help="Number of class channels.")
    parser.add_argument("--boxes", type=int, default=2100, help="Candidate boxes (2100 for a 320x320 input).")
    parser.add_argument("--hit-rate", type=float, default=0.05, help="Fraction of boxes above the threshold.")
    parser.add_argument("--conf", type=float, default=0.45, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--repeats", type=int, default=200, help="Timed iterations.")
    parser.add_argument("--warmup", type=int, default=10, help="Untimed iterations first.")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    if args.classes < 1 or args.boxes < 1 or args.repeats < 1:
        raise ValueError("--classes, --boxes and --repeats must be >= 1")

    rng = np.random.default_rng(args.seed)
    labels = [f"obj{i}" for i in range(args.classes)]
    t_decode: List[float] = []
    t_nms: List[float] = []
    kept: List[int] = []

    for i in range(args.warmup + args.repeats):
        raw = synthetic_output(rng, args.classes, args.boxes, args.hit_rate)
        t0 = time.perf_counter()
        candidates = decode(raw, 640, 480, args.conf, labels)
        t1 = time.perf_counter()
        final = suppress(candidates, args.iou)
        t2 = time.perf_counter()
        if i >= args.warmup:
            t_decode.append(t1 - t0)
            t_nms.append(t2 - t1)
            kept.append(len(final))

    print(f"boxes={args.boxes} classes={args.classes} repeats={args.repeats} warmup={args.warmup}")
    print(_report("decode", t_decode))
    print(_report("suppress", t_nms))
    print(_report("total", [a + b for a, b in zip(t_decode, t_nms)]))
    print(f"kept per frame: mean={np.mean(kept):.1f} max={max(kept)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
