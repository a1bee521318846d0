from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from obstacle_alert import (
    AlertProfile,
    LoggingSpeechSink,
    OpenCvImageSource,
    OverlayRenderer,
    Pyttsx3SpeechSink,
    SpeechNotifier,
    StaticImageSource,
    load_alert_profile,
    run_alert_loop,
    setup_logging,
)
from obstacle_kit import DetectionPostConfig, load_pipeline


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect obstacles in camera frames and announce them.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    parser.add_argument("--profile", default=None, help="Optional alert profile JSON.")
    parser.add_argument("--model", default=None, help="Path to the detector (.onnx/.pt).")
    parser.add_argument("--labels", default=None, help="Label file, one class name per line.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--imgsz", type=int, default=None, help="Input size when the model does not declare one.")
    parser.add_argument("--speak-interval", type=float, default=None, help="Seconds between spoken alerts (1.5-3).")
    parser.add_argument("--no-speech", action="store_true", help="Log alerts instead of speaking them.")
    parser.add_argument("--show", action="store_true", help="Show a window with the overlay.")
    parser.add_argument("--out", default=None, help="Optional output path (image or video) for the overlay.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--log-level", default="INFO", help="DEBUG / INFO / WARNING / ERROR.")
    parser.add_argument("--log-file", default=None, help="Optional rotating log file.")
    args = parser.parse_args()

    setup_logging(args.log_level, Path(args.log_file) if args.log_file else None)

    base = load_alert_profile(Path(args.profile)) if args.profile else AlertProfile()
    profile = AlertProfile(
        model=args.model or base.model,
        labels=args.labels or base.labels,
        backend=args.backend or base.backend,
        conf_threshold=base.conf_threshold if args.conf is None else args.conf,
        iou_threshold=base.iou_threshold if args.iou is None else args.iou,
        input_size=base.input_size if args.imgsz is None else args.imgsz,
        speak_interval_s=base.speak_interval_s if args.speak_interval is None else args.speak_interval,
        speech_enabled=base.speech_enabled and not args.no_speech,
        display_size=base.display_size,
        landscape=base.landscape,
    )
    if profile.model is None:
        raise ValueError("No model given; pass --model or set 'model' in the profile.")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    pipeline = load_pipeline(
        profile.model,
        labels_path=profile.labels,
        backend=profile.backend,
        post_cfg=DetectionPostConfig(conf_threshold=profile.conf_threshold, iou_threshold=profile.iou_threshold),
        input_size=(profile.input_size, profile.input_size),
    )
    print(f"backend={pipeline.backend_name} input={pipeline.input_size} labels={len(pipeline.labels)}")

    if args.image is not None:
        source = StaticImageSource(args.image, landscape=profile.landscape)
    elif args.video is not None:
        source = OpenCvImageSource(video=args.video, landscape=profile.landscape)
    else:
        source = OpenCvImageSource(webcam=0 if args.webcam is None else args.webcam, landscape=profile.landscape)

    speech_sink = Pyttsx3SpeechSink() if profile.speech_enabled else LoggingSpeechSink()
    notifier = SpeechNotifier(speech_sink, interval_s=profile.speak_interval_s)
    overlay = OverlayRenderer(display_size=profile.display_size)

    writer: Optional[cv2.VideoWriter] = None
    last_vis: Optional[np.ndarray] = None

    def on_frame(frame: np.ndarray, ov: Optional[OverlayRenderer]) -> bool:
        nonlocal writer, last_vis
        if ov is None or not (args.show or args.out):
            return True
        vis = cv2.cvtColor(ov.render(frame), cv2.COLOR_RGB2BGR)
        last_vis = vis
        if args.out and args.image is None:
            if writer is None:
                h, w = vis.shape[:2]
                writer = cv2.VideoWriter(args.out, cv2.VideoWriter_fourcc(*"mp4v"), 30.0, (w, h))
            writer.write(vis)
        if args.show:
            cv2.imshow("obstacles", vis)
            if (cv2.waitKey(1) & 0xFF) == ord("q"):
                return False
        return True

    summary = run_alert_loop(
        source,
        pipeline,
        overlay=overlay,
        notifier=notifier,
        on_frame=on_frame,
        max_frames=args.max_frames,
        realtime=args.webcam is not None or (args.image is None and args.video is None),
    )

    if args.image is not None and (args.show or args.out):
        # Still image: render once more now that detections have arrived.
        frame = StaticImageSource(args.image, landscape=profile.landscape).read()
        if frame is not None:
            last_vis = cv2.cvtColor(overlay.render(frame), cv2.COLOR_RGB2BGR)
        if args.out and last_vis is not None:
            if not cv2.imwrite(args.out, last_vis):
                raise RuntimeError(f"Failed to write output image: {args.out}")
        if args.show and last_vis is not None:
            cv2.imshow("obstacles", last_vis)
            cv2.waitKey(0)

    notifier.close()
    if writer is not None:
        writer.release()
    if args.show:
        cv2.destroyAllWindows()

    for det in overlay.detections:
        print(det.label, f"{det.score:.3f}", tuple(round(v, 1) for v in det.as_xyxy()))
    print(
        f"frames read={summary.frames_read} processed={summary.frames_processed} "
        f"dropped={summary.frames_dropped} failed={summary.frames_failed}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
