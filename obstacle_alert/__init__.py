"""
Obstacle alert application layer built on top of `obstacle_kit`.

The detection runtime stays inside `obstacle_kit`; this package holds the
collaborators around it:
- alert profile (JSON config)
- frame sources (OpenCV capture, still images)
- latest-frame worker
- overlay rendering and spoken alerts
- the runner loop tying them together
"""

from __future__ import annotations

from .config import AlertProfile, load_alert_profile
from .interfaces import DetectionSink, ImageSource, SpeechSink
from .logging_setup import setup_logging
from .overlay import OverlayRenderer
from .runner import RunSummary, run_alert_loop
from .sources import OpenCvImageSource, StaticImageSource
from .speech import LoggingSpeechSink, Pyttsx3SpeechSink, SpeechNotifier, format_message, horizontal_position
from .worker import LatestFrameWorker

__all__ = [
    "AlertProfile",
    "load_alert_profile",
    "DetectionSink",
    "ImageSource",
    "SpeechSink",
    "setup_logging",
    "OverlayRenderer",
    "RunSummary",
    "run_alert_loop",
    "OpenCvImageSource",
    "StaticImageSource",
    "LoggingSpeechSink",
    "Pyttsx3SpeechSink",
    "SpeechNotifier",
    "format_message",
    "horizontal_position",
    "LatestFrameWorker",
]
