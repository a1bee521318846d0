from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

DEFAULT_CONF_THRESHOLD = 0.45
DEFAULT_IOU_THRESHOLD = 0.45
DEFAULT_INPUT_SIZE = 320
DEFAULT_SPEAK_INTERVAL_S = 3.0
MIN_SPEAK_INTERVAL_S = 1.5
MAX_SPEAK_INTERVAL_S = 3.0


@dataclass(frozen=True)
class AlertProfile:
    schema_version: int = 1
    model: Optional[str] = None
    labels: Optional[str] = None
    backend: Optional[str] = None
    conf_threshold: float = DEFAULT_CONF_THRESHOLD
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
    input_size: int = DEFAULT_INPUT_SIZE
    speak_interval_s: float = DEFAULT_SPEAK_INTERVAL_S
    speech_enabled: bool = True
    display_size: Optional[Tuple[int, int]] = None
    landscape: bool = True

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("alert profile schema_version must be 1")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.input_size < 32:
            raise ValueError("input_size must be >= 32")
        if not MIN_SPEAK_INTERVAL_S <= self.speak_interval_s <= MAX_SPEAK_INTERVAL_S:
            raise ValueError(f"speak_interval_s must be within [{MIN_SPEAK_INTERVAL_S}, {MAX_SPEAK_INTERVAL_S}]")
        if self.display_size is not None and (self.display_size[0] <= 0 or self.display_size[1] <= 0):
            raise ValueError("display_size must be positive")


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _optional_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: int) -> int:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_bool(payload: Dict[str, Any], key: str, default: bool) -> bool:
    if key not in payload:
        return default
    value = payload[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


def _optional_size(payload: Dict[str, Any], key: str) -> Optional[Tuple[int, int]]:
    value = payload.get(key)
    if value is None:
        return None
    if (
        not isinstance(value, list)
        or len(value) != 2
        or any(isinstance(v, bool) or not isinstance(v, int) for v in value)
    ):
        raise ValueError(f"{key} must be a [width, height] pair of integers")
    return int(value[0]), int(value[1])


def load_alert_profile(path: Path) -> AlertProfile:
    if not path.exists():
        raise FileNotFoundError(f"Alert profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid alert profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Alert profile must be a JSON object")

    allowed = {
        "schema_version",
        "model",
        "labels",
        "backend",
        "conf_threshold",
        "iou_threshold",
        "input_size",
        "speak_interval_s",
        "speech_enabled",
        "display_size",
        "landscape",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown alert profile keys: {unknown}")
    if "schema_version" not in payload:
        raise ValueError("Missing required key: schema_version")

    return AlertProfile(
        schema_version=_optional_int(payload, "schema_version", 1),
        model=_optional_str(payload, "model"),
        labels=_optional_str(payload, "labels"),
        backend=_optional_str(payload, "backend"),
        conf_threshold=_optional_number(payload, "conf_threshold", DEFAULT_CONF_THRESHOLD),
        iou_threshold=_optional_number(payload, "iou_threshold", DEFAULT_IOU_THRESHOLD),
        input_size=_optional_int(payload, "input_size", DEFAULT_INPUT_SIZE),
        speak_interval_s=_optional_number(payload, "speak_interval_s", DEFAULT_SPEAK_INTERVAL_S),
        speech_enabled=_optional_bool(payload, "speech_enabled", True),
        display_size=_optional_size(payload, "display_size"),
        landscape=_optional_bool(payload, "landscape", True),
    )
