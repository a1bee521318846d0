from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, TextIO, Union

from .errors import LabelLoadError

logger = logging.getLogger(__name__)

LabelSource = Union[str, Path, TextIO]


def _parse_plain(lines: Iterable[str]) -> List[str]:
    names = [line.rstrip() for line in lines]
    # A trailing newline should not add an extra (empty) class.
    while names and not names[-1]:
        names.pop()
    return names


def _parse_metadata_names(lines: Iterable[str]) -> List[str]:
    """
    Read the `names:` block of a lightweight `metadata.yaml`:

        names:
          0: person
          1: bicycle

    Gaps in the id sequence become empty names so positions still match the
    model's class channels.
    """

    by_id: Dict[int, str] = {}
    in_names = False
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        if not left.isdigit():
            # Next top-level key ends the block.
            if not raw[:1].isspace():
                break
            continue
        by_id[int(left)] = right.strip().strip("'").strip('"')

    if not by_id:
        return []
    names = [""] * (max(by_id) + 1)
    for idx, name in by_id.items():
        names[idx] = name
    return names


def _read_lines(source: LabelSource) -> List[str]:
    if hasattr(source, "read"):
        return source.read().splitlines()  # type: ignore[union-attr]
    path = Path(source)  # type: ignore[arg-type]
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise LabelLoadError(f"Could not read labels from {path}: {exc}") from exc


def load_labels(source: LabelSource) -> List[str]:
    """
    Load an ordered class-name table; line order (or metadata id) is the class index.

    A missing or unreadable source degrades to an empty table so detections
    fall back to `class_<id>` names instead of failing inference.
    """

    try:
        lines = _read_lines(source)
    except LabelLoadError as exc:
        logger.warning("Labels unavailable, using synthetic class names: %s", exc)
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Labels unavailable, using synthetic class names: %s", LabelLoadError(str(exc)))
        return []

    name = getattr(source, "name", None) if hasattr(source, "read") else source
    suffix = Path(name).suffix.lower() if isinstance(name, (str, Path)) else ""
    if suffix in {".yaml", ".yml"} or any(line.strip() == "names:" for line in lines):
        return _parse_metadata_names(lines)
    return _parse_plain(lines)
