from __future__ import annotations


class ObstacleKitError(Exception):
    """Base class for errors raised by obstacle_kit."""


class InvalidImageError(ObstacleKitError, ValueError):
    """Source frame is structurally unusable (zero size, wrong channel count)."""


class ModelLoadError(ObstacleKitError, RuntimeError):
    """Inference engine could not load or initialise the model artifact."""


class LabelLoadError(ObstacleKitError, OSError):
    """
    Label source could not be read.

    Never propagated out of `load_labels`; it only shows up in the log.
    """


class InferenceError(ObstacleKitError, RuntimeError):
    """Engine invocation failed or returned a tensor of unexpected shape."""
