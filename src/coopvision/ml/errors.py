"""Exceptions raised by the vision pipeline."""

from __future__ import annotations


class VisionError(Exception):
    """Base class for vision pipeline errors."""


class ModelLoadError(VisionError):
    """Raised when a model artifact cannot be found or turned into a runnable session.

    This is fatal: a classifier is never constructed around a model that failed to load.
    """

    def __init__(self, model_path: str, message: str = "Failed to load model") -> None:
        self.model_path = model_path
        super().__init__(f"{message}: {model_path}")


class InferenceError(VisionError):
    """Raised when a single classification call produces no usable output."""


class VisionDisabledError(InferenceError):
    """Raised by the disabled backend on every inference call."""

    def __init__(self, message: str = "Local vision is disabled; set COOPVISION_VISION_BACKEND=onnx") -> None:
        super().__init__(message)
