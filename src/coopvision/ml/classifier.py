"""Coop image classifier: preprocess, infer, pick the top class, tag it.

A ``Classifier`` holds a loaded engine and a label table, both read-only after
construction. ``classify`` keeps no state between calls, so the same instance
can serve concurrent callers whenever its engine can.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from coopvision.ml.engine import OnnxInferenceEngine, create_engine
from coopvision.ml.errors import InferenceError
from coopvision.ml.labels import LabelTable, load_labels
from coopvision.ml.model_store import resolve_model_path
from coopvision.ml.preprocessing import DEFAULT_INPUT_SIZE, load_image, preprocess
from coopvision.ml.tagger import is_chicken, is_predator

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from numpy.typing import NDArray

    from coopvision.config import Settings
    from coopvision.ml.engine import InferenceEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisionResult:
    """Outcome of classifying one image.

    ``confidence`` is the raw top score from the model. It is only a
    probability if the exported graph ends in a softmax.
    """

    label: str
    confidence: float
    chicken_detected: bool
    predator_detected: bool


def top_class(scores: Iterable[float]) -> tuple[int, float] | None:
    """Return ``(index, score)`` of the highest score, or None if there is none.

    The first index reaching the maximum wins. NaN scores are never selected.
    """
    best_idx: int | None = None
    best_score = -math.inf
    for idx, score in enumerate(scores):
        if math.isnan(score):
            continue
        if best_idx is None or score > best_score:
            best_idx = idx
            best_score = score
    if best_idx is None:
        return None
    return best_idx, best_score


class Classifier:
    """Turns RGB images into tagged ``VisionResult``s."""

    def __init__(
        self,
        engine: InferenceEngine,
        labels: LabelTable | None = None,
        *,
        input_size: int = DEFAULT_INPUT_SIZE,
    ) -> None:
        self._engine = engine
        self._labels = labels if labels is not None else LabelTable()
        self._input_size = input_size

    @classmethod
    def load(
        cls,
        model_path: str | Path,
        label_source: str | Path | None = None,
        *,
        settings: Settings | None = None,
    ) -> Classifier:
        """Load an ONNX model and its labels.

        Raises:
            ModelLoadError: If the model cannot be loaded. There is no fallback.
        """
        engine = OnnxInferenceEngine(model_path, settings)
        labels = load_labels(label_source)
        input_size = settings.input_size if settings is not None else DEFAULT_INPUT_SIZE
        return cls(engine, labels, input_size=input_size)

    @classmethod
    def from_settings(cls, settings: Settings) -> Classifier:
        """Build a classifier for the configured backend, model and label file."""
        if settings.vision_backend == "disabled":
            engine = create_engine(settings)
        else:
            engine = create_engine(settings, resolve_model_path(settings))
        labels = load_labels(settings.labels_path)
        return cls(engine, labels, input_size=settings.input_size)

    @property
    def engine_name(self) -> str:
        return self._engine.name

    @property
    def labels(self) -> LabelTable:
        return self._labels

    @property
    def input_size(self) -> int:
        return self._input_size

    def classify(self, image: NDArray[np.uint8]) -> VisionResult:
        """Classify an HxWx3 RGB uint8 image.

        Raises:
            ValueError: If the image is malformed.
            InferenceError: If the engine fails or returns no usable scores.
        """
        tensor = preprocess(image, self._input_size)
        try:
            scores = np.asarray(self._engine.run(tensor), dtype=np.float32).ravel()
        except InferenceError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Model inference failed: {exc}") from exc

        best = top_class(scores.tolist())
        if best is None:
            raise InferenceError("Model returned empty output")
        idx, confidence = best

        label = self._labels.lookup(idx)
        result = VisionResult(
            label=label,
            confidence=confidence,
            chicken_detected=is_chicken(label),
            predator_detected=is_predator(label),
        )
        logger.debug("Classified image as %s (class %d, score %.4f)", label, idx, confidence)
        return result

    def classify_path(self, path: str | Path) -> VisionResult:
        """Decode an image file and classify it."""
        return self.classify(load_image(path))
