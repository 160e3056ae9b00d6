"""Tests for the classification pipeline."""

from __future__ import annotations

import dataclasses
import io
import math
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image

from coopvision.config import Settings
from coopvision.ml.classifier import Classifier, VisionResult, top_class
from coopvision.ml.errors import InferenceError, ModelLoadError, VisionDisabledError
from coopvision.ml.labels import LabelTable

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    from conftest import FakeEngine


def _solid_image(rgb: tuple[int, int, int], size: int = 32) -> NDArray[np.uint8]:
    image = np.zeros((size, size, 3), dtype=np.uint8)
    image[...] = rgb
    return image


class TestTopClass:
    def test_picks_highest_score(self) -> None:
        assert top_class([0.1, 0.95, 0.05]) == (1, pytest.approx(0.95))

    def test_first_maximum_wins_ties(self) -> None:
        idx, score = top_class([0.2, 0.9, 0.9, 0.1])  # type: ignore[misc]
        assert idx == 1
        assert score == 0.9

    def test_empty_scores(self) -> None:
        assert top_class([]) is None

    def test_negative_scores(self) -> None:
        assert top_class([-3.0, -1.5, -2.0]) == (1, -1.5)

    def test_nan_scores_are_skipped(self) -> None:
        assert top_class([math.nan, 0.3, math.nan, 0.2]) == (1, 0.3)

    def test_all_nan_is_none(self) -> None:
        assert top_class([math.nan, math.nan]) is None

    def test_single_negative_infinity_is_selected(self) -> None:
        assert top_class([-math.inf]) == (0, -math.inf)


class TestClassify:
    def test_end_to_end_predator(self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]) -> None:
        classifier = Classifier(fake_engine([0.1, 0.95, 0.05]), LabelTable(("hen", "fox", "toaster")))

        result = classifier.classify(rgb_image)

        assert result.label == "fox"
        assert result.confidence == pytest.approx(0.95)
        assert result.chicken_detected is False
        assert result.predator_detected is True

    def test_chicken_detection(self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]) -> None:
        classifier = Classifier(fake_engine([0.7, 0.2]), LabelTable(("Rhode Island Rooster", "Red Fox")))

        result = classifier.classify(rgb_image)

        assert result == VisionResult(
            label="Rhode Island Rooster",
            confidence=pytest.approx(0.7),  # type: ignore[arg-type]
            chicken_detected=True,
            predator_detected=False,
        )

    def test_tie_resolves_to_first_index(
        self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]
    ) -> None:
        classifier = Classifier(fake_engine([0.2, 0.9, 0.9, 0.1]), LabelTable(("a", "hen", "fox", "b")))
        assert classifier.classify(rgb_image).label == "hen"

    def test_placeholder_label_past_table_end(
        self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]
    ) -> None:
        classifier = Classifier(fake_engine([0.0, 0.0, 0.0, 0.0, 0.0, 0.8, 0.1]), LabelTable())

        result = classifier.classify(rgb_image)

        assert result.label == "class_5"
        assert result.chicken_detected is False
        assert result.predator_detected is False

    def test_empty_scores_raise(self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]) -> None:
        classifier = Classifier(fake_engine([]), LabelTable(("hen",)))
        with pytest.raises(InferenceError, match="empty output"):
            classifier.classify(rgb_image)

    def test_engine_failure_propagates(self, failing_engine: FakeEngine, rgb_image: NDArray[np.uint8]) -> None:
        classifier = Classifier(failing_engine)
        with pytest.raises(InferenceError, match="bad input shape"):
            classifier.classify(rgb_image)

    def test_engine_runtime_error_becomes_inference_error(self, rgb_image: NDArray[np.uint8]) -> None:
        engine = MagicMock()
        engine.run.side_effect = RuntimeError("bad tensor shape")

        with pytest.raises(InferenceError, match="bad tensor shape") as excinfo:
            Classifier(engine).classify(rgb_image)

        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_non_numeric_scores_become_inference_error(self, rgb_image: NDArray[np.uint8]) -> None:
        engine = MagicMock()
        engine.run.return_value = ["fox", "hen"]

        with pytest.raises(InferenceError, match="inference failed") as excinfo:
            Classifier(engine, LabelTable(("hen", "fox"))).classify(rgb_image)

        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_engine_receives_nchw_tensor(
        self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]
    ) -> None:
        engine = fake_engine([1.0])
        Classifier(engine, input_size=96).classify(rgb_image)

        (tensor,) = engine.calls
        assert tensor.shape == (1, 3, 96, 96)
        assert tensor.dtype == np.float32

    def test_repeated_calls_give_equal_results(
        self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]
    ) -> None:
        engine = fake_engine([0.3, 0.6])
        classifier = Classifier(engine, LabelTable(("owl", "hen")))

        assert classifier.classify(rgb_image) == classifier.classify(rgb_image)
        assert engine.calls[0].tobytes() == engine.calls[1].tobytes()

    def test_malformed_image_rejected_before_inference(self, fake_engine: Callable[..., FakeEngine]) -> None:
        engine = fake_engine([1.0])
        with pytest.raises(ValueError):
            Classifier(engine).classify(np.zeros((0, 4, 3), dtype=np.uint8))
        assert engine.calls == []

    def test_result_is_immutable(self, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]) -> None:
        result = Classifier(fake_engine([1.0])).classify(rgb_image)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.label = "hen"  # type: ignore[misc]

    def test_classify_path(
        self, tmp_path: Path, fake_engine: Callable[..., FakeEngine], rgb_image: NDArray[np.uint8]
    ) -> None:
        path = tmp_path / "frame.png"
        buffer = io.BytesIO()
        Image.fromarray(rgb_image).save(buffer, format="PNG")
        path.write_bytes(buffer.getvalue())

        result = Classifier(fake_engine([0.1, 0.4]), LabelTable(("hen", "coyote"))).classify_path(path)

        assert result.label == "coyote"
        assert result.predator_detected is True


class TestClassifierConstruction:
    def test_load_with_onnx_model(self, tmp_path: Path, channel_mean_model: Path) -> None:
        labels_file = tmp_path / "labels.txt"
        labels_file.write_text("hen\nfox\ntoaster\n")

        classifier = Classifier.load(channel_mean_model, labels_file, settings=Settings(input_size=32))
        result = classifier.classify(_solid_image((255, 0, 0)))

        # Per-channel means of a pure red image: R is the only positive channel.
        assert result.label == "hen"
        assert result.confidence == pytest.approx((1.0 - 0.485) / 0.229, rel=1e-4)
        assert result.chicken_detected is True
        assert classifier.engine_name == "means.onnx"

    def test_load_without_labels_uses_placeholders(self, channel_mean_model: Path) -> None:
        classifier = Classifier.load(channel_mean_model)

        assert len(classifier.labels) == 0
        assert classifier.classify(_solid_image((0, 0, 255))).label == "class_2"

    def test_load_missing_model_is_fatal(self, tmp_path: Path) -> None:
        with pytest.raises(ModelLoadError):
            Classifier.load(tmp_path / "missing.onnx", tmp_path / "labels.txt")

    def test_load_respects_input_size_setting(self, channel_mean_model: Path) -> None:
        classifier = Classifier.load(channel_mean_model, settings=Settings(input_size=64))
        assert classifier.input_size == 64

    def test_from_settings_disabled_backend(self, tmp_path: Path, rgb_image: NDArray[np.uint8]) -> None:
        settings = Settings(vision_backend="disabled", model_path=str(tmp_path / "missing.onnx"))

        classifier = Classifier.from_settings(settings)

        with pytest.raises(VisionDisabledError):
            classifier.classify(rgb_image)

    def test_from_settings_onnx_backend(self, tmp_path: Path, channel_mean_model: Path) -> None:
        labels_file = tmp_path / "labels.txt"
        labels_file.write_text(" hen \n\n fox \n")
        settings = Settings(model_path=str(channel_mean_model), labels_path=str(labels_file), input_size=32)

        classifier = Classifier.from_settings(settings)
        result = classifier.classify(_solid_image((0, 255, 0)))

        assert list(classifier.labels) == ["hen", "fox"]
        assert result.label == "fox"
        assert result.predator_detected is True

    def test_from_settings_missing_model_is_fatal(self, tmp_path: Path) -> None:
        settings = Settings(model_path=str(tmp_path / "missing.onnx"))
        with pytest.raises(ModelLoadError):
            Classifier.from_settings(settings)
