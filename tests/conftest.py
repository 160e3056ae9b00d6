"""Shared fixtures: fake inference engines and synthetic images."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import onnx
import pytest
from onnx import TensorProto, helper

from coopvision.ml.errors import InferenceError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from numpy.typing import NDArray


class FakeEngine:
    """Engine that returns canned scores and records the tensors it was given."""

    def __init__(self, scores: Sequence[float] | None = None, error: Exception | None = None) -> None:
        self._scores = np.asarray(scores if scores is not None else [], dtype=np.float32)
        self._error = error
        self.calls: list[NDArray[np.float32]] = []

    @property
    def name(self) -> str:
        return "fake.onnx"

    def run(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        self.calls.append(tensor)
        if self._error is not None:
            raise self._error
        return self._scores.copy()


@pytest.fixture()
def fake_engine() -> Callable[..., FakeEngine]:
    """Factory for ``FakeEngine`` instances."""
    return FakeEngine


@pytest.fixture()
def failing_engine() -> FakeEngine:
    return FakeEngine(error=InferenceError("Model inference failed: bad input shape"))


@pytest.fixture()
def rgb_image() -> NDArray[np.uint8]:
    """A seeded pseudo-random 48x64 RGB image."""
    rng = np.random.default_rng(seed=7)
    return rng.integers(0, 256, size=(48, 64, 3), dtype=np.uint8)


@pytest.fixture()
def channel_mean_model(tmp_path: Path) -> Path:
    """Write a tiny ONNX model whose three scores are the per-channel means of its input."""
    pixels = helper.make_tensor_value_info("pixels", TensorProto.FLOAT, [1, 3, "height", "width"])
    scores = helper.make_tensor_value_info("scores", TensorProto.FLOAT, [1, 3])
    graph = helper.make_graph(
        [
            helper.make_node("GlobalAveragePool", ["pixels"], ["pooled"]),
            helper.make_node("Flatten", ["pooled"], ["scores"], axis=1),
        ],
        "channel_means",
        [pixels],
        [scores],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8

    path = tmp_path / "means.onnx"
    onnx.save(model, str(path))
    return path
