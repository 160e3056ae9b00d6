"""Inference engines: run a frozen classifier on a tensor and return per-class scores.

``OnnxInferenceEngine`` wraps an ONNX Runtime session on the CPU provider.
``InferenceSession.run`` is safe to call from several threads at once, so a
single engine may back concurrent classify calls.

``DisabledInferenceEngine`` is selected with ``COOPVISION_VISION_BACKEND=disabled``
and fails every call, which lets the service start on hosts without a model.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import numpy as np
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from coopvision.ml.errors import InferenceError, ModelLoadError, VisionDisabledError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from coopvision.config import Settings

logger = logging.getLogger(__name__)

_PROVIDERS: list[str] = ["CPUExecutionProvider"]


class InferenceEngine(Protocol):
    """Protocol for a loaded model that maps an input tensor to class scores."""

    @property
    def name(self) -> str:
        """Return the model identifier string."""
        ...

    def run(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run the model on a single input tensor.

        Args:
            tensor: Float32 tensor of shape (1, 3, H, W).

        Returns:
            Flat float32 array with one score per class.

        Raises:
            InferenceError: If the model fails or returns unusable output.
        """
        ...


class OnnxInferenceEngine:
    """Runs an ONNX classifier through ONNX Runtime."""

    def __init__(self, model_path: str | Path, settings: Settings | None = None) -> None:
        self._model_path = Path(model_path)
        if not self._model_path.is_file():
            raise ModelLoadError(str(self._model_path), "Model file not found")

        try:
            self._session = InferenceSession(
                str(self._model_path),
                sess_options=self._build_session_options(settings),
                providers=_PROVIDERS,
            )
        except Exception as exc:  # noqa: BLE001
            raise ModelLoadError(str(self._model_path), f"Could not build inference session ({exc})") from exc

        inputs = self._session.get_inputs()
        if not inputs:
            raise ModelLoadError(str(self._model_path), "Model declares no inputs")
        self._input_name: str = inputs[0].name
        logger.info("Loaded ONNX model %s (input=%s)", self._model_path, self._input_name)

    @property
    def name(self) -> str:
        return self._model_path.name

    def run(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        try:
            outputs = self._session.run(None, {self._input_name: tensor})
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Model inference failed: {exc}") from exc

        if not outputs:
            raise InferenceError("Model returned no outputs")

        try:
            scores = np.asarray(outputs[0], dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise InferenceError(f"Unexpected model output format: {exc}") from exc
        return scores.ravel()

    @staticmethod
    def _build_session_options(settings: Settings | None) -> SessionOptions:
        opts = SessionOptions()
        if settings is not None:
            opts.intra_op_num_threads = settings.intra_op_threads
            opts.inter_op_num_threads = settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True
        return opts


class DisabledInferenceEngine:
    """Stand-in engine used when local vision is turned off."""

    def __init__(self, model_path: str | Path = "") -> None:
        self._model_path = str(model_path)

    @property
    def name(self) -> str:
        return "disabled"

    def run(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        logger.info("Vision disabled; refusing inference for model %s", self._model_path or "<none>")
        raise VisionDisabledError


def create_engine(settings: Settings, model_path: str | Path | None = None) -> InferenceEngine:
    """Build the engine selected by ``settings.vision_backend``."""
    path = model_path if model_path is not None else settings.model_path
    if settings.vision_backend == "disabled":
        return DisabledInferenceEngine(path)
    return OnnxInferenceEngine(path, settings)
