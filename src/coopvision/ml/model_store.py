"""Model artifact resolution: use a local ONNX file or fetch it from the Hugging Face Hub."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from huggingface_hub import hf_hub_download
from huggingface_hub.utils import HfHubHTTPError

from coopvision.ml.errors import ModelLoadError

if TYPE_CHECKING:
    from coopvision.config import Settings

logger = logging.getLogger(__name__)


def resolve_model_path(settings: Settings) -> Path:
    """Return a local path to the configured model, downloading it if needed.

    ``settings.model_path`` wins when it already exists. Otherwise, if
    ``settings.model_repo_id`` is set, the file is downloaded into
    ``settings.models_dir``.

    Raises:
        ModelLoadError: If the model is not present locally and cannot be downloaded.
    """
    local = Path(settings.model_path)
    if local.is_file():
        return local

    if settings.model_repo_id is None:
        raise ModelLoadError(str(local), "Model file not found and no COOPVISION_MODEL_REPO_ID set")

    filename = settings.model_filename or local.name
    models_dir = Path(settings.models_dir)
    models_dir.mkdir(parents=True, exist_ok=True)

    try:
        downloaded = Path(
            hf_hub_download(
                repo_id=settings.model_repo_id,
                filename=filename,
                local_dir=str(models_dir),
            )
        )
    except (HfHubHTTPError, OSError, ValueError) as exc:
        raise ModelLoadError(f"{settings.model_repo_id}/{filename}", f"Model download failed ({exc})") from exc

    logger.info("Downloaded %s from %s to %s", filename, settings.model_repo_id, downloaded)
    return downloaded
