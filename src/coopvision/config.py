"""Environment-based configuration for CoopVision."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from COOPVISION_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COOPVISION_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # Vision backend ("disabled" keeps the service up without a model)
    vision_backend: Literal["onnx", "disabled"] = "onnx"

    # Model artifact
    model_path: str = "models/coop_classifier.onnx"
    labels_path: str | None = None
    model_repo_id: str | None = None
    model_filename: str | None = None
    models_dir: str = "models"
    input_size: int = Field(default=224, ge=1)

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    # Alerting
    alert_threshold: float = Field(default=0.30, ge=0.0)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()


def redact_secret(secret: str | None) -> str:
    """Return a log-safe rendering of a secret: the first four characters then ``***``."""
    if not secret:
        return "<none>"
    return f"{secret[:4]}***"
