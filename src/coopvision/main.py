"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI

from coopvision.api.routes import router
from coopvision.config import get_settings, redact_secret
from coopvision.ml.classifier import Classifier
from coopvision.ml.inference import InferencePool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the classifier on startup; stop the worker pool on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting CoopVision (backend=%s, model=%s, labels=%s, max_concurrent=%s, api_key=%s)",
        settings.vision_backend,
        settings.model_path,
        settings.labels_path,
        settings.max_concurrent,
        redact_secret(settings.api_key),
    )

    # ModelLoadError propagates and aborts startup
    app.state.classifier = Classifier.from_settings(settings)
    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    logger.info("CoopVision ready")
    yield

    logger.info("Shutting down CoopVision")
    inference_pool.shutdown()
    logger.info("CoopVision shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="CoopVision",
        description="Chicken and predator detection for coop camera images",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.include_router(router)
    return application


app = create_app()
