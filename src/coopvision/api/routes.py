"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from coopvision.api.middleware import verify_api_key
from coopvision.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    ModelInfoResponse,
)
from coopvision.ml.errors import InferenceError, VisionDisabledError
from coopvision.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from coopvision.config import Settings
    from coopvision.ml.classifier import Classifier
    from coopvision.ml.inference import InferencePool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_classifier(request: Request) -> Classifier:
    classifier: Classifier = request.app.state.classifier
    return classifier


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify a coop camera image",
)
async def classify_image(request: Request, file: UploadFile) -> ClassifyImageResponse:
    """Detect chickens and predators in an uploaded image."""
    settings = _get_settings(request)
    classifier = _get_classifier(request)
    pool = _get_inference_pool(request)

    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"Upload exceeds {settings.max_file_size} bytes",
        )

    try:
        image = decode_image(data, max_pixels=settings.max_image_pixels)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        result = await pool.classify(classifier, image)
    except TimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is full, retry later",
        ) from exc
    except VisionDisabledError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except InferenceError as exc:
        logger.error("Classification of %s failed: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    alert = result.predator_detected and result.confidence >= settings.alert_threshold
    if alert:
        logger.warning("Predator alert: %s (confidence %.3f)", result.label, result.confidence)

    return ClassifyImageResponse(
        label=result.label,
        confidence=result.confidence,
        chicken_detected=result.chicken_detected,
        predator_detected=result.predator_detected,
        alert=alert,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    classifier = _get_classifier(request)
    pool = _get_inference_pool(request)
    return HealthResponse(
        status="ok",
        vision_enabled=settings.vision_backend != "disabled",
        labels_loaded=len(classifier.labels),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse,
    summary="Describe the loaded model",
)
async def model_info(request: Request) -> ModelInfoResponse:
    """Return the active backend, model name, input size and label count."""
    settings = _get_settings(request)
    classifier = _get_classifier(request)
    return ModelInfoResponse(
        backend=settings.vision_backend,
        model=classifier.engine_name,
        input_size=classifier.input_size,
        num_labels=len(classifier.labels),
    )
