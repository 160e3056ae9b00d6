"""Pydantic response schemas for the CoopVision API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClassifyImageResponse(BaseModel):
    """Classification of one uploaded image."""

    label: str
    confidence: float = Field(description="Raw top score from the model (not necessarily a probability)")
    chicken_detected: bool
    predator_detected: bool
    alert: bool = Field(description="True when a predator was detected at or above the alert threshold")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    vision_enabled: bool
    labels_loaded: int
    concurrent_requests: int
    queue_depth: int


class ModelInfoResponse(BaseModel):
    """Information about the loaded classifier."""

    backend: str = Field(description="Vision backend: 'onnx' or 'disabled'")
    model: str
    input_size: int
    num_labels: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
