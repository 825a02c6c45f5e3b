"""Pydantic request/response schemas for the SnapClassify API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ImageTag(BaseModel):
    """A single classification tag with confidence score."""

    label: str
    confidence: float


class SessionState(BaseModel):
    """Current screen state: status text plus preview dimensions."""

    status: str
    has_image: bool
    width: int | None = Field(default=None, description="Preview width in pixels")
    height: int | None = Field(default=None, description="Preview height in pixels")


class ClassifyResponse(BaseModel):
    """Result of a classify action.

    `label` is null when classification failed; `status` then carries the
    diagnostic message.
    """

    status: str
    label: str | None = None
    confidence: float | None = None
    index: int | None = None
    tags: list[ImageTag] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    model_loaded: bool
    labels: int


class ModelInfo(BaseModel):
    """Information about the bundled model."""

    name: str
    input_size: int
    labels: int
    normalize: bool = Field(description="Whether ImageNet mean/std normalization is applied")
    device: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
