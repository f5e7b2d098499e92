"""Error and health envelopes returned by the generation HTTP layer."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ApiError(BaseModel):
    """Standard envelope for errors returned by the HTTP layer."""

    code: str = Field(..., description="Stable, machine-readable error code")
    message: str = Field(..., description="Human-friendly error description")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="The unsuccessful GenerationResponse, including its reasoning trace",
    )
    action: str = Field(
        default="",
        description="Recommended follow-up action the caller can take to recover",
    )
    retryable: bool = Field(
        default=False,
        description="Whether sending the same request again may succeed",
    )


class ErrorResponse(BaseModel):
    error: ApiError


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall service status string")
    detail: Optional[str] = Field(default=None)
    image_model: Optional[str] = Field(
        default=None, description="Image model the shared agent is configured with"
    )
    preset: Optional[str] = Field(default=None, description="Active configuration preset")
