"""Pydantic models for health check endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness of the API process."""

    status: str = Field(..., description="Service health status")
    version: str = Field(..., description="Application version")


class ReadinessResponse(BaseModel):
    """Readiness of the API and the database behind it."""

    status: Literal["ready", "unavailable"] = Field(..., description="Overall readiness")
    database: bool = Field(..., description="Whether the reminder database answered")
