"""Pydantic models shared by API routers."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every error the API returns.

    Reminder errors map to 404 (unknown schedule, notification or variable),
    409 (notification already resolved), 422 (invalid rule or window) and
    503 (storage or notification queue unavailable).
    """

    detail: str = Field(..., description="Error description")
