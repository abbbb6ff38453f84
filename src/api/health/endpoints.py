"""Health check endpoints."""

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.api.health.models import HealthResponse, ReadinessResponse
from src.database.connection import get_session

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "",
    response_model=HealthResponse,
    summary="Check service health",
    description="Returns 200 while the API process is running.",
)
def health_check() -> HealthResponse:
    """Check if the API service is alive."""
    logger.debug("Health check requested")
    return HealthResponse(status="healthy", version=API_VERSION)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Check service readiness",
    description="Returns 503 when the reminder database cannot be reached.",
)
def readiness_check(response: Response) -> ReadinessResponse:
    """Check that the reminder database answers a trivial query.

    :param response: Outgoing response, used to set the status code.
    :returns: Readiness details.
    """
    try:
        with get_session() as session:
            session.execute(text("SELECT 1"))
    except (SQLAlchemyError, KeyError) as e:
        # KeyError: database env vars missing
        logger.error(f"Readiness check failed: error={e}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="unavailable", database=False)

    return ReadinessResponse(status="ready", database=True)
