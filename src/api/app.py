"""FastAPI application for the health reminder service."""

import logging

from dotenv import load_dotenv
from fastapi import Depends, FastAPI

from src.api.dependencies import verify_token
from src.api.health.endpoints import API_VERSION
from src.api.health.endpoints import router as health_router
from src.api.models import ErrorResponse
from src.api.reminders.endpoints import router as reminders_router
from src.observability.sentry import init_sentry
from src.utils.logging import configure_logging

load_dotenv()
configure_logging()
init_sentry()

logger = logging.getLogger(__name__)

# Error bodies documented on every reminder route
REMINDER_ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Schedule, notification or variable not found"},
    409: {"model": ErrorResponse, "description": "Notification already resolved"},
    503: {"model": ErrorResponse, "description": "Storage or notification queue unavailable"},
}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Health routes are public; reminder routes need the bearer token and
    identify the caller from the ``X-User-Id`` header.

    :returns: Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Health Reminders API",
        description="Recurring reminders for tracked health variables.",
        version=API_VERSION,
        responses={
            401: {"model": ErrorResponse, "description": "Unauthorised"},
            500: {"model": ErrorResponse, "description": "Internal server error"},
        },
    )

    application.include_router(health_router)
    application.include_router(
        reminders_router,
        dependencies=[Depends(verify_token)],
        responses=REMINDER_ERROR_RESPONSES,
    )

    logger.info(f"FastAPI application created: version={API_VERSION}")

    return application


# Application instance for uvicorn
app = create_app()
