# backend/tutorbook/main.py
"""
FastAPI application for the tutorbook scheduling engine.

The routing layer is thin: every endpoint wraps one service operation.
Authentication happens upstream and leaves a Principal on request.state.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import is_running_tests, settings
from .errors import register_error_handlers
from .monitoring.time_check_sink import TimeCheckSink
from .routes.v1 import admin as admin_v1
from .routes.v1 import availability as availability_v1
from .routes.v1 import health as health_v1
from .routes.v1 import reschedules as reschedules_v1
from .routes.v1 import students as students_v1

logger = logging.getLogger(__name__)

API_TITLE = "Tutorbook Scheduling API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("Tutorbook API starting up...")
    logger.info(
        f"Environment: {settings.environment}, admin timezone: {settings.admin_timezone}"
    )
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    if getattr(app.state, "time_check_sink", None) is None:
        app.state.time_check_sink = TimeCheckSink(settings.time_check_log_size)

    yield

    logger.info("Tutorbook API shutting down...")


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    # Register unified error envelope handlers
    register_error_handlers(app)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(availability_v1.router, prefix="/availability")
    api_v1.include_router(students_v1.router, prefix="/students")
    api_v1.include_router(reschedules_v1.router, prefix="/reschedules")
    api_v1.include_router(admin_v1.router, prefix="/admin")
    api_v1.include_router(health_v1.router, prefix="/health")
    app.include_router(api_v1)

    return app


app = create_app()
