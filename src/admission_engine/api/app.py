"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admission_engine.admission import (
    DuplicateApplicationError,
    IdentityRequiredError,
    InvalidTransitionError,
    JobNotOpenError,
    LimitExceededError,
    NoSeatsAvailableError,
    UnauthorizedError,
    UnqualifiedAdmissionError,
)
from admission_engine.api.dependencies import (
    close_services,
    close_state_store,
    init_services,
    init_state_store,
)
from admission_engine.api.models import APIResponse
from admission_engine.api.routes import applications, courses, jobs, notifications, students
from admission_engine.config import Settings, get_settings
from admission_engine.exceptions import AdmissionEngineError, ValidationError
from admission_engine.state_store import (
    CourseHasApplicationsError,
    JobApplicationExistsError,
    NotFoundError,
    StoreUnavailableError,
    StudentExistsError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

# HTTP status per business error. No class here subclasses another.
ERROR_STATUS: dict[type[AdmissionEngineError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    IdentityRequiredError: status.HTTP_401_UNAUTHORIZED,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    LimitExceededError: status.HTTP_409_CONFLICT,
    DuplicateApplicationError: status.HTTP_409_CONFLICT,
    NoSeatsAvailableError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    JobNotOpenError: status.HTTP_409_CONFLICT,
    CourseHasApplicationsError: status.HTTP_409_CONFLICT,
    StudentExistsError: status.HTTP_409_CONFLICT,
    JobApplicationExistsError: status.HTTP_409_CONFLICT,
    UnqualifiedAdmissionError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def business_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Return a business-rule error to the caller verbatim."""
    code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return JSONResponse(
        status_code=code,
        content=APIResponse[None](data=None, error=str(exc)).model_dump(),
    )


async def internal_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled engine error: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=APIResponse[None](data=None, error="Internal server error").model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map engine exceptions to HTTP responses in the APIResponse envelope."""
    for exc_class in ERROR_STATUS:
        app.add_exception_handler(exc_class, business_error_handler)
    app.add_exception_handler(AdmissionEngineError, internal_error_handler)


def include_routers(app: FastAPI) -> None:
    """Mount every router under /api/v1."""
    app.include_router(students.router, prefix="/api/v1")
    app.include_router(courses.router, prefix="/api/v1")
    app.include_router(applications.router, prefix="/api/v1")
    app.include_router(jobs.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    settings: Settings = app.state.settings
    store = init_state_store(settings)
    init_services(store, settings)
    logger.info("Admission Engine API started (db=%s)", settings.store.db_path)

    yield
    # Shutdown
    close_services()
    close_state_store()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Engine settings. Defaults to get_settings().
    """
    app = FastAPI(
        title="Admission Engine API",
        description="REST API for course admissions and job matching",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.settings = settings or get_settings()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    include_routers(app)

    return app


# Default app instance
app = create_app()
