"""REST API for the Admission Engine."""

from admission_engine.api.app import app, create_app
from admission_engine.api.models import (
    APIResponse,
    ApplicationResponse,
    CourseResponse,
    StudentResponse,
)

__all__ = [
    "APIResponse",
    "ApplicationResponse",
    "CourseResponse",
    "StudentResponse",
    "app",
    "create_app",
]
