"""State Store - Persistent storage for students, courses, jobs and applications."""

from admission_engine.state_store.exceptions import (
    ApplicationExistsError,
    ApplicationNotFoundError,
    CourseHasApplicationsError,
    CourseNotFoundError,
    JobApplicationExistsError,
    JobApplicationNotFoundError,
    JobNotFoundError,
    NotFoundError,
    NotificationNotFoundError,
    StateStoreError,
    StoreUnavailableError,
    StudentExistsError,
    StudentNotFoundError,
)
from admission_engine.state_store.models import (
    OPEN_STATUSES,
    SEAT_HOLDING_STATUSES,
    TERMINAL_STATUSES,
    Application,
    ApplicationStatus,
    ApplicationTransition,
    CompanyStats,
    Course,
    CourseRequirement,
    CourseStats,
    CourseStatus,
    InstitutionStats,
    Job,
    JobApplication,
    JobApplicationStatus,
    JobStats,
    JobStatus,
    Notification,
    Student,
)
from admission_engine.state_store.store import StateStore

__all__ = [
    "OPEN_STATUSES",
    "SEAT_HOLDING_STATUSES",
    "TERMINAL_STATUSES",
    "Application",
    "ApplicationExistsError",
    "ApplicationNotFoundError",
    "ApplicationStatus",
    "ApplicationTransition",
    "CompanyStats",
    "Course",
    "CourseHasApplicationsError",
    "CourseNotFoundError",
    "CourseRequirement",
    "CourseStats",
    "CourseStatus",
    "InstitutionStats",
    "Job",
    "JobApplication",
    "JobApplicationExistsError",
    "JobApplicationNotFoundError",
    "JobApplicationStatus",
    "JobNotFoundError",
    "JobStats",
    "JobStatus",
    "NotFoundError",
    "Notification",
    "NotificationNotFoundError",
    "StateStore",
    "StateStoreError",
    "StoreUnavailableError",
    "Student",
    "StudentExistsError",
    "StudentNotFoundError",
]
