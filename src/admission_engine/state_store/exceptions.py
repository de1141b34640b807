"""Custom exceptions for State Store."""

from admission_engine.exceptions import AdmissionEngineError


class StateStoreError(AdmissionEngineError):
    """Base exception for State Store errors."""


class StoreUnavailableError(StateStoreError):
    """The database could not be reached or stayed locked past the busy timeout.

    The operation did not take effect and may be retried.
    """


class NotFoundError(StateStoreError):
    """Requested record does not exist."""


class StudentNotFoundError(NotFoundError):
    """Student with given ID does not exist."""


class CourseNotFoundError(NotFoundError):
    """Course with given ID does not exist."""


class JobNotFoundError(NotFoundError):
    """Job with given ID does not exist."""


class ApplicationNotFoundError(NotFoundError):
    """Application with given ID does not exist."""


class JobApplicationNotFoundError(NotFoundError):
    """Job application with given ID does not exist."""


class NotificationNotFoundError(NotFoundError):
    """Notification with given ID does not exist."""


class StudentExistsError(StateStoreError):
    """Student with given ID or e-mail already exists."""


class ApplicationExistsError(StateStoreError):
    """Application for this student and course already exists."""


class JobApplicationExistsError(StateStoreError):
    """Job application for this student and job already exists."""


class CourseHasApplicationsError(StateStoreError):
    """Cannot delete a course that applications still reference."""
