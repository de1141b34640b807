"""Business-rule exceptions for the admission engine.

Messages are user-facing and returned to callers verbatim.
"""

from admission_engine.exceptions import AdmissionEngineError


class AdmissionError(AdmissionEngineError):
    """Base exception for admission business-rule violations."""


class LimitExceededError(AdmissionError):
    """Student already has the maximum open applications to this institution."""


class DuplicateApplicationError(AdmissionError):
    """Student already applied to this course."""


class NoSeatsAvailableError(AdmissionError):
    """Course has no seats left."""


class UnqualifiedAdmissionError(AdmissionError):
    """Application does not meet the course's mandatory requirements."""


class InvalidTransitionError(AdmissionError):
    """Requested status change is not allowed from the current status."""


class UnauthorizedError(AdmissionError):
    """Actor's role or ownership does not permit the operation."""


class JobNotOpenError(AdmissionError):
    """Job is closed or its deadline has passed."""


class IdentityRequiredError(AdmissionError):
    """The request carries no actor identity."""
