"""Admission - application limits, seats, waitlist and the status state machine."""

from admission_engine.admission.catalog import CourseCatalog
from admission_engine.admission.exceptions import (
    AdmissionError,
    DuplicateApplicationError,
    IdentityRequiredError,
    InvalidTransitionError,
    JobNotOpenError,
    LimitExceededError,
    NoSeatsAvailableError,
    UnauthorizedError,
    UnqualifiedAdmissionError,
)
from admission_engine.admission.limiter import ApplicationLimiter
from admission_engine.admission.machine import AdmissionStateMachine
from admission_engine.admission.models import (
    TRANSITIONS,
    Actor,
    ActorRole,
    TransitionResult,
    can_transition,
)
from admission_engine.admission.seats import SeatManager
from admission_engine.admission.waitlist import WaitlistAllocator

__all__ = [
    "TRANSITIONS",
    "Actor",
    "ActorRole",
    "AdmissionError",
    "AdmissionStateMachine",
    "ApplicationLimiter",
    "CourseCatalog",
    "DuplicateApplicationError",
    "IdentityRequiredError",
    "InvalidTransitionError",
    "JobNotOpenError",
    "LimitExceededError",
    "NoSeatsAvailableError",
    "SeatManager",
    "TransitionResult",
    "UnauthorizedError",
    "UnqualifiedAdmissionError",
    "WaitlistAllocator",
    "can_transition",
]
