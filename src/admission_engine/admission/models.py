"""Data models for the admission engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from admission_engine.exceptions import ValidationError
from admission_engine.state_store.models import Application, ApplicationStatus


class ActorRole(StrEnum):
    """Role of the authenticated caller."""

    STUDENT = "student"
    INSTITUTION = "institution"
    COMPANY = "company"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Authenticated identity supplied with every engine call.

    Attributes:
        actor_id: ID of the student, institution or company acting.
        role: The actor's role.
    """

    actor_id: str
    role: ActorRole

    @classmethod
    def parse(cls, actor_id: str | None, role: str | None) -> Actor:
        """Build an actor from raw identity values.

        Raises:
            ValidationError: If the ID is empty or the role is unknown.
        """
        if not actor_id or not actor_id.strip():
            raise ValidationError("Actor ID is required")
        try:
            parsed_role = ActorRole((role or "").strip().lower())
        except ValueError as e:
            raise ValidationError(f"Unknown actor role: {role!r}") from e
        return cls(actor_id=actor_id.strip(), role=parsed_role)

    def is_student(self, student_id: str) -> bool:
        return self.role == ActorRole.STUDENT and self.actor_id == student_id

    def is_institution(self, institution_id: str) -> bool:
        return self.role == ActorRole.INSTITUTION and self.actor_id == institution_id

    def is_company(self, company_id: str) -> bool:
        return self.role == ActorRole.COMPANY and self.actor_id == company_id


# Allowed status changes. ACCEPTED and REJECTED are terminal.
TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {
            ApplicationStatus.UNDER_REVIEW,
            ApplicationStatus.ADMITTED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.WAITLISTED,
        }
    ),
    ApplicationStatus.UNDER_REVIEW: frozenset(
        {
            ApplicationStatus.ADMITTED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.WAITLISTED,
        }
    ),
    ApplicationStatus.WAITLISTED: frozenset(
        {ApplicationStatus.ADMITTED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.ADMITTED: frozenset(
        {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.ACCEPTED: frozenset(),
}


def can_transition(from_status: ApplicationStatus, to_status: ApplicationStatus) -> bool:
    """Whether the transition table allows moving between two statuses."""
    return to_status in TRANSITIONS[from_status]


@dataclass
class TransitionResult:
    """Outcome of a status change request.

    Attributes:
        application: The application after the request.
        previous_status: Status before the request.
        changed: False when the application already had the requested status.
        cascaded: Other applications rejected as a side effect of acceptance.
    """

    application: Application
    previous_status: ApplicationStatus
    changed: bool
    cascaded: list[Application] = field(default_factory=list)
