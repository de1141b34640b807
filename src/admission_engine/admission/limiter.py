"""Application Limiter - per-institution open application cap."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from admission_engine.admission.exceptions import DuplicateApplicationError, LimitExceededError
from admission_engine.state_store.models import OPEN_STATUSES

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from admission_engine.state_store import Course, StateStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPEN_APPLICATIONS = 2


class ApplicationLimiter:
    """Gate run before an application is created.

    Only applications in an open status (pending, under review, admitted or
    waitlisted) count against the limit. The duplicate check ignores status:
    a student can apply to a course once.
    """

    def __init__(
        self,
        state_store: StateStore,
        max_open_per_institution: int = DEFAULT_MAX_OPEN_APPLICATIONS,
    ) -> None:
        self.state_store = state_store
        self.max_open_per_institution = max_open_per_institution

    def open_count(
        self, student_id: str, institution_id: str, session: Session | None = None
    ) -> int:
        """Number of the student's open applications to an institution."""
        return self.state_store.count_applications(
            student_id, institution_id, OPEN_STATUSES, session=session
        )

    def check(self, student_id: str, course: Course, session: Session | None = None) -> None:
        """Verify the student may apply to the course.

        Args:
            student_id: The applying student.
            course: The target course.
            session: Enclosing transaction, so the check and the insert that
                follows it see the same state.

        Raises:
            DuplicateApplicationError: If the student already applied to the course.
            LimitExceededError: If the student is at the institution's limit.
        """
        existing = self.state_store.find_application(student_id, course.id, session=session)
        if existing is not None:
            raise DuplicateApplicationError(
                f"You have already applied to {course.name} "
                f"(application status: {existing.status})"
            )

        count = self.open_count(student_id, course.institution_id, session=session)
        if count >= self.max_open_per_institution:
            logger.info(
                "Student %s at application limit for institution %s (%d open)",
                student_id,
                course.institution_id,
                count,
            )
            raise LimitExceededError(
                f"You can have at most {self.max_open_per_institution} open applications "
                f"per institution"
            )
