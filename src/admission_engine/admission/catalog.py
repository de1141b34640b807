"""Course Catalog - institution-owned course management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from admission_engine.admission.exceptions import UnauthorizedError
from admission_engine.admission.models import ActorRole

if TYPE_CHECKING:
    from collections.abc import Iterable

    from admission_engine.admission.models import Actor
    from admission_engine.state_store import Course, CourseStatus, StateStore

logger = logging.getLogger(__name__)


class CourseCatalog:
    """Creates and maintains courses on behalf of their institution."""

    def __init__(self, state_store: StateStore) -> None:
        self.state_store = state_store

    def create_course(
        self,
        actor: Actor,
        name: str,
        seats: int,
        requirements: Iterable[Any] | None = None,
        faculty: str | None = None,
        description: str = "",
    ) -> Course:
        """Create a course owned by the acting institution.

        Raises:
            UnauthorizedError: If the actor is not an institution.
            ValidationError: If seats or requirements are invalid.
        """
        if actor.role != ActorRole.INSTITUTION:
            raise UnauthorizedError("Only institutions can create courses")
        course = self.state_store.create_course(
            institution_id=actor.actor_id,
            name=name,
            seats=seats,
            requirements=requirements,
            faculty=faculty,
            description=description,
        )
        logger.info(
            "Institution %s created course %s (%s, %d seats)",
            actor.actor_id,
            course.id,
            course.name,
            course.seats,
        )
        return course

    def get_course(self, course_id: str) -> Course:
        return self.state_store.get_course(course_id)

    def list_courses(
        self,
        institution_id: str | None = None,
        status: CourseStatus | None = None,
        faculty: str | None = None,
    ) -> list[Course]:
        return self.state_store.list_courses(
            institution_id=institution_id, status=status, faculty=faculty
        )

    def update_course(self, actor: Actor, course_id: str, **changes: Any) -> Course:
        """Update a course the actor owns.

        Accepts the keyword arguments of ``StateStore.update_course``.

        Raises:
            CourseNotFoundError: If course doesn't exist.
            UnauthorizedError: If the actor does not own the course.
            ValidationError: If the new seat count is below the seats taken.
        """
        self._authorize_owner(actor, course_id)
        course = self.state_store.update_course(course_id, **changes)
        logger.info("Course %s updated by %s: %s", course_id, actor.actor_id, sorted(changes))
        return course

    def delete_course(self, actor: Actor, course_id: str) -> None:
        """Delete a course the actor owns.

        Raises:
            CourseNotFoundError: If course doesn't exist.
            UnauthorizedError: If the actor does not own the course.
            CourseHasApplicationsError: If applications reference the course.
        """
        self._authorize_owner(actor, course_id)
        self.state_store.delete_course(course_id)
        logger.info("Course %s deleted by %s", course_id, actor.actor_id)

    def _authorize_owner(self, actor: Actor, course_id: str) -> Course:
        course = self.state_store.get_course(course_id)
        if not actor.is_institution(course.institution_id):
            raise UnauthorizedError("Only the institution that owns this course can change it")
        return course
