"""Waitlist Allocator - per-course waitlist positions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from admission_engine.state_store.models import ApplicationStatus

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from admission_engine.state_store import Application, StateStore

logger = logging.getLogger(__name__)


class WaitlistAllocator:
    """Hands out waitlist positions in first-come order.

    Positions come from a counter stored on the course row and incremented
    in the same transaction that waitlists the application. A position is
    never handed out twice, even after its holder leaves the waitlist.
    """

    def __init__(self, state_store: StateStore) -> None:
        self.state_store = state_store

    def next_position(self, course_id: str, session: Session | None = None) -> int:
        """Assign the next waitlist position for a course.

        Raises:
            CourseNotFoundError: If course doesn't exist.
        """
        with self.state_store.session_scope(session) as s:
            position = self.state_store.bump_waitlist_counter(s, course_id)
        logger.debug("Assigned waitlist position %d for course %s", position, course_id)
        return position

    def queue(self, course_id: str) -> list[Application]:
        """Applications still waitlisted for a course, in position order."""
        waitlisted = self.state_store.list_applications(
            course_id=course_id, status=ApplicationStatus.WAITLISTED
        )
        return sorted(waitlisted, key=lambda a: a.waitlist_position or 0)
