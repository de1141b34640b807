"""Seat Manager - atomic course capacity updates."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from admission_engine.admission.exceptions import NoSeatsAvailableError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from admission_engine.state_store import StateStore

logger = logging.getLogger(__name__)


class SeatManager:
    """Reserves and releases course seats.

    Each change is a single conditional UPDATE on the course row, so
    available seats stay between 0 and the course's capacity no matter how
    many reservations race. Course status follows: ``full`` at zero
    available seats, ``active`` otherwise.
    """

    def __init__(self, state_store: StateStore) -> None:
        self.state_store = state_store

    def reserve(self, course_id: str, session: Session | None = None) -> int:
        """Take one seat.

        Args:
            course_id: The course's unique ID.
            session: Enclosing transaction (optional).

        Returns:
            Seats still available after the reservation.

        Raises:
            CourseNotFoundError: If course doesn't exist.
            NoSeatsAvailableError: If the course is full.
        """
        with self.state_store.session_scope(session) as s:
            if not self.state_store.take_seat(s, course_id):
                course = self.state_store.get_course(course_id, session=s)
                raise NoSeatsAvailableError(f"No seats available in {course.name}")
            course = self.state_store.get_course(course_id, session=s)
            logger.info(
                "Reserved seat in course %s (%d/%d available)",
                course_id,
                course.available_seats,
                course.seats,
            )
            return course.available_seats

    def release(self, course_id: str, session: Session | None = None) -> int:
        """Give one seat back.

        Releasing into a course that is already at full capacity changes
        nothing and is logged.

        Returns:
            Seats available after the release.

        Raises:
            CourseNotFoundError: If course doesn't exist.
        """
        with self.state_store.session_scope(session) as s:
            released = self.state_store.return_seat(s, course_id)
            course = self.state_store.get_course(course_id, session=s)
            if released:
                logger.info(
                    "Released seat in course %s (%d/%d available)",
                    course_id,
                    course.available_seats,
                    course.seats,
                )
            else:
                logger.warning(
                    "Seat release ignored for course %s: all %d seats already available",
                    course_id,
                    course.seats,
                )
            return course.available_seats
