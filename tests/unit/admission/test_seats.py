"""Unit tests for the Seat Manager."""

import contextlib
import logging

import pytest

from admission_engine.admission import (
    Actor,
    ActorRole,
    AdmissionStateMachine,
    NoSeatsAvailableError,
    SeatManager,
)
from admission_engine.state_store import (
    ApplicationStatus,
    CourseNotFoundError,
    CourseStatus,
    StateStore,
)

INST_1 = Actor("inst-1", ActorRole.INSTITUTION)
INST_2 = Actor("inst-2", ActorRole.INSTITUTION)
HOLDING_SEAT = [ApplicationStatus.ADMITTED, ApplicationStatus.ACCEPTED]


@pytest.fixture
def store() -> StateStore:
    """Create an in-memory StateStore for testing."""
    return StateStore(":memory:")


@pytest.fixture
def seats(store: StateStore) -> SeatManager:
    """Seat manager over the test store."""
    return SeatManager(store)


@pytest.mark.unit
class TestReserve:
    """Tests for SeatManager.reserve."""

    def test_reserve_decrements(self, store: StateStore, seats: SeatManager) -> None:
        """Reserving returns the seats left."""
        course = store.create_course(institution_id="inst-1", name="CS", seats=3)

        assert seats.reserve(course.id) == 2
        assert store.get_course(course.id).available_seats == 2

    def test_last_seat_marks_full(self, store: StateStore, seats: SeatManager) -> None:
        """Taking the last seat makes the course full; the next reservation fails."""
        course = store.create_course(institution_id="inst-1", name="CS", seats=1)

        assert seats.reserve(course.id) == 0
        assert store.get_course(course.id).course_status == CourseStatus.FULL

        with pytest.raises(NoSeatsAvailableError, match="No seats available in CS"):
            seats.reserve(course.id)
        assert store.get_course(course.id).available_seats == 0

    def test_missing_course(self, seats: SeatManager) -> None:
        """Unknown courses raise CourseNotFoundError."""
        with pytest.raises(CourseNotFoundError):
            seats.reserve("nope")


@pytest.mark.unit
class TestRelease:
    """Tests for SeatManager.release."""

    def test_release_reactivates(self, store: StateStore, seats: SeatManager) -> None:
        """Releasing a seat in a full course makes it active again."""
        course = store.create_course(institution_id="inst-1", name="CS", seats=1)
        seats.reserve(course.id)

        assert seats.release(course.id) == 1
        assert store.get_course(course.id).course_status == CourseStatus.ACTIVE

    def test_release_at_capacity_is_ignored(
        self, store: StateStore, seats: SeatManager, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Releasing into an empty course changes nothing and logs a warning."""
        course = store.create_course(institution_id="inst-1", name="CS", seats=2)

        with caplog.at_level(logging.WARNING):
            assert seats.release(course.id) == 2

        assert "Seat release ignored" in caplog.text

    def test_seats_stay_in_bounds(self, store: StateStore, seats: SeatManager) -> None:
        """Available seats never leave [0, capacity]."""
        course = store.create_course(institution_id="inst-1", name="CS", seats=3)

        for op in ("reserve", "reserve", "release", "reserve", "reserve", "release"):
            with contextlib.suppress(NoSeatsAvailableError):
                getattr(seats, op)(course.id)
            current = store.get_course(course.id)
            assert 0 <= current.available_seats <= current.seats
        assert store.get_course(course.id).available_seats == 1


def _assert_seats_match_offers(store: StateStore, *course_ids: str) -> None:
    for course_id in course_ids:
        course = store.get_course(course_id)
        holding = store.list_applications(course_id=course_id, status=HOLDING_SEAT)
        assert course.available_seats == course.seats - len(holding), course.name


@pytest.mark.unit
class TestSeatConservation:
    """Seats track the admitted and accepted applications of each course."""

    def test_mixed_decisions(self, store: StateStore) -> None:
        """Admissions, rejections after admission and an acceptance cascade keep counts exact."""
        for student_id in ("ada", "grace", "alan"):
            store.create_student(name=student_id, id=student_id, grades={"Mathematics": "A"})
        machine = AdmissionStateMachine(store)
        ada, grace, alan = (Actor(s, ActorRole.STUDENT) for s in ("ada", "grace", "alan"))
        cs = store.create_course(institution_id="inst-1", name="CS", seats=2)
        law = store.create_course(institution_id="inst-2", name="Law", seats=2)
        art = store.create_course(institution_id="inst-1", name="Art", seats=1)
        courses = (cs.id, law.id, art.id)

        ada_cs = machine.submit_application(ada, cs.id)
        ada_law = machine.submit_application(ada, law.id)
        ada_art = machine.submit_application(ada, art.id)
        grace_cs = machine.submit_application(grace, cs.id)
        grace_law = machine.submit_application(grace, law.id)
        alan_cs = machine.submit_application(alan, cs.id)
        alan_art = machine.submit_application(alan, art.id)

        machine.admit(INST_1, ada_cs.id)
        machine.admit(INST_1, grace_cs.id)
        with pytest.raises(NoSeatsAvailableError):
            machine.admit(INST_1, alan_cs.id)
        _assert_seats_match_offers(store, *courses)

        machine.reject(INST_1, grace_cs.id)
        machine.admit(INST_1, alan_cs.id)
        _assert_seats_match_offers(store, *courses)

        machine.admit(INST_2, ada_law.id)
        machine.admit(INST_2, grace_law.id)
        machine.admit(INST_1, ada_art.id)
        _assert_seats_match_offers(store, *courses)

        result = machine.accept_offer(ada, ada_cs.id)
        assert {a.id for a in result.cascaded} == {ada_law.id, ada_art.id}
        _assert_seats_match_offers(store, *courses)

        machine.admit(INST_1, alan_art.id)
        _assert_seats_match_offers(store, *courses)
        assert [store.get_course(c).available_seats for c in courses] == [0, 1, 0]
