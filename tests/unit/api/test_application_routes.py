"""Unit tests for course application routes."""

from collections.abc import Iterator

import httpx
import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from admission_engine.admission import AdmissionStateMachine
from admission_engine.api.app import register_exception_handlers
from admission_engine.api.dependencies import get_state_machine
from admission_engine.api.routes import applications
from admission_engine.notifications import StoreNotificationSink
from admission_engine.state_store import Course, StateStore

INSTITUTION = {"X-Actor-Id": "inst-1", "X-Actor-Role": "institution"}
OTHER_INSTITUTION = {"X-Actor-Id": "inst-2", "X-Actor-Role": "institution"}
ADA = {"X-Actor-Id": "ada", "X-Actor-Role": "student"}
GRACE = {"X-Actor-Id": "grace", "X-Actor-Role": "student"}
ADMIN = {"X-Actor-Id": "root", "X-Actor-Role": "admin"}


@pytest.fixture
def store() -> Iterator[StateStore]:
    """In-memory StateStore with two students."""
    s = StateStore(":memory:")
    s.create_student(name="Ada", id="ada", grades={"Mathematics": "A"})
    s.create_student(name="Grace", id="grace", grades={"Mathematics": "D"})
    yield s
    s.close()


@pytest.fixture
def course(store: StateStore) -> Course:
    """A one-seat course that requires a B in Mathematics."""
    return store.create_course(
        institution_id="inst-1",
        name="Computer Science",
        seats=1,
        requirements=[{"subject": "Mathematics", "minimum_grade": "B"}],
    )


@pytest.fixture
def app(store: StateStore) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    app = FastAPI()
    machine = AdmissionStateMachine(store, notification_sink=StoreNotificationSink(store))

    def override_get_state_machine() -> Iterator[AdmissionStateMachine]:
        yield machine

    app.dependency_overrides[get_state_machine] = override_get_state_machine

    register_exception_handlers(app)
    app.include_router(applications.router, prefix="/api/v1")

    return app


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Create a test client."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def _submit(client: TestClient, course_id: str, headers: dict[str, str]) -> dict:
    response = client.post("/api/v1/applications", json={"course_id": course_id}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["data"]


def _transition(
    client: TestClient,
    application_id: str,
    to_status: str,
    headers: dict[str, str] = INSTITUTION,
) -> httpx.Response:
    return client.post(
        f"/api/v1/applications/{application_id}/transition",
        json={"status": to_status},
        headers=headers,
    )


@pytest.mark.unit
class TestSubmitApplication:
    """Tests for POST /api/v1/applications."""

    def test_submit(self, client: TestClient, course: Course) -> None:
        """A qualified student's application starts pending with its verdict."""
        application = _submit(client, course.id, ADA)

        assert application["status"] == "pending"
        assert application["is_qualified"] is True
        assert application["qualification_score"] == 100.0
        assert application["course_name"] == "Computer Science"
        assert application["qualification_details"][0]["met"] is True

    def test_unqualified_may_submit(self, client: TestClient, course: Course) -> None:
        """An unqualified student can still apply."""
        application = _submit(client, course.id, GRACE)

        assert application["is_qualified"] is False
        assert application["qualification_score"] == 0.0

    def test_duplicate(self, client: TestClient, course: Course) -> None:
        """A second application to the same course is a 409."""
        _submit(client, course.id, ADA)

        response = client.post(
            "/api/v1/applications", json={"course_id": course.id}, headers=ADA
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "already applied" in response.json()["error"]

    def test_limit_per_institution(
        self, client: TestClient, store: StateStore, course: Course
    ) -> None:
        """A third open application to one institution is a 409."""
        second = store.create_course(institution_id="inst-1", name="Maths", seats=5)
        third = store.create_course(institution_id="inst-1", name="Physics", seats=5)
        _submit(client, course.id, ADA)
        _submit(client, second.id, ADA)

        response = client.post("/api/v1/applications", json={"course_id": third.id}, headers=ADA)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "at most 2 open applications" in response.json()["error"]

    def test_institution_cannot_submit(self, client: TestClient, course: Course) -> None:
        """Institutions get 403."""
        response = client.post(
            "/api/v1/applications", json={"course_id": course.id}, headers=INSTITUTION
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_course(self, client: TestClient) -> None:
        """Unknown courses are a 404."""
        response = client.post("/api/v1/applications", json={"course_id": "nope"}, headers=ADA)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_missing_student_profile(self, client: TestClient, course: Course) -> None:
        """Students need a profile before applying."""
        response = client.post(
            "/api/v1/applications",
            json={"course_id": course.id},
            headers={"X-Actor-Id": "nobody", "X-Actor-Role": "student"},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.unit
class TestTransitionApplication:
    """Tests for POST /api/v1/applications/{id}/transition."""

    def test_admit(self, client: TestClient, store: StateStore, course: Course) -> None:
        """Admitting takes a seat and reports the previous status."""
        application = _submit(client, course.id, ADA)

        response = _transition(client, application["id"], "admitted")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["application"]["status"] == "admitted"
        assert data["previous_status"] == "pending"
        assert data["changed"] is True
        assert store.get_course(course.id).available_seats == 0

    def test_admit_unqualified(self, client: TestClient, course: Course) -> None:
        """Admitting an unqualified student is a 422."""
        application = _submit(client, course.id, GRACE)

        response = _transition(client, application["id"], "admitted")

        assert response.status_code == 422

    def test_no_seats(self, client: TestClient, store: StateStore, course: Course) -> None:
        """Admitting into a full course is a 409."""
        store.create_student(name="Alan", id="alan", grades={"Mathematics": "A"})
        first = _submit(client, course.id, ADA)
        second = _submit(client, course.id, {"X-Actor-Id": "alan", "X-Actor-Role": "student"})
        _transition(client, first["id"], "admitted")

        response = _transition(client, second["id"], "admitted")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "No seats available in Computer Science"

    def test_waitlist_positions(
        self, client: TestClient, store: StateStore, course: Course
    ) -> None:
        """Waitlisted applications get increasing positions."""
        first = _submit(client, course.id, ADA)
        second = _submit(client, course.id, GRACE)

        a = _transition(client, first["id"], "waitlisted").json()["data"]["application"]
        b = _transition(client, second["id"], "waitlisted").json()["data"]["application"]

        assert (a["waitlist_position"], b["waitlist_position"]) == (1, 2)

    def test_invalid_transition(self, client: TestClient, course: Course) -> None:
        """Rejected is terminal."""
        application = _submit(client, course.id, ADA)
        _transition(client, application["id"], "rejected")

        response = _transition(client, application["id"], "under_review")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_back_to_pending(self, client: TestClient, course: Course) -> None:
        """Nothing moves back to pending."""
        application = _submit(client, course.id, ADA)

        response = _transition(client, application["id"], "pending")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unknown_status(self, client: TestClient, course: Course) -> None:
        """Unknown statuses are a 400."""
        application = _submit(client, course.id, ADA)

        response = _transition(client, application["id"], "deferred")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_other_institution(self, client: TestClient, course: Course) -> None:
        """Only the owning institution decides."""
        application = _submit(client, course.id, ADA)

        response = _transition(client, application["id"], "admitted", OTHER_INSTITUTION)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_cannot_decide(self, client: TestClient, course: Course) -> None:
        """Admins have read-only access."""
        application = _submit(client, course.id, ADA)

        response = _transition(client, application["id"], "admitted", ADMIN)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_repeat_is_noop(self, client: TestClient, course: Course) -> None:
        """Repeating a decision reports changed=false."""
        application = _submit(client, course.id, ADA)
        _transition(client, application["id"], "under_review")

        response = _transition(client, application["id"], "under_review")

        assert response.json()["data"]["changed"] is False


@pytest.mark.unit
class TestAcceptOffer:
    """Tests for POST /api/v1/applications/{id}/accept."""

    def test_accept_rejects_other_offers(self, client: TestClient, store: StateStore) -> None:
        """Accepting one offer rejects the student's other offers and frees their seats."""
        cs = store.create_course(institution_id="inst-1", name="CS", seats=1)
        law = store.create_course(institution_id="inst-2", name="Law", seats=1)
        first = _submit(client, cs.id, ADA)
        second = _submit(client, law.id, ADA)
        _transition(client, first["id"], "admitted")
        _transition(client, second["id"], "admitted", OTHER_INSTITUTION)

        response = client.post(f"/api/v1/applications/{first['id']}/accept", headers=ADA)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["application"]["status"] == "accepted"
        assert [a["id"] for a in data["cascaded"]] == [second["id"]]
        assert data["cascaded"][0]["status"] == "rejected"
        assert store.get_course(law.id).available_seats == 1
        assert store.get_course(cs.id).available_seats == 0

    def test_only_the_student(self, client: TestClient, course: Course) -> None:
        """The institution can't accept on the student's behalf."""
        application = _submit(client, course.id, ADA)
        _transition(client, application["id"], "admitted")

        response = client.post(
            f"/api/v1/applications/{application['id']}/accept", headers=INSTITUTION
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_not_admitted(self, client: TestClient, course: Course) -> None:
        """Only admitted applications can be accepted."""
        application = _submit(client, course.id, ADA)

        response = client.post(f"/api/v1/applications/{application['id']}/accept", headers=ADA)

        assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.unit
class TestQueries:
    """Tests for application listing, history and stats."""

    def test_list_by_role(self, client: TestClient, course: Course) -> None:
        """Students see their own applications; institutions see received ones."""
        _submit(client, course.id, ADA)
        _submit(client, course.id, GRACE)

        own = client.get("/api/v1/applications", headers=ADA).json()["data"]
        received = client.get("/api/v1/applications", headers=INSTITUTION).json()["data"]
        other = client.get("/api/v1/applications", headers=OTHER_INSTITUTION).json()["data"]

        assert [a["student_id"] for a in own] == ["ada"]
        assert len(received) == 2
        assert other == []

    def test_list_unknown_status(self, client: TestClient) -> None:
        """An unknown status filter is a 400."""
        response = client.get("/api/v1/applications", params={"status": "x"}, headers=ADA)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_get_hidden_from_other_students(self, client: TestClient, course: Course) -> None:
        """Another student can't read the application; an admin can."""
        application = _submit(client, course.id, ADA)

        response = client.get(f"/api/v1/applications/{application['id']}", headers=GRACE)
        admin = client.get(f"/api/v1/applications/{application['id']}", headers=ADMIN)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert admin.status_code == status.HTTP_200_OK

    def test_history(self, client: TestClient, course: Course) -> None:
        """History lists every status change, oldest first."""
        application = _submit(client, course.id, ADA)
        client.post(
            f"/api/v1/applications/{application['id']}/transition",
            json={"status": "under_review", "reason": "Looking closer"},
            headers=INSTITUTION,
        )

        response = client.get(f"/api/v1/applications/{application['id']}/history", headers=ADA)

        history = response.json()["data"]
        assert [(h["from_status"], h["to_status"]) for h in history] == [
            (None, "pending"),
            ("pending", "under_review"),
        ]
        assert history[1]["reason"] == "Looking closer"
        assert history[1]["actor_role"] == "institution"

    def test_stats(self, client: TestClient, course: Course) -> None:
        """Institutions see counts for their courses."""
        _submit(client, course.id, ADA)
        _submit(client, course.id, GRACE)

        response = client.get("/api/v1/applications/stats", headers=INSTITUTION)

        stats = response.json()["data"]
        assert stats["institution_id"] == "inst-1"
        assert stats["total_applications"] == 2
        assert (stats["qualified"], stats["unqualified"]) == (1, 1)
        assert stats["courses"][0]["course_name"] == "Computer Science"

    def test_stats_of_other_institution(self, client: TestClient) -> None:
        """Institutions can't read each other's stats."""
        response = client.get(
            "/api/v1/applications/stats",
            params={"institution_id": "inst-1"},
            headers=OTHER_INSTITUTION,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
