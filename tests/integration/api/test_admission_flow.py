"""End-to-end tests of the REST API on a file database."""

import tempfile
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from admission_engine.api.app import create_app
from admission_engine.config import AdmissionSettings, Settings, StoreSettings

INSTITUTION = {"X-Actor-Id": "uni-1", "X-Actor-Role": "institution"}
OTHER_INSTITUTION = {"X-Actor-Id": "uni-2", "X-Actor-Role": "institution"}
COMPANY = {"X-Actor-Id": "acme", "X-Actor-Role": "company"}
ADA = {"X-Actor-Id": "ada", "X-Actor-Role": "student"}
ALAN = {"X-Actor-Id": "alan", "X-Actor-Role": "student"}
ADMIN = {"X-Actor-Id": "root", "X-Actor-Role": "admin"}


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Client for a full app on a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    settings = Settings(
        store=StoreSettings(db_path=path),
        admission=AdmissionSettings(max_open_applications_per_institution=2),
    )
    with TestClient(create_app(settings)) as client:
        yield client
    Path(path).unlink(missing_ok=True)
    Path(f"{path}-wal").unlink(missing_ok=True)
    Path(f"{path}-shm").unlink(missing_ok=True)


def _ok(response: httpx.Response, code: int = status.HTTP_200_OK) -> dict:
    assert response.status_code == code, response.text
    body = response.json()
    assert body["error"] is None
    return body["data"]


def _create_course(client: TestClient, headers: dict[str, str], name: str, seats: int) -> dict:
    return _ok(
        client.post(
            "/api/v1/courses",
            json={
                "name": name,
                "seats": seats,
                "requirements": [
                    {"subject": "Mathematics", "minimum_grade": "B"},
                    {"subject": "Art", "minimum_grade": "C", "is_mandatory": False},
                ],
            },
            headers=headers,
        ),
        status.HTTP_201_CREATED,
    )


def _apply(client: TestClient, headers: dict[str, str], course_id: str) -> dict:
    return _ok(
        client.post("/api/v1/applications", json={"course_id": course_id}, headers=headers),
        status.HTTP_201_CREATED,
    )


def _decide(client: TestClient, application_id: str, to_status: str, headers: dict) -> dict:
    return _ok(
        client.post(
            f"/api/v1/applications/{application_id}/transition",
            json={"status": to_status},
            headers=headers,
        )
    )


@pytest.mark.integration
class TestAdmissionFlow:
    """A full admission round through the API."""

    def test_offer_acceptance_cascade(self, client: TestClient) -> None:
        """Ada gets two offers, accepts one, and the other seat goes back."""
        _ok(
            client.post(
                "/api/v1/students",
                json={"name": "Ada", "grades": {"Mathematics": "A", "Physics": "B"}},
                headers=ADA,
            ),
            status.HTTP_201_CREATED,
        )
        cs = _create_course(client, INSTITUTION, "Computer Science", 1)
        law = _create_course(client, OTHER_INSTITUTION, "Law", 1)

        cs_app = _apply(client, ADA, cs["id"])
        law_app = _apply(client, ADA, law["id"])
        assert cs_app["is_qualified"] is True
        assert cs_app["qualification_details"][1]["student_grade"] == "not provided"

        _decide(client, cs_app["id"], "under_review", INSTITUTION)
        _decide(client, cs_app["id"], "admitted", INSTITUTION)
        _decide(client, law_app["id"], "admitted", OTHER_INSTITUTION)
        assert _ok(client.get(f"/api/v1/courses/{law['id']}"))["status"] == "full"

        accepted = _ok(client.post(f"/api/v1/applications/{cs_app['id']}/accept", headers=ADA))

        assert accepted["application"]["status"] == "accepted"
        assert accepted["cascaded"][0]["id"] == law_app["id"]
        law_after = _ok(client.get(f"/api/v1/courses/{law['id']}"))
        assert (law_after["available_seats"], law_after["status"]) == (1, "active")

        inbox = _ok(client.get("/api/v1/notifications", params={"limit": 50}, headers=ADA))
        assert {n["event_type"] for n in inbox} >= {
            "application_submitted",
            "admission_offer",
            "application_status_changed",
        }
        received = _ok(client.get("/api/v1/notifications", headers=INSTITUTION))
        assert {n["event_type"] for n in received} == {"application_received", "offer_accepted"}

        history = _ok(client.get(f"/api/v1/applications/{cs_app['id']}/history", headers=ADA))
        assert [h["to_status"] for h in history] == [
            "pending",
            "under_review",
            "admitted",
            "accepted",
        ]

    def test_waitlist_then_admit_after_release(self, client: TestClient) -> None:
        """A rejected offer frees the seat for a waitlisted student."""
        for headers, name in ((ADA, "Ada"), (ALAN, "Alan")):
            _ok(
                client.post(
                    "/api/v1/students",
                    json={"name": name, "grades": {"Mathematics": "A"}},
                    headers=headers,
                ),
                status.HTTP_201_CREATED,
            )
        course = _create_course(client, INSTITUTION, "Computer Science", 1)
        first = _apply(client, ADA, course["id"])
        second = _apply(client, ALAN, course["id"])

        _decide(client, first["id"], "admitted", INSTITUTION)
        waitlisted = _decide(client, second["id"], "waitlisted", INSTITUTION)
        assert waitlisted["application"]["waitlist_position"] == 1
        queue = _ok(client.get(f"/api/v1/courses/{course['id']}/waitlist", headers=INSTITUTION))
        assert [a["id"] for a in queue] == [second["id"]]

        blocked = client.post(
            f"/api/v1/applications/{second['id']}/transition",
            json={"status": "admitted"},
            headers=INSTITUTION,
        )
        assert blocked.status_code == status.HTTP_409_CONFLICT

        _decide(client, first["id"], "rejected", INSTITUTION)
        admitted = _decide(client, second["id"], "admitted", INSTITUTION)

        assert admitted["application"]["waitlist_position"] is None
        stats = _ok(client.get("/api/v1/applications/stats", headers=INSTITUTION))
        assert stats["by_status"]["admitted"] == 1
        assert stats["by_status"]["rejected"] == 1
        admin_view = _ok(client.get("/api/v1/applications", headers=ADMIN))
        assert len(admin_view) == 2


@pytest.mark.integration
class TestJobFlow:
    """A job posting round through the API."""

    def test_post_recommend_apply(self, client: TestClient) -> None:
        """Matching students hear about a job, apply, and get shortlisted."""
        _ok(
            client.post(
                "/api/v1/students",
                json={
                    "name": "Ada",
                    "grades": {"Mathematics": "A"},
                    "skills": ["Python", "SQL"],
                    "experience_years": 3,
                },
                headers=ADA,
            ),
            status.HTTP_201_CREATED,
        )
        deadline = (datetime.now(UTC) + timedelta(days=14)).isoformat()
        job = _ok(
            client.post(
                "/api/v1/jobs",
                json={
                    "title": "Data Engineer",
                    "deadline": deadline,
                    "requirements": ["Python", "Spark"],
                    "experience": "2+ years",
                },
                headers=COMPANY,
            ),
            status.HTTP_201_CREATED,
        )

        [match] = _ok(client.get("/api/v1/notifications", headers=ADA))
        assert match["event_type"] == "job_match"
        assert match["payload"]["job_id"] == job["id"]

        [ranked] = _ok(client.get("/api/v1/students/ada/recommended-jobs", headers=ADA))
        assert [c["name"] for c in ranked["match"]["criteria"]] == [
            "academic",
            "skills",
            "experience",
        ]

        applied = _ok(
            client.post(f"/api/v1/jobs/{job['id']}/applications", json={}, headers=ADA),
            status.HTTP_201_CREATED,
        )
        assert applied["match_score"] == ranked["match"]["score"]

        _ok(
            client.patch(
                f"/api/v1/jobs/applications/{applied['id']}",
                json={"status": "shortlisted"},
                headers=COMPANY,
            )
        )
        unread = _ok(client.get("/api/v1/notifications/unread-count", headers=ADA))
        assert unread == {"unread": 2}
