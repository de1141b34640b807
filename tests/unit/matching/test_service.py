"""Unit tests for the Job Matching Service."""

from datetime import timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest

from admission_engine.admission import (
    Actor,
    ActorRole,
    DuplicateApplicationError,
    InvalidTransitionError,
    JobNotOpenError,
    UnauthorizedError,
)
from admission_engine.config import MatchSettings
from admission_engine.exceptions import ValidationError
from admission_engine.matching import JobMatchingService, MatchScorer
from admission_engine.matching.service import match_breakdown
from admission_engine.notifications import NotificationType
from admission_engine.state_store import JobApplicationStatus, StateStore

COMPANY = Actor("co-1", ActorRole.COMPANY)
OTHER_COMPANY = Actor("co-2", ActorRole.COMPANY)
ADA = Actor("ada", ActorRole.STUDENT)
GRACE = Actor("grace", ActorRole.STUDENT)


@pytest.fixture
def store(clock: Any) -> StateStore:
    """In-memory store on a settable clock with a strong and a weak candidate."""
    store = StateStore(":memory:", clock=clock)
    store.create_student(
        name="Ada",
        id="ada",
        grades={"Maths": "A", "Physics": "A", "Chemistry": "A", "English": "B", "History": "B"},
        skills=["react", "sql"],
    )
    store.create_student(name="Grace", id="grace", grades={"Art": "D"}, skills=["painting"])
    return store


@pytest.fixture
def sink() -> MagicMock:
    """Notification sink that records calls."""
    return MagicMock()


@pytest.fixture
def service(store: StateStore, sink: MagicMock) -> JobMatchingService:
    """Matching service with default settings."""
    return JobMatchingService(store, notification_sink=sink)


def _post(
    service: JobMatchingService, clock: Any, title: str = "Frontend Dev", days: float = 7
) -> Any:
    return service.post_job(
        COMPANY,
        title=title,
        deadline=clock() + timedelta(days=days),
        requirements=["React", "Node"],
    )


@pytest.mark.unit
class TestPostJob:
    """Tests for post_job."""

    def test_notifies_qualified_students(
        self, service: JobMatchingService, sink: MagicMock, clock: Any
    ) -> None:
        """Only students at or above the qualified threshold are notified."""
        job = _post(service, clock)

        sink.notify.assert_called_once()
        user_id, event_type, payload = sink.notify.call_args.args
        assert user_id == "ada"
        assert event_type == NotificationType.JOB_MATCH.value
        assert payload["job_id"] == job.id
        assert payload["job_title"] == "Frontend Dev"
        assert payload["match_score"] == 73

    def test_only_companies_post(self, service: JobMatchingService, clock: Any) -> None:
        """Students can't post jobs."""
        with pytest.raises(UnauthorizedError):
            service.post_job(ADA, title="Dev", deadline=clock() + timedelta(days=1))

    def test_past_deadline(self, service: JobMatchingService, clock: Any) -> None:
        """A deadline in the past is rejected."""
        with pytest.raises(ValidationError):
            service.post_job(COMPANY, title="Dev", deadline=clock() - timedelta(days=1))

    def test_failing_sink_does_not_block(
        self, service: JobMatchingService, sink: MagicMock, store: StateStore, clock: Any
    ) -> None:
        """A failing sink doesn't stop the job from being posted."""
        sink.notify.side_effect = RuntimeError("down")

        job = _post(service, clock)

        assert store.get_job(job.id).title == "Frontend Dev"


@pytest.mark.unit
class TestRecommendJobs:
    """Tests for recommend_jobs."""

    def test_ranked_by_score_then_deadline(
        self, service: JobMatchingService, clock: Any
    ) -> None:
        """Higher scores come first; ties go to the sooner deadline."""
        later = _post(service, clock, "Later", days=9)
        sooner = _post(service, clock, "Sooner", days=3)
        best = service.post_job(
            COMPANY,
            title="SQL Analyst",
            deadline=clock() + timedelta(days=20),
            requirements=["SQL"],
        )

        ranked = service.recommend_jobs("ada")

        assert [r.job.id for r in ranked] == [best.id, sooner.id, later.id]
        assert ranked[0].match.score == pytest.approx(
            (0.4 * 3.6 / 4.0 + 0.3 * 1.0) / 0.7
        )

    def test_expired_and_closed_jobs_excluded(
        self, service: JobMatchingService, clock: Any
    ) -> None:
        """Jobs past their deadline or closed are not recommended."""
        _post(service, clock, "Short", days=1)
        closed = _post(service, clock, "Closed", days=5)
        kept = _post(service, clock, "Kept", days=5)
        service.close_job(COMPANY, closed.id)

        clock.advance(days=2)
        ranked = service.recommend_jobs("ada")

        assert [r.job.id for r in ranked] == [kept.id]

    def test_limit(self, service: JobMatchingService, clock: Any) -> None:
        """limit caps the number of results."""
        for i in range(3):
            _post(service, clock, f"Job {i}")

        assert len(service.recommend_jobs("ada", limit=2)) == 2


@pytest.mark.unit
class TestApplyForJob:
    """Tests for apply_for_job."""

    def test_apply_freezes_score(
        self, service: JobMatchingService, sink: MagicMock, store: StateStore, clock: Any
    ) -> None:
        """The match score at submission is stored rounded to 4 places."""
        job = _post(service, clock)
        sink.reset_mock()

        job_application = service.apply_for_job(ADA, job.id, cover_letter="Hello")

        assert job_application.match_score == pytest.approx(0.7286, abs=1e-4)
        assert job_application.cover_letter == "Hello"
        assert job_application.company_id == "co-1"
        user_id, event_type, _ = sink.notify.call_args.args
        assert (user_id, event_type) == ("co-1", NotificationType.JOB_APPLICATION_RECEIVED.value)

        store.update_student("ada", skills=[])
        [stored] = service.list_job_applications(COMPANY, job.id)
        assert stored.match_score == job_application.match_score

    def test_duplicate(self, service: JobMatchingService, clock: Any) -> None:
        """A student applies to a job once."""
        job = _post(service, clock)
        service.apply_for_job(ADA, job.id)

        with pytest.raises(DuplicateApplicationError):
            service.apply_for_job(ADA, job.id)

    def test_after_deadline(self, service: JobMatchingService, clock: Any) -> None:
        """Applications after the deadline are refused."""
        job = _post(service, clock, days=1)
        clock.advance(days=1, seconds=1)

        with pytest.raises(JobNotOpenError, match="deadline"):
            service.apply_for_job(ADA, job.id)

    def test_closed_job(self, service: JobMatchingService, clock: Any) -> None:
        """Applications to closed jobs are refused."""
        job = _post(service, clock)
        service.close_job(COMPANY, job.id)

        with pytest.raises(JobNotOpenError, match="no longer accepting"):
            service.apply_for_job(ADA, job.id)

    def test_only_students_apply(self, service: JobMatchingService, clock: Any) -> None:
        """Companies can't apply for jobs."""
        job = _post(service, clock)

        with pytest.raises(UnauthorizedError):
            service.apply_for_job(OTHER_COMPANY, job.id)

    def test_unqualified_student_may_apply(
        self, service: JobMatchingService, clock: Any
    ) -> None:
        """A low score doesn't block an application."""
        job = _post(service, clock)

        job_application = service.apply_for_job(GRACE, job.id)

        assert job_application.match_score < 0.6


@pytest.mark.unit
class TestCompanyViews:
    """Tests for company-side operations."""

    def test_qualified_applicants(self, service: JobMatchingService, clock: Any) -> None:
        """Only students at or above the threshold are listed."""
        job = _post(service, clock)

        candidates = service.qualified_applicants(COMPANY, job.id)

        assert [c.student.id for c in candidates] == ["ada"]
        assert candidates[0].match.is_good_match is True

    def test_other_company_forbidden(self, service: JobMatchingService, clock: Any) -> None:
        """Another company can't see or close the job."""
        job = _post(service, clock)

        with pytest.raises(UnauthorizedError):
            service.qualified_applicants(OTHER_COMPANY, job.id)
        with pytest.raises(UnauthorizedError):
            service.close_job(OTHER_COMPANY, job.id)

    def test_update_job(self, service: JobMatchingService, clock: Any) -> None:
        """The owner edits the job; another company can't."""
        job = _post(service, clock)

        updated = service.update_job(COMPANY, job.id, title="Senior Frontend Dev", location="Oslo")

        assert (updated.title, updated.location) == ("Senior Frontend Dev", "Oslo")
        with pytest.raises(UnauthorizedError):
            service.update_job(OTHER_COMPANY, job.id, title="Taken")

    def test_update_job_deadline_fixed(self, service: JobMatchingService, clock: Any) -> None:
        """Passing a deadline is a validation error."""
        job = _post(service, clock)

        with pytest.raises(ValidationError, match="deadline"):
            service.update_job(COMPANY, job.id, deadline=clock() + timedelta(days=30))

    def test_company_stats(self, service: JobMatchingService, clock: Any) -> None:
        """Qualified applicants use the scorer's threshold on frozen scores."""
        job = _post(service, clock)
        service.apply_for_job(ADA, job.id)
        service.apply_for_job(GRACE, job.id)

        stats = service.company_stats(COMPANY)

        assert stats.total_jobs == 1
        assert stats.total_applicants == 2
        assert stats.jobs[0].qualified_applicants == 1

    def test_company_stats_permissions(self, service: JobMatchingService, clock: Any) -> None:
        """Companies see their own stats; admins see any company's."""
        _post(service, clock)

        assert service.company_stats(Actor("root", ActorRole.ADMIN), "co-1").total_jobs == 1
        with pytest.raises(UnauthorizedError):
            service.company_stats(OTHER_COMPANY, "co-1")
        with pytest.raises(UnauthorizedError):
            service.company_stats(ADA)

    def test_threshold_from_settings(self, store: StateStore, clock: Any) -> None:
        """A stricter threshold leaves nobody qualified."""
        service = JobMatchingService(
            store, scorer=MatchScorer(MatchSettings(qualified_threshold=0.9))
        )
        job = _post(service, clock)

        assert service.qualified_applicants(COMPANY, job.id) == []

    def test_shortlist_then_reject(
        self, service: JobMatchingService, sink: MagicMock, clock: Any
    ) -> None:
        """Pending goes to shortlisted, then rejected; the student is notified."""
        job = _post(service, clock)
        job_application = service.apply_for_job(ADA, job.id)
        sink.reset_mock()

        shortlisted = service.update_job_application_status(
            COMPANY, job_application.id, "shortlisted"
        )
        rejected = service.update_job_application_status(
            COMPANY, job_application.id, JobApplicationStatus.REJECTED
        )

        assert shortlisted.status == "shortlisted"
        assert rejected.status == "rejected"
        assert sink.notify.call_count == 2
        user_id, event_type, payload = sink.notify.call_args.args
        assert user_id == "ada"
        assert event_type == NotificationType.JOB_APPLICATION_STATUS_CHANGED.value
        assert payload["status"] == "rejected"

    def test_rejected_is_final(self, service: JobMatchingService, clock: Any) -> None:
        """A rejected job application can't be shortlisted."""
        job = _post(service, clock)
        job_application = service.apply_for_job(ADA, job.id)
        service.update_job_application_status(COMPANY, job_application.id, "rejected")

        with pytest.raises(InvalidTransitionError):
            service.update_job_application_status(COMPANY, job_application.id, "shortlisted")

    def test_competing_rejection_wins(
        self,
        service: JobMatchingService,
        store: StateStore,
        sink: MagicMock,
        clock: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A rejection recorded after the check and before the write is not overwritten."""
        job = _post(service, clock)
        job_application = service.apply_for_job(ADA, job.id)
        sink.reset_mock()
        write = store.update_job_application_status

        def reject_first(job_application_id: str, expected: Any, status: Any) -> Any:
            write(
                job_application_id,
                [JobApplicationStatus.PENDING, JobApplicationStatus.SHORTLISTED],
                JobApplicationStatus.REJECTED,
            )
            return write(job_application_id, expected, status)

        monkeypatch.setattr(store, "update_job_application_status", reject_first)

        with pytest.raises(InvalidTransitionError, match="from rejected to shortlisted"):
            service.update_job_application_status(COMPANY, job_application.id, "shortlisted")

        assert store.get_job_application(job_application.id).status == "rejected"
        sink.notify.assert_not_called()

    def test_competing_same_decision_is_noop(
        self,
        service: JobMatchingService,
        store: StateStore,
        sink: MagicMock,
        clock: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """If the same decision lands first, the second caller gets the row back."""
        job = _post(service, clock)
        job_application = service.apply_for_job(ADA, job.id)
        sink.reset_mock()
        write = store.update_job_application_status

        def shortlist_first(job_application_id: str, expected: Any, status: Any) -> Any:
            write(job_application_id, expected, status)
            return write(job_application_id, expected, status)

        monkeypatch.setattr(store, "update_job_application_status", shortlist_first)

        result = service.update_job_application_status(COMPANY, job_application.id, "shortlisted")

        assert result.status == "shortlisted"
        sink.notify.assert_not_called()

    def test_same_status_is_noop(
        self, service: JobMatchingService, sink: MagicMock, clock: Any
    ) -> None:
        """Repeating a decision sends nothing."""
        job = _post(service, clock)
        job_application = service.apply_for_job(ADA, job.id)
        sink.reset_mock()

        result = service.update_job_application_status(COMPANY, job_application.id, "pending")

        assert result.status == "pending"
        sink.notify.assert_not_called()

    def test_unknown_status(self, service: JobMatchingService, clock: Any) -> None:
        """Unknown statuses are a validation error."""
        job = _post(service, clock)
        job_application = service.apply_for_job(ADA, job.id)

        with pytest.raises(ValidationError):
            service.update_job_application_status(COMPANY, job_application.id, "hired")

    def test_student_job_applications(self, service: JobMatchingService, clock: Any) -> None:
        """Students list their own job applications."""
        job = _post(service, clock)
        service.apply_for_job(ADA, job.id)

        assert len(service.list_student_job_applications(ADA)) == 1
        assert service.list_student_job_applications(GRACE) == []
        with pytest.raises(UnauthorizedError):
            service.list_student_job_applications(COMPANY)


@pytest.mark.unit
class TestMatchBreakdown:
    """Tests for match_breakdown."""

    def test_breakdown(self, service: JobMatchingService, store: StateStore, clock: Any) -> None:
        """Criteria serialize with rounded scores."""
        job = _post(service, clock)

        breakdown = match_breakdown(service.score(store.get_student("ada"), job))

        assert [c["name"] for c in breakdown] == ["academic", "skills"]
        assert breakdown[1]["score"] == 0.5
        assert breakdown[1]["detail"] == "Matched 1 of 2 required skills"
