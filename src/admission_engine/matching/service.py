"""Job Matching Service - job postings, recommendations and job applications."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from admission_engine.admission.exceptions import (
    DuplicateApplicationError,
    InvalidTransitionError,
    JobNotOpenError,
    UnauthorizedError,
)
from admission_engine.admission.models import ActorRole
from admission_engine.clock import as_utc
from admission_engine.exceptions import ValidationError
from admission_engine.matching.models import (
    CandidateProfile,
    JobRequirements,
    RankedCandidate,
    RankedJob,
)
from admission_engine.matching.scorer import MatchScorer
from admission_engine.notifications import NotificationType, notify_safely
from admission_engine.state_store import (
    JobApplicationExistsError,
    JobApplicationStatus,
    JobStatus,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from admission_engine.admission.models import Actor
    from admission_engine.matching.models import MatchResult
    from admission_engine.notifications import NotificationSink
    from admission_engine.state_store import (
        CompanyStats,
        Job,
        JobApplication,
        StateStore,
        Student,
    )

logger = logging.getLogger(__name__)

# Allowed company decisions on a job application
_JOB_APPLICATION_TRANSITIONS: dict[JobApplicationStatus, frozenset[JobApplicationStatus]] = {
    JobApplicationStatus.PENDING: frozenset(
        {JobApplicationStatus.SHORTLISTED, JobApplicationStatus.REJECTED}
    ),
    JobApplicationStatus.SHORTLISTED: frozenset({JobApplicationStatus.REJECTED}),
    JobApplicationStatus.REJECTED: frozenset(),
}


class JobMatchingService:
    """Matches students to job postings.

    Scores are computed with MatchScorer on demand. A job application keeps
    the score it had when it was submitted.
    """

    def __init__(
        self,
        state_store: StateStore,
        scorer: MatchScorer | None = None,
        notification_sink: NotificationSink | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            state_store: StateStore instance for persistence.
            scorer: Match scorer. Defaults to MatchScorer() with default settings.
            notification_sink: Where job-match notifications go (optional).
        """
        self.state_store = state_store
        self.scorer = scorer or MatchScorer()
        self.notification_sink = notification_sink

    def score(self, student: Student, job: Job) -> MatchResult:
        """Score a stored student against a stored job."""
        return self.scorer.score(
            CandidateProfile.from_student(student), JobRequirements.from_job(job)
        )

    def is_open(self, job: Job, at: datetime | None = None) -> bool:
        """Whether a job is active and its deadline has not passed."""
        now = as_utc(at) if at is not None else as_utc(self.state_store.clock())
        return job.job_status == JobStatus.ACTIVE and as_utc(job.deadline) > now

    # --- Company operations ---

    def post_job(
        self,
        actor: Actor,
        title: str,
        deadline: datetime,
        requirements: Iterable[str] | None = None,
        qualifications: Iterable[str] | None = None,
        experience: str | None = None,
        description: str = "",
        location: str | None = None,
        job_type: str | None = None,
    ) -> Job:
        """Post a job and notify every student who matches it.

        Raises:
            UnauthorizedError: If the actor is not a company.
            ValidationError: If the title is empty or the deadline has passed.
        """
        if actor.role != ActorRole.COMPANY:
            raise UnauthorizedError("Only companies can post jobs")

        job = self.state_store.create_job(
            company_id=actor.actor_id,
            title=title,
            deadline=deadline,
            requirements=requirements,
            qualifications=qualifications,
            experience=experience,
            description=description,
            location=location,
            job_type=job_type,
        )
        logger.info("Company %s posted job %s (%s)", actor.actor_id, job.id, job.title)

        notified = 0
        for candidate in self._rank_students(job):
            if not candidate.match.is_qualified:
                continue
            if notify_safely(
                self.notification_sink,
                candidate.student.id,
                NotificationType.JOB_MATCH,
                {
                    "job_id": job.id,
                    "job_title": job.title,
                    "company_id": job.company_id,
                    "match_score": candidate.match.percent,
                },
            ):
                notified += 1
        logger.info("Sent %d job match notification(s) for job %s", notified, job.id)
        return job

    def update_job(self, actor: Actor, job_id: str, **changes: Any) -> Job:
        """Edit a job the actor owns. The deadline can't be changed.

        Raises:
            JobNotFoundError: If job doesn't exist.
            UnauthorizedError: If the actor does not own the job.
            ValidationError: If the deadline or an unknown field is given.
        """
        self._owned_job(actor, job_id)
        job = self.state_store.update_job(job_id, **changes)
        logger.info(
            "Job %s updated by %s (%s)", job_id, actor.actor_id, ", ".join(sorted(changes))
        )
        return job

    def close_job(self, actor: Actor, job_id: str) -> Job:
        """Close a job the actor owns.

        Raises:
            JobNotFoundError: If job doesn't exist.
            UnauthorizedError: If the actor does not own the job.
        """
        self._owned_job(actor, job_id)
        job = self.state_store.close_job(job_id)
        logger.info("Job %s closed by %s", job_id, actor.actor_id)
        return job

    def qualified_applicants(self, actor: Actor, job_id: str) -> list[RankedCandidate]:
        """Students whose match score reaches the qualified threshold, best first.

        Raises:
            JobNotFoundError: If job doesn't exist.
            UnauthorizedError: If the actor does not own the job.
        """
        job = self._owned_job(actor, job_id)
        return [c for c in self._rank_students(job) if c.match.is_qualified]

    def list_job_applications(self, actor: Actor, job_id: str) -> list[JobApplication]:
        """Applications received for a job the actor owns, best match first."""
        self._owned_job(actor, job_id)
        return self.state_store.list_job_applications(job_id=job_id)

    def company_stats(self, actor: Actor, company_id: str | None = None) -> CompanyStats:
        """Job and applicant statistics for a company.

        Qualified applicants are those whose frozen match score reaches the
        scorer's qualified threshold.

        Raises:
            UnauthorizedError: If the actor is not the company or an admin.
        """
        company_id = company_id or actor.actor_id
        if actor.role != ActorRole.ADMIN and not actor.is_company(company_id):
            raise UnauthorizedError("Only the company can view its statistics")
        return self.state_store.get_company_stats(
            company_id, self.scorer.settings.qualified_threshold
        )

    def update_job_application_status(
        self,
        actor: Actor,
        job_application_id: str,
        status: JobApplicationStatus | str,
    ) -> JobApplication:
        """Shortlist or reject a job application.

        Setting the status the application already has is a no-op.

        Raises:
            ValidationError: If the status is unknown.
            JobApplicationNotFoundError: If the job application doesn't exist.
            UnauthorizedError: If the actor is not the hiring company.
            InvalidTransitionError: If the change is not allowed.
        """
        try:
            target = JobApplicationStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown job application status: {status!r}") from e

        job_application = self.state_store.get_job_application(job_application_id)
        if not actor.is_company(job_application.company_id):
            raise UnauthorizedError("Only the hiring company can update this application")

        current = job_application.job_application_status
        if current == target:
            return job_application
        if target not in _JOB_APPLICATION_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot change job application from {current.value} to {target.value}"
            )

        sources = [s for s, allowed in _JOB_APPLICATION_TRANSITIONS.items() if target in allowed]
        updated = self.state_store.update_job_application_status(
            job_application_id, sources, target
        )
        if updated is None:
            # Another decision landed after the check above
            latest = self.state_store.get_job_application(job_application_id)
            if latest.job_application_status == target:
                return latest
            raise InvalidTransitionError(
                f"Cannot change job application from "
                f"{latest.job_application_status.value} to {target.value}"
            )
        job_application = updated

        job = self.state_store.get_job(job_application.job_id)
        notify_safely(
            self.notification_sink,
            job_application.student_id,
            NotificationType.JOB_APPLICATION_STATUS_CHANGED,
            {
                "job_application_id": job_application.id,
                "job_id": job.id,
                "job_title": job.title,
                "status": target.value,
            },
        )
        return job_application

    # --- Student operations ---

    def recommend_jobs(self, student_id: str, limit: int | None = None) -> list[RankedJob]:
        """Open jobs ranked for a student.

        Ordered by match score (highest first), then by deadline (soonest
        first). Closed and expired jobs are left out.

        Raises:
            StudentNotFoundError: If the student doesn't exist.
        """
        student = self.state_store.get_student(student_id)
        now = self.state_store.clock()
        ranked = [
            RankedJob(job=job, match=self.score(student, job))
            for job in self.state_store.list_jobs(status=JobStatus.ACTIVE, open_at=now)
            if self.is_open(job, at=now)
        ]
        ranked.sort(key=lambda r: (-r.match.score, r.job.deadline))
        if limit is not None:
            ranked = ranked[:limit]
        return ranked

    def apply_for_job(
        self,
        actor: Actor,
        job_id: str,
        cover_letter: str | None = None,
    ) -> JobApplication:
        """Apply the acting student to a job, freezing the current match score.

        Raises:
            UnauthorizedError: If the actor is not a student.
            StudentNotFoundError: If the student doesn't exist.
            JobNotFoundError: If the job doesn't exist.
            JobNotOpenError: If the job is closed or past its deadline.
            DuplicateApplicationError: If the student already applied.
        """
        if actor.role != ActorRole.STUDENT:
            raise UnauthorizedError("Only students can apply for jobs")

        with self.state_store.transaction() as session:
            student = self.state_store.get_student(actor.actor_id, session=session)
            job = self.state_store.get_job(job_id, session=session)
            if job.job_status != JobStatus.ACTIVE:
                raise JobNotOpenError(f"Job \"{job.title}\" is no longer accepting applications")
            if not self.is_open(job):
                raise JobNotOpenError(f"The application deadline for \"{job.title}\" has passed")

            result = self.score(student, job)
            try:
                job_application = self.state_store.create_job_application(
                    session,
                    student_id=student.id,
                    job=job,
                    match_score=round(result.score, 4),
                    cover_letter=cover_letter,
                )
            except JobApplicationExistsError as e:
                raise DuplicateApplicationError(
                    f"You have already applied for \"{job.title}\""
                ) from e

        logger.info(
            "Student %s applied for job %s (match %d%%)", student.id, job.id, result.percent
        )
        notify_safely(
            self.notification_sink,
            job.company_id,
            NotificationType.JOB_APPLICATION_RECEIVED,
            {
                "job_application_id": job_application.id,
                "job_id": job.id,
                "job_title": job.title,
                "student_id": student.id,
                "match_score": result.percent,
            },
        )
        return job_application

    def list_student_job_applications(self, actor: Actor) -> list[JobApplication]:
        """The acting student's job applications."""
        if actor.role != ActorRole.STUDENT:
            raise UnauthorizedError("Only students have job applications")
        return self.state_store.list_job_applications(student_id=actor.actor_id)

    # --- Internal helpers ---

    def _owned_job(self, actor: Actor, job_id: str) -> Job:
        job = self.state_store.get_job(job_id)
        if not actor.is_company(job.company_id):
            raise UnauthorizedError("Only the company that posted this job can manage it")
        return job

    def _rank_students(self, job: Job) -> list[RankedCandidate]:
        ranked = [
            RankedCandidate(student=student, match=self.score(student, job))
            for student in self.state_store.list_students()
        ]
        ranked.sort(key=lambda c: -c.match.score)
        return ranked


def match_breakdown(match: MatchResult) -> list[dict[str, Any]]:
    """Criteria of a match result in a JSON-friendly form."""
    return [
        {
            "name": c.name,
            "weight": c.weight,
            "score": round(c.score, 4),
            "detail": c.detail,
        }
        for c in match.criteria
    ]
