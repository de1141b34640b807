"""Pydantic models for REST API."""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from admission_engine.matching.service import match_breakdown

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Student models


class StudentCreate(BaseModel):
    """Request model for creating a student profile."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    grades: dict[str, str] = Field(default_factory=dict)
    skills: list[str] = Field(default_factory=list)
    qualifications: list[str] = Field(default_factory=list)
    experience_years: float | None = Field(default=None, ge=0)


class StudentUpdate(BaseModel):
    """Request model for updating a student profile (partial update)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    grades: dict[str, str] | None = None
    skills: list[str] | None = None
    qualifications: list[str] | None = None
    experience_years: float | None = Field(default=None, ge=0)


class StudentResponse(BaseModel):
    """Response model for a student profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str | None
    grades: dict[str, str]
    gpa: float | None
    skills: list[str]
    qualifications: list[str]
    experience_years: float | None
    created_at: datetime
    updated_at: datetime


def student_to_response(student: Any) -> StudentResponse:
    """Convert a Student model to StudentResponse."""
    return StudentResponse.model_validate(student)


# Course models


class RequirementModel(BaseModel):
    """A subject requirement of a course."""

    model_config = ConfigDict(from_attributes=True)

    subject: str = Field(..., min_length=1, max_length=255)
    minimum_grade: str = Field(..., min_length=1, max_length=5)
    is_mandatory: bool = True


class CourseCreate(BaseModel):
    """Request model for creating a course."""

    name: str = Field(..., min_length=1, max_length=255)
    seats: int = Field(..., ge=1)
    requirements: list[RequirementModel] = Field(default_factory=list)
    faculty: str | None = Field(default=None, max_length=255)
    description: str = ""


class CourseUpdate(BaseModel):
    """Request model for updating a course (partial update)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    seats: int | None = Field(default=None, ge=1)
    requirements: list[RequirementModel] | None = None
    faculty: str | None = Field(default=None, max_length=255)
    description: str | None = None


class CourseResponse(BaseModel):
    """Response model for a course."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    institution_id: str
    name: str
    faculty: str | None
    description: str
    seats: int
    available_seats: int
    status: str
    requirements: list[RequirementModel]
    created_at: datetime
    updated_at: datetime


def course_to_response(course: Any) -> CourseResponse:
    """Convert a Course model to CourseResponse."""
    return CourseResponse.model_validate(course)


# Application models


class ApplicationCreate(BaseModel):
    """Request model for submitting a course application."""

    course_id: str = Field(..., min_length=1)
    notes: str | None = None


class ApplicationResponse(BaseModel):
    """Response model for a course application."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    course_id: str
    institution_id: str
    course_name: str
    status: str
    is_qualified: bool
    qualification_score: float
    qualification_details: list[dict[str, Any]]
    waitlist_position: int | None
    notes: str | None
    applied_at: datetime
    decided_at: datetime | None
    updated_at: datetime


def application_to_response(application: Any) -> ApplicationResponse:
    """Convert an Application model to ApplicationResponse."""
    return ApplicationResponse.model_validate(application)


class TransitionRequest(BaseModel):
    """Request model for changing an application's status."""

    status: str = Field(..., min_length=1)
    reason: str | None = None


class TransitionResponse(BaseModel):
    """Response model for a status change."""

    application: ApplicationResponse
    previous_status: str
    changed: bool
    cascaded: list[ApplicationResponse] = Field(default_factory=list)


def transition_to_response(result: Any) -> TransitionResponse:
    """Convert a TransitionResult to TransitionResponse."""
    return TransitionResponse(
        application=application_to_response(result.application),
        previous_status=result.previous_status.value,
        changed=result.changed,
        cascaded=[application_to_response(a) for a in result.cascaded],
    )


class TransitionRecordResponse(BaseModel):
    """Response model for one audit trail entry."""

    model_config = ConfigDict(from_attributes=True)

    from_status: str | None
    to_status: str
    actor_id: str
    actor_role: str
    reason: str | None
    created_at: datetime


class CourseStatsResponse(BaseModel):
    """Response model for per-course application counts."""

    model_config = ConfigDict(from_attributes=True)

    course_id: str
    course_name: str
    seats: int
    available_seats: int
    applications: int
    qualified: int
    admitted: int
    waitlisted: int


class InstitutionStatsResponse(BaseModel):
    """Response model for institution statistics."""

    model_config = ConfigDict(from_attributes=True)

    institution_id: str
    total_applications: int
    by_status: dict[str, int]
    qualified: int
    unqualified: int
    total_courses: int
    total_seats: int
    available_seats: int
    courses: list[CourseStatsResponse]


# Job models


class JobCreate(BaseModel):
    """Request model for posting a job."""

    title: str = Field(..., min_length=1, max_length=255)
    deadline: datetime
    requirements: list[str] = Field(default_factory=list)
    qualifications: list[str] = Field(default_factory=list)
    experience: str | None = Field(default=None, max_length=100)
    description: str = ""
    location: str | None = Field(default=None, max_length=255)
    job_type: str | None = Field(default=None, max_length=50)


class JobUpdate(BaseModel):
    """Request model for editing a job (partial update).

    Sending ``deadline`` is an error: a job keeps the deadline it was posted with.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    requirements: list[str] | None = None
    qualifications: list[str] | None = None
    experience: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=255)
    job_type: str | None = Field(default=None, max_length=50)
    deadline: datetime | None = None


class JobResponse(BaseModel):
    """Response model for a job posting."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    title: str
    description: str
    requirements: list[str]
    qualifications: list[str]
    experience: str | None
    location: str | None
    job_type: str | None
    deadline: datetime
    status: str
    posted_at: datetime


def job_to_response(job: Any) -> JobResponse:
    """Convert a Job model to JobResponse."""
    return JobResponse.model_validate(job)


class JobStatsResponse(BaseModel):
    """Response model for per-job applicant counts."""

    model_config = ConfigDict(from_attributes=True)

    job_id: str
    job_title: str
    status: str
    applicants: int
    qualified_applicants: int
    by_status: dict[str, int]


class CompanyStatsResponse(BaseModel):
    """Response model for company job statistics."""

    model_config = ConfigDict(from_attributes=True)

    company_id: str
    total_jobs: int
    active_jobs: int
    closed_jobs: int
    total_applicants: int
    jobs: list[JobStatsResponse]


class MatchResponse(BaseModel):
    """Response model for a match score with its breakdown."""

    score: float
    percent: int
    is_qualified: bool
    is_good_match: bool
    criteria: list[dict[str, Any]]


def match_to_response(match: Any) -> MatchResponse:
    """Convert a MatchResult to MatchResponse."""
    return MatchResponse(
        score=round(match.score, 4),
        percent=match.percent,
        is_qualified=match.is_qualified,
        is_good_match=match.is_good_match,
        criteria=match_breakdown(match),
    )


class RankedJobResponse(BaseModel):
    """Response model for a recommended job."""

    job: JobResponse
    match: MatchResponse


class CandidateResponse(BaseModel):
    """Response model for a qualified candidate."""

    student: StudentResponse
    match: MatchResponse


class JobApplicationCreate(BaseModel):
    """Request model for applying to a job."""

    cover_letter: str | None = None


class JobApplicationStatusUpdate(BaseModel):
    """Request model for a company decision on a job application."""

    status: str = Field(..., min_length=1)


class JobApplicationResponse(BaseModel):
    """Response model for a job application."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    job_id: str
    company_id: str
    status: str
    match_score: float
    cover_letter: str | None
    applied_at: datetime


def job_application_to_response(job_application: Any) -> JobApplicationResponse:
    """Convert a JobApplication model to JobApplicationResponse."""
    return JobApplicationResponse.model_validate(job_application)


# Notification models


class NotificationResponse(BaseModel):
    """Response model for a notification."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    event_type: str
    title: str
    message: str
    payload: dict[str, Any]
    read: bool
    created_at: datetime
    read_at: datetime | None


def notification_to_response(notification: Any) -> NotificationResponse:
    """Convert a Notification model to NotificationResponse."""
    return NotificationResponse.model_validate(notification)


class UnreadCountResponse(BaseModel):
    """Response model for the unread notification count."""

    unread: int


class MarkedReadResponse(BaseModel):
    """Response model for mark-all-read."""

    updated: int
