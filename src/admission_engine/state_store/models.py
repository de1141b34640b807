"""SQLAlchemy models for State Store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - used at runtime for SQLAlchemy
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class ApplicationStatus(StrEnum):
    """Course application status enum."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    ADMITTED = "admitted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    ACCEPTED = "accepted"


# Statuses that count against the per-institution application limit.
OPEN_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {
        ApplicationStatus.PENDING,
        ApplicationStatus.UNDER_REVIEW,
        ApplicationStatus.ADMITTED,
        ApplicationStatus.WAITLISTED,
    }
)

# Statuses that hold a course seat.
SEAT_HOLDING_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {ApplicationStatus.ADMITTED, ApplicationStatus.ACCEPTED}
)

TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {ApplicationStatus.REJECTED, ApplicationStatus.ACCEPTED}
)


class CourseStatus(StrEnum):
    """Course status enum, derived from available seats."""

    ACTIVE = "active"
    FULL = "full"


class JobStatus(StrEnum):
    """Job posting status enum."""

    ACTIVE = "active"
    CLOSED = "closed"


class JobApplicationStatus(StrEnum):
    """Job application status enum."""

    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Student(Base):
    """Student profile - grades, skills and experience used for matching."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    grades: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    qualifications: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    experience_years: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        name: str,
        id: str | None = None,
        email: str | None = None,
        grades: dict[str, str] | None = None,
        gpa: float | None = None,
        skills: list[str] | None = None,
        qualifications: list[str] | None = None,
        experience_years: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.name = name
        self.email = email
        self.grades = dict(grades or {})
        self.gpa = gpa
        self.skills = list(skills or [])
        self.qualifications = list(qualifications or [])
        self.experience_years = experience_years

    def __repr__(self) -> str:
        return f"<Student(id={self.id!r}, name={self.name!r})>"


class Course(Base):
    """Course model - capacity and subject requirements."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    institution_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    faculty: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    waitlist_counter: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    requirements: Mapped[list[CourseRequirement]] = relationship(
        "CourseRequirement",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseRequirement.position",
        lazy="selectin",
    )

    def __init__(
        self,
        institution_id: str,
        name: str,
        seats: int,
        id: str | None = None,
        faculty: str | None = None,
        description: str = "",
        available_seats: int | None = None,
        waitlist_counter: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.institution_id = institution_id
        self.name = name
        self.faculty = faculty
        self.description = description
        self.seats = seats
        self.available_seats = available_seats if available_seats is not None else seats
        self.status = (
            CourseStatus.ACTIVE.value if self.available_seats > 0 else CourseStatus.FULL.value
        )
        self.waitlist_counter = waitlist_counter

    @property
    def course_status(self) -> CourseStatus:
        """Get status as CourseStatus enum."""
        return CourseStatus(self.status)

    @property
    def taken_seats(self) -> int:
        """Seats held by admitted or accepted applications."""
        return self.seats - self.available_seats

    def __repr__(self) -> str:
        return (
            f"<Course(id={self.id!r}, name={self.name!r}, "
            f"available_seats={self.available_seats}/{self.seats})>"
        )


class CourseRequirement(Base):
    """Minimum grade a course requires in one subject."""

    __tablename__ = "course_requirements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    minimum_grade: Mapped[str] = mapped_column(String(5), nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False)

    # Relationships
    course: Mapped[Course] = relationship("Course", back_populates="requirements")

    def __init__(
        self,
        subject: str,
        minimum_grade: str,
        position: int = 0,
        is_mandatory: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.subject = subject
        self.minimum_grade = minimum_grade
        self.position = position
        self.is_mandatory = is_mandatory

    def __repr__(self) -> str:
        return (
            f"<CourseRequirement(subject={self.subject!r}, "
            f"minimum_grade={self.minimum_grade!r}, is_mandatory={self.is_mandatory})>"
        )


class Job(Base):
    """Job posting model."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    requirements: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    qualifications: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    experience: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    job_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    posted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        company_id: str,
        title: str,
        deadline: datetime,
        posted_at: datetime,
        id: str | None = None,
        description: str = "",
        requirements: list[str] | None = None,
        qualifications: list[str] | None = None,
        experience: str | None = None,
        location: str | None = None,
        job_type: str | None = None,
        status: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.company_id = company_id
        self.title = title
        self.description = description
        self.requirements = list(requirements or [])
        self.qualifications = list(qualifications or [])
        self.experience = experience
        self.location = location
        self.job_type = job_type
        self.deadline = deadline
        self.posted_at = posted_at
        self.status = status if status is not None else JobStatus.ACTIVE.value

    @property
    def job_status(self) -> JobStatus:
        """Get status as JobStatus enum."""
        return JobStatus(self.status)

    def __repr__(self) -> str:
        return f"<Job(id={self.id!r}, title={self.title!r}, status={self.status!r})>"


class Application(Base):
    """Course application model.

    The qualification verdict is frozen at submission and never recomputed.
    ``created_seq`` numbers applications in insertion order across the store.
    """

    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_applications_student_course"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_seq: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    course_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courses.id"), nullable=False, index=True
    )
    institution_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    course_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    is_qualified: Mapped[bool] = mapped_column(Boolean, nullable=False)
    qualification_score: Mapped[float] = mapped_column(Float, nullable=False)
    qualification_details: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    waitlist_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        student_id: str,
        course_id: str,
        institution_id: str,
        course_name: str,
        is_qualified: bool,
        qualification_score: float,
        applied_at: datetime,
        created_seq: int,
        id: str | None = None,
        status: str | None = None,
        qualification_details: list[dict[str, Any]] | None = None,
        waitlist_position: int | None = None,
        notes: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.created_seq = created_seq
        self.student_id = student_id
        self.course_id = course_id
        self.institution_id = institution_id
        self.course_name = course_name
        self.status = status if status is not None else ApplicationStatus.PENDING.value
        self.is_qualified = is_qualified
        self.qualification_score = qualification_score
        self.qualification_details = list(qualification_details or [])
        self.waitlist_position = waitlist_position
        self.notes = notes
        self.applied_at = applied_at

    @property
    def application_status(self) -> ApplicationStatus:
        """Get status as ApplicationStatus enum."""
        return ApplicationStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<Application(id={self.id!r}, student_id={self.student_id!r}, "
            f"course_id={self.course_id!r}, status={self.status!r})>"
        )


class ApplicationTransition(Base):
    """Audit record of one application status change."""

    __tablename__ = "application_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("applications.id"), nullable=False, index=True
    )
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        application_id: str,
        to_status: str,
        actor_id: str,
        actor_role: str,
        created_at: datetime,
        from_status: str | None = None,
        reason: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.application_id = application_id
        self.from_status = from_status
        self.to_status = to_status
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.reason = reason
        self.created_at = created_at

    def __repr__(self) -> str:
        return (
            f"<ApplicationTransition(application_id={self.application_id!r}, "
            f"{self.from_status!r} -> {self.to_status!r})>"
        )


class JobApplication(Base):
    """Job application model. The match score is frozen at submission."""

    __tablename__ = "job_applications"
    __table_args__ = (
        UniqueConstraint("student_id", "job_id", name="uq_job_applications_student_job"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id"), nullable=False, index=True
    )
    company_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    match_score: Mapped[float] = mapped_column(Float, nullable=False)
    cover_letter: Mapped[str | None] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        student_id: str,
        job_id: str,
        company_id: str,
        match_score: float,
        applied_at: datetime,
        id: str | None = None,
        status: str | None = None,
        cover_letter: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.job_id = job_id
        self.company_id = company_id
        self.match_score = match_score
        self.applied_at = applied_at
        self.status = status if status is not None else JobApplicationStatus.PENDING.value
        self.cover_letter = cover_letter

    @property
    def job_application_status(self) -> JobApplicationStatus:
        """Get status as JobApplicationStatus enum."""
        return JobApplicationStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<JobApplication(id={self.id!r}, job_id={self.job_id!r}, "
            f"status={self.status!r})>"
        )


class Notification(Base):
    """Notification delivered to a user's inbox."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __init__(
        self,
        user_id: str,
        event_type: str,
        title: str,
        message: str,
        created_at: datetime,
        id: str | None = None,
        payload: dict[str, Any] | None = None,
        read: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.user_id = user_id
        self.event_type = event_type
        self.title = title
        self.message = message
        self.payload = dict(payload or {})
        self.read = read
        self.created_at = created_at

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id!r}, user_id={self.user_id!r}, "
            f"event_type={self.event_type!r})>"
        )


@dataclass
class CourseStats:
    """Application counts for one course."""

    course_id: str
    course_name: str
    seats: int
    available_seats: int
    applications: int
    qualified: int
    admitted: int
    waitlisted: int


@dataclass
class InstitutionStats:
    """Aggregated application statistics for one institution."""

    institution_id: str
    total_applications: int
    by_status: dict[str, int]
    qualified: int
    unqualified: int
    total_courses: int
    total_seats: int
    available_seats: int
    courses: list[CourseStats] = field(default_factory=list)


@dataclass
class JobStats:
    """Applicant counts for one job."""

    job_id: str
    job_title: str
    status: str
    applicants: int
    qualified_applicants: int
    by_status: dict[str, int]


@dataclass
class CompanyStats:
    """Job and applicant statistics for one company."""

    company_id: str
    total_jobs: int
    active_jobs: int
    closed_jobs: int
    total_applicants: int
    jobs: list[JobStats] = field(default_factory=list)
