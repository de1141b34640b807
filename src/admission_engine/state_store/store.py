"""StateStore - Main API for State Store operations."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from admission_engine.clock import Clock, as_utc, utc_now
from admission_engine.exceptions import ValidationError
from admission_engine.grading import SubjectRequirement, calculate_gpa
from admission_engine.state_store.database import Database
from admission_engine.state_store.exceptions import (
    ApplicationExistsError,
    ApplicationNotFoundError,
    CourseHasApplicationsError,
    CourseNotFoundError,
    JobApplicationExistsError,
    JobApplicationNotFoundError,
    JobNotFoundError,
    NotificationNotFoundError,
    StoreUnavailableError,
    StudentExistsError,
    StudentNotFoundError,
)
from admission_engine.state_store.models import (
    Application,
    ApplicationStatus,
    ApplicationTransition,
    CompanyStats,
    Course,
    CourseRequirement,
    CourseStats,
    CourseStatus,
    InstitutionStats,
    Job,
    JobApplication,
    JobApplicationStatus,
    JobStats,
    JobStatus,
    Notification,
    Student,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from admission_engine.config import StoreSettings

logger = logging.getLogger(__name__)

_EDITABLE_JOB_FIELDS = frozenset(
    {"title", "description", "requirements", "qualifications", "experience", "location", "job_type"}
)


def db_time(value: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in SQLite."""
    return as_utc(value).replace(tzinfo=None)


def _status_values(statuses: ApplicationStatus | Iterable[ApplicationStatus]) -> list[str]:
    if isinstance(statuses, ApplicationStatus):
        return [statuses.value]
    return [ApplicationStatus(s).value for s in statuses]


def _validate_grades(grades: Any) -> dict[str, str]:
    if not isinstance(grades, Mapping):
        raise ValidationError("Grades must be a mapping of subject to grade")
    cleaned: dict[str, str] = {}
    for subject, grade in grades.items():
        if not isinstance(subject, str) or not subject.strip():
            raise ValidationError("Grade subjects must be non-empty strings")
        if not isinstance(grade, str) or not grade.strip():
            raise ValidationError(f"Grade for '{subject}' must be a non-empty string")
        cleaned[subject.strip()] = grade.strip().upper()
    return cleaned


def _validate_strings(values: Any, field_name: str) -> list[str]:
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise ValidationError(f"{field_name} must be a list of strings")
    result = []
    for value in values:
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a list of strings")
        if value.strip():
            result.append(value.strip())
    return result


def _validate_experience(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError("experience_years must be a number")
    if value < 0:
        raise ValidationError("experience_years cannot be negative")
    return float(value)


def _build_requirements(raw: Iterable[Any]) -> list[CourseRequirement]:
    parsed = [SubjectRequirement.parse(item) for item in raw]
    subjects = [p.subject.strip().casefold() for p in parsed]
    if len(subjects) != len(set(subjects)):
        raise ValidationError("Each subject may appear only once in course requirements")
    return [
        CourseRequirement(
            subject=p.subject.strip(),
            minimum_grade=p.minimum_grade.strip().upper(),
            is_mandatory=p.is_mandatory,
            position=index,
        )
        for index, p in enumerate(parsed)
    ]


class StateStore:
    """Main API for State Store operations.

    Provides CRUD operations for students, courses, jobs, applications and
    notifications. Methods that take a ``session`` join the caller's
    transaction (see ``transaction()``); without one they run in their own.
    """

    def __init__(
        self,
        db_path: str = "admission_engine.db",
        busy_timeout: float = 5.0,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize State Store with SQLite database.

        Creates database and tables if they don't exist.

        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds a call waits on a locked database before
                failing with StoreUnavailableError
            clock: Time source for timestamps
        """
        self._db = Database(db_path, busy_timeout=busy_timeout)
        self.clock = clock
        try:
            self._db.create_tables()
        except OperationalError as e:
            raise StoreUnavailableError(f"Could not initialize database: {e}") from e

    @classmethod
    def from_settings(cls, settings: StoreSettings, clock: Clock = utc_now) -> StateStore:
        """Create a store from StoreSettings."""
        return cls(settings.db_path, busy_timeout=settings.busy_timeout_seconds, clock=clock)

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    def now(self) -> datetime:
        """Current time in the stored (naive UTC) form."""
        return db_time(self.clock())

    # --- Transactions ---

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run a block in one database transaction.

        Commits when the block exits normally, rolls back when it raises.

        Raises:
            StoreUnavailableError: If the database is locked past the busy
                timeout or otherwise unreachable.
        """
        session = self._db.get_session()
        try:
            with session.begin():
                yield session
        except OperationalError as e:
            logger.warning("Store transaction failed: %s", e)
            raise StoreUnavailableError(f"Store unavailable: {e}") from e
        finally:
            session.close()

    @contextmanager
    def session_scope(self, session: Session | None) -> Iterator[Session]:
        """Join the given session, or open a transaction when there is none."""
        if session is not None:
            yield session
        else:
            with self.transaction() as own:
                yield own

    # --- Student Operations ---

    def create_student(
        self,
        name: str,
        id: str | None = None,
        email: str | None = None,
        grades: Mapping[str, str] | None = None,
        skills: Iterable[str] | None = None,
        qualifications: Iterable[str] | None = None,
        experience_years: float | None = None,
    ) -> Student:
        """Create a student profile. GPA is derived from the grades.

        Raises:
            ValidationError: If any field is malformed
            StudentExistsError: If the ID or e-mail is already used
        """
        if not name or not name.strip():
            raise ValidationError("Student name is required")
        cleaned_grades = _validate_grades(grades or {})
        student = Student(
            id=id,
            name=name.strip(),
            email=email,
            grades=cleaned_grades,
            gpa=calculate_gpa(cleaned_grades),
            skills=_validate_strings(skills or [], "skills"),
            qualifications=_validate_strings(qualifications or [], "qualifications"),
            experience_years=_validate_experience(experience_years),
        )
        try:
            with self.transaction() as session:
                session.add(student)
                session.flush()
                session.refresh(student)
        except IntegrityError as e:
            raise StudentExistsError(f"Student '{student.id}' or e-mail already exists") from e
        return student

    def get_student(self, student_id: str, session: Session | None = None) -> Student:
        """Get student by ID.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        with self.session_scope(session) as s:
            student = s.get(Student, student_id)
            if student is None:
                raise StudentNotFoundError(f"Student with id '{student_id}' not found")
            return student

    def list_students(self) -> list[Student]:
        """List all students, ordered by name."""
        with self.transaction() as session:
            stmt = select(Student).order_by(Student.name)
            return list(session.execute(stmt).scalars().all())

    def update_student(
        self,
        student_id: str,
        name: str | None = None,
        email: str | None = None,
        grades: Mapping[str, str] | None = None,
        skills: Iterable[str] | None = None,
        qualifications: Iterable[str] | None = None,
        experience_years: float | None = None,
    ) -> Student:
        """Update student fields. Only provided fields are updated.

        Providing grades replaces the whole grade map and recomputes the GPA.
        Existing applications keep the verdict computed when they were submitted.

        Raises:
            StudentNotFoundError: If student doesn't exist
            ValidationError: If any field is malformed
        """
        with self.transaction() as session:
            student = self.get_student(student_id, session=session)

            if name is not None:
                if not name.strip():
                    raise ValidationError("Student name cannot be empty")
                student.name = name.strip()
            if email is not None:
                student.email = email
            if grades is not None:
                cleaned = _validate_grades(grades)
                student.grades = cleaned
                student.gpa = calculate_gpa(cleaned)
            if skills is not None:
                student.skills = _validate_strings(skills, "skills")
            if qualifications is not None:
                student.qualifications = _validate_strings(qualifications, "qualifications")
            if experience_years is not None:
                student.experience_years = _validate_experience(experience_years)

            session.flush()
            session.refresh(student)
            return student

    # --- Course Operations ---

    def create_course(
        self,
        institution_id: str,
        name: str,
        seats: int,
        requirements: Iterable[Any] | None = None,
        faculty: str | None = None,
        description: str = "",
    ) -> Course:
        """Create a new course with all seats available.

        Args:
            institution_id: Owning institution
            name: Course name
            seats: Capacity, at least 1
            requirements: Subject requirements, in display order
            faculty: Faculty the course belongs to (optional)
            description: Free-text description

        Returns:
            Created Course object with generated ID

        Raises:
            ValidationError: If seats or requirements are invalid
        """
        if not name or not name.strip():
            raise ValidationError("Course name is required")
        if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
            raise ValidationError("Course seats must be a positive integer")

        course = Course(
            institution_id=institution_id,
            name=name.strip(),
            seats=seats,
            faculty=faculty,
            description=description,
        )
        course.requirements = _build_requirements(requirements or [])

        with self.transaction() as session:
            session.add(course)
            session.flush()
            session.refresh(course)
            return course

    def get_course(self, course_id: str, session: Session | None = None) -> Course:
        """Get course by ID.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        with self.session_scope(session) as s:
            course = s.get(Course, course_id, populate_existing=True)
            if course is None:
                raise CourseNotFoundError(f"Course with id '{course_id}' not found")
            return course

    def list_courses(
        self,
        institution_id: str | None = None,
        status: CourseStatus | None = None,
        faculty: str | None = None,
    ) -> list[Course]:
        """List courses with optional filters, ordered by name."""
        with self.transaction() as session:
            stmt = select(Course)
            if institution_id is not None:
                stmt = stmt.where(Course.institution_id == institution_id)
            if status is not None:
                stmt = stmt.where(Course.status == status.value)
            if faculty is not None:
                stmt = stmt.where(Course.faculty == faculty)
            stmt = stmt.order_by(Course.name)
            return list(session.execute(stmt).scalars().all())

    def update_course(
        self,
        course_id: str,
        name: str | None = None,
        seats: int | None = None,
        requirements: Iterable[Any] | None = None,
        faculty: str | None = None,
        description: str | None = None,
    ) -> Course:
        """Update course fields. Only provided fields are updated.

        Changing ``seats`` shifts ``available_seats`` by the same amount. The
        new capacity may not be lower than the seats already taken.
        Requirement changes apply to future submissions only.

        Raises:
            CourseNotFoundError: If course doesn't exist
            ValidationError: If a value is invalid
        """
        with self.transaction() as session:
            course = self.get_course(course_id, session=session)

            if seats is not None:
                if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
                    raise ValidationError("Course seats must be a positive integer")
                new_available = Course.available_seats + (seats - Course.seats)
                result = session.execute(
                    update(Course)
                    .where(
                        Course.id == course_id,
                        Course.seats - Course.available_seats <= seats,
                    )
                    .values(
                        seats=seats,
                        available_seats=new_available,
                        status=case(
                            (new_available > 0, CourseStatus.ACTIVE.value),
                            else_=CourseStatus.FULL.value,
                        ),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ValidationError(
                        f"Cannot reduce seats to {seats}: "
                        f"{course.taken_seats} seats are already taken"
                    )
                course = self.get_course(course_id, session=session)

            if name is not None:
                if not name.strip():
                    raise ValidationError("Course name cannot be empty")
                course.name = name.strip()
            if faculty is not None:
                course.faculty = faculty
            if description is not None:
                course.description = description
            if requirements is not None:
                course.requirements = _build_requirements(requirements)

            session.flush()
            session.refresh(course)
            return course

    def delete_course(self, course_id: str) -> None:
        """Delete a course. Fails if any application references it.

        Raises:
            CourseNotFoundError: If course doesn't exist
            CourseHasApplicationsError: If applications reference the course
        """
        with self.transaction() as session:
            course = self.get_course(course_id, session=session)

            stmt = select(func.count(Application.id)).where(Application.course_id == course_id)
            if session.execute(stmt).scalar_one() > 0:
                raise CourseHasApplicationsError(
                    f"Course '{course_id}' has applications and cannot be deleted"
                )

            session.delete(course)

    def take_seat(self, session: Session, course_id: str) -> bool:
        """Decrement available seats in one conditional UPDATE.

        Returns:
            True if a seat was taken, False if none was available (or the
            course does not exist)
        """
        result = session.execute(
            update(Course)
            .where(Course.id == course_id, Course.available_seats > 0)
            .values(
                available_seats=Course.available_seats - 1,
                status=case(
                    (Course.available_seats - 1 > 0, CourseStatus.ACTIVE.value),
                    else_=CourseStatus.FULL.value,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def return_seat(self, session: Session, course_id: str) -> bool:
        """Increment available seats in one conditional UPDATE.

        Returns:
            True if a seat was returned, False if the course was already at
            full capacity (or does not exist)
        """
        result = session.execute(
            update(Course)
            .where(Course.id == course_id, Course.available_seats < Course.seats)
            .values(
                available_seats=Course.available_seats + 1,
                status=CourseStatus.ACTIVE.value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def bump_waitlist_counter(self, session: Session, course_id: str) -> int:
        """Increment a course's waitlist counter and return the new value.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        result = session.execute(
            update(Course)
            .where(Course.id == course_id)
            .values(waitlist_counter=Course.waitlist_counter + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CourseNotFoundError(f"Course with id '{course_id}' not found")
        stmt = select(Course.waitlist_counter).where(Course.id == course_id)
        return session.execute(stmt).scalar_one()

    # --- Job Operations ---

    def create_job(
        self,
        company_id: str,
        title: str,
        deadline: datetime,
        requirements: Iterable[str] | None = None,
        qualifications: Iterable[str] | None = None,
        experience: str | None = None,
        description: str = "",
        location: str | None = None,
        job_type: str | None = None,
    ) -> Job:
        """Post a new job.

        Raises:
            ValidationError: If the title is empty, lists are malformed or the
                deadline is not in the future
        """
        if not title or not title.strip():
            raise ValidationError("Job title is required")
        posted_at = self.now()
        if db_time(deadline) <= posted_at:
            raise ValidationError("Job deadline must be in the future")

        job = Job(
            company_id=company_id,
            title=title.strip(),
            deadline=db_time(deadline),
            posted_at=posted_at,
            description=description,
            requirements=_validate_strings(requirements or [], "requirements"),
            qualifications=_validate_strings(qualifications or [], "qualifications"),
            experience=experience,
            location=location,
            job_type=job_type,
        )
        with self.transaction() as session:
            session.add(job)
            session.flush()
            session.refresh(job)
            return job

    def get_job(self, job_id: str, session: Session | None = None) -> Job:
        """Get job by ID.

        Raises:
            JobNotFoundError: If job doesn't exist
        """
        with self.session_scope(session) as s:
            job = s.get(Job, job_id)
            if job is None:
                raise JobNotFoundError(f"Job with id '{job_id}' not found")
            return job

    def list_jobs(
        self,
        company_id: str | None = None,
        status: JobStatus | None = None,
        open_at: datetime | None = None,
    ) -> list[Job]:
        """List jobs with optional filters, ordered by deadline.

        Args:
            company_id: Filter by company (optional)
            status: Filter by status (optional)
            open_at: Only jobs whose deadline is after this time (optional)
        """
        with self.transaction() as session:
            stmt = select(Job)
            if company_id is not None:
                stmt = stmt.where(Job.company_id == company_id)
            if status is not None:
                stmt = stmt.where(Job.status == status.value)
            if open_at is not None:
                stmt = stmt.where(Job.deadline > db_time(open_at))
            stmt = stmt.order_by(Job.deadline)
            return list(session.execute(stmt).scalars().all())

    def close_job(self, job_id: str) -> Job:
        """Close a job posting.

        Raises:
            JobNotFoundError: If job doesn't exist
        """
        with self.transaction() as session:
            job = self.get_job(job_id, session=session)
            job.status = JobStatus.CLOSED.value
            session.flush()
            session.refresh(job)
            return job

    def update_job(self, job_id: str, **changes: Any) -> Job:
        """Update the editable fields of a job posting.

        Editable fields are title, description, requirements, qualifications,
        experience, location and job_type. The deadline is fixed once posted.

        Raises:
            JobNotFoundError: If job doesn't exist
            ValidationError: If the deadline or an unknown field is given, or
                a value is invalid
        """
        if "deadline" in changes:
            raise ValidationError("Job deadline cannot be changed after posting")
        unknown = sorted(set(changes) - _EDITABLE_JOB_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown job fields: {', '.join(unknown)}")

        with self.transaction() as session:
            job = self.get_job(job_id, session=session)
            if "title" in changes:
                title = changes["title"]
                if not isinstance(title, str) or not title.strip():
                    raise ValidationError("Job title is required")
                job.title = title.strip()
            if "description" in changes:
                job.description = changes["description"] or ""
            for name in ("requirements", "qualifications"):
                if name in changes:
                    setattr(job, name, _validate_strings(changes[name] or [], name))
            for name in ("experience", "location", "job_type"):
                if name in changes:
                    setattr(job, name, changes[name])
            session.flush()
            session.refresh(job)
            return job

    def get_company_stats(self, company_id: str, qualified_threshold: float) -> CompanyStats:
        """Aggregate job and applicant statistics for a company.

        An applicant counts as qualified when the match score frozen on their
        job application is at least ``qualified_threshold``.
        """
        with self.transaction() as session:
            jobs = list(
                session.execute(
                    select(Job)
                    .where(Job.company_id == company_id)
                    .order_by(Job.posted_at, Job.title)
                )
                .scalars()
                .all()
            )
            job_applications = list(
                session.execute(
                    select(JobApplication).where(JobApplication.company_id == company_id)
                )
                .scalars()
                .all()
            )

        job_stats = []
        for job in jobs:
            received = [a for a in job_applications if a.job_id == job.id]
            by_status = {status.value: 0 for status in JobApplicationStatus}
            for job_application in received:
                by_status[job_application.status] += 1
            job_stats.append(
                JobStats(
                    job_id=job.id,
                    job_title=job.title,
                    status=job.status,
                    applicants=len(received),
                    qualified_applicants=sum(
                        1 for a in received if a.match_score >= qualified_threshold
                    ),
                    by_status=by_status,
                )
            )

        return CompanyStats(
            company_id=company_id,
            total_jobs=len(jobs),
            active_jobs=sum(1 for j in jobs if j.status == JobStatus.ACTIVE.value),
            closed_jobs=sum(1 for j in jobs if j.status == JobStatus.CLOSED.value),
            total_applicants=len(job_applications),
            jobs=job_stats,
        )

    # --- Application Operations ---

    def create_application(
        self,
        session: Session,
        student_id: str,
        course: Course,
        is_qualified: bool,
        qualification_score: float,
        qualification_details: list[dict[str, Any]],
        notes: str | None = None,
    ) -> Application:
        """Insert a pending application inside the caller's transaction.

        Raises:
            ApplicationExistsError: If the student already applied to the course
        """
        # BEGIN IMMEDIATE serialises writers, so max + 1 is never handed out twice
        next_seq = session.execute(
            select(func.coalesce(func.max(Application.created_seq), 0) + 1)
        ).scalar_one()
        application = Application(
            student_id=student_id,
            course_id=course.id,
            institution_id=course.institution_id,
            course_name=course.name,
            is_qualified=is_qualified,
            qualification_score=qualification_score,
            qualification_details=qualification_details,
            applied_at=self.now(),
            created_seq=next_seq,
            notes=notes,
        )
        try:
            with session.begin_nested():
                session.add(application)
                session.flush()
        except IntegrityError as e:
            raise ApplicationExistsError(
                f"Application for student '{student_id}' and course '{course.id}' already exists"
            ) from e
        session.refresh(application)
        return application

    def get_application(self, application_id: str, session: Session | None = None) -> Application:
        """Get application by ID.

        Raises:
            ApplicationNotFoundError: If application doesn't exist
        """
        with self.session_scope(session) as s:
            application = s.get(Application, application_id, populate_existing=True)
            if application is None:
                raise ApplicationNotFoundError(
                    f"Application with id '{application_id}' not found"
                )
            return application

    def find_application(
        self, student_id: str, course_id: str, session: Session | None = None
    ) -> Application | None:
        """Get the application for a student and course, if any."""
        with self.session_scope(session) as s:
            stmt = select(Application).where(
                Application.student_id == student_id,
                Application.course_id == course_id,
            )
            return s.execute(stmt).scalar_one_or_none()

    def list_applications(
        self,
        student_id: str | None = None,
        institution_id: str | None = None,
        course_id: str | None = None,
        status: ApplicationStatus | Iterable[ApplicationStatus] | None = None,
        session: Session | None = None,
    ) -> list[Application]:
        """List applications with optional filters, oldest first."""
        with self.session_scope(session) as s:
            stmt = select(Application)
            if student_id is not None:
                stmt = stmt.where(Application.student_id == student_id)
            if institution_id is not None:
                stmt = stmt.where(Application.institution_id == institution_id)
            if course_id is not None:
                stmt = stmt.where(Application.course_id == course_id)
            if status is not None:
                stmt = stmt.where(Application.status.in_(_status_values(status)))
            stmt = stmt.order_by(Application.created_seq)
            return list(s.execute(stmt).scalars().all())

    def count_applications(
        self,
        student_id: str,
        institution_id: str,
        status: ApplicationStatus | Iterable[ApplicationStatus],
        session: Session | None = None,
    ) -> int:
        """Count a student's applications to an institution in the given statuses."""
        with self.session_scope(session) as s:
            stmt = select(func.count(Application.id)).where(
                Application.student_id == student_id,
                Application.institution_id == institution_id,
                Application.status.in_(_status_values(status)),
            )
            return s.execute(stmt).scalar_one()

    def set_application_status(
        self,
        session: Session,
        application_id: str,
        expected: ApplicationStatus | Iterable[ApplicationStatus],
        new_status: ApplicationStatus,
        **values: Any,
    ) -> bool:
        """Compare-and-set an application's status inside the caller's transaction.

        The row is only changed while its status is one of ``expected``.

        Args:
            session: The caller's session
            application_id: The application's unique ID
            expected: Status or statuses the application must currently have
            new_status: Status to set
            **values: Extra columns to set in the same statement

        Returns:
            True if the row was updated, False if its status did not match
        """
        result = session.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.status.in_(_status_values(expected)),
            )
            .values(status=new_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def record_transition(
        self,
        session: Session,
        application_id: str,
        from_status: ApplicationStatus | None,
        to_status: ApplicationStatus,
        actor_id: str,
        actor_role: str,
        reason: str | None = None,
    ) -> ApplicationTransition:
        """Add an audit record inside the caller's transaction."""
        transition = ApplicationTransition(
            application_id=application_id,
            from_status=from_status.value if from_status is not None else None,
            to_status=to_status.value,
            actor_id=actor_id,
            actor_role=actor_role,
            reason=reason,
            created_at=self.now(),
        )
        session.add(transition)
        session.flush()
        return transition

    def list_transitions(self, application_id: str) -> list[ApplicationTransition]:
        """Audit trail for an application, oldest first.

        Raises:
            ApplicationNotFoundError: If application doesn't exist
        """
        with self.transaction() as session:
            self.get_application(application_id, session=session)
            stmt = (
                select(ApplicationTransition)
                .where(ApplicationTransition.application_id == application_id)
                .order_by(ApplicationTransition.id)
            )
            return list(session.execute(stmt).scalars().all())

    def get_institution_stats(self, institution_id: str) -> InstitutionStats:
        """Aggregate application statistics for an institution."""
        with self.transaction() as session:
            applications = self.list_applications(institution_id=institution_id, session=session)
            courses = list(
                session.execute(
                    select(Course)
                    .where(Course.institution_id == institution_id)
                    .order_by(Course.name)
                )
                .scalars()
                .all()
            )

        by_status = {status.value: 0 for status in ApplicationStatus}
        for application in applications:
            by_status[application.status] += 1

        course_stats = []
        for course in courses:
            course_apps = [a for a in applications if a.course_id == course.id]
            course_stats.append(
                CourseStats(
                    course_id=course.id,
                    course_name=course.name,
                    seats=course.seats,
                    available_seats=course.available_seats,
                    applications=len(course_apps),
                    qualified=sum(1 for a in course_apps if a.is_qualified),
                    admitted=sum(
                        1 for a in course_apps if a.status == ApplicationStatus.ADMITTED.value
                    ),
                    waitlisted=sum(
                        1 for a in course_apps if a.status == ApplicationStatus.WAITLISTED.value
                    ),
                )
            )

        qualified = sum(1 for a in applications if a.is_qualified)
        return InstitutionStats(
            institution_id=institution_id,
            total_applications=len(applications),
            by_status=by_status,
            qualified=qualified,
            unqualified=len(applications) - qualified,
            total_courses=len(courses),
            total_seats=sum(c.seats for c in courses),
            available_seats=sum(c.available_seats for c in courses),
            courses=course_stats,
        )

    # --- Job Application Operations ---

    def create_job_application(
        self,
        session: Session,
        student_id: str,
        job: Job,
        match_score: float,
        cover_letter: str | None = None,
    ) -> JobApplication:
        """Insert a job application inside the caller's transaction.

        Raises:
            JobApplicationExistsError: If the student already applied to the job
        """
        job_application = JobApplication(
            student_id=student_id,
            job_id=job.id,
            company_id=job.company_id,
            match_score=match_score,
            applied_at=self.now(),
            cover_letter=cover_letter,
        )
        try:
            with session.begin_nested():
                session.add(job_application)
                session.flush()
        except IntegrityError as e:
            raise JobApplicationExistsError(
                f"Student '{student_id}' already applied to job '{job.id}'"
            ) from e
        session.refresh(job_application)
        return job_application

    def get_job_application(
        self, job_application_id: str, session: Session | None = None
    ) -> JobApplication:
        """Get job application by ID.

        Raises:
            JobApplicationNotFoundError: If job application doesn't exist
        """
        with self.session_scope(session) as s:
            job_application = s.get(JobApplication, job_application_id, populate_existing=True)
            if job_application is None:
                raise JobApplicationNotFoundError(
                    f"Job application with id '{job_application_id}' not found"
                )
            return job_application

    def list_job_applications(
        self,
        job_id: str | None = None,
        student_id: str | None = None,
        company_id: str | None = None,
    ) -> list[JobApplication]:
        """List job applications, best match first."""
        with self.transaction() as session:
            stmt = select(JobApplication)
            if job_id is not None:
                stmt = stmt.where(JobApplication.job_id == job_id)
            if student_id is not None:
                stmt = stmt.where(JobApplication.student_id == student_id)
            if company_id is not None:
                stmt = stmt.where(JobApplication.company_id == company_id)
            stmt = stmt.order_by(JobApplication.match_score.desc(), JobApplication.applied_at)
            return list(session.execute(stmt).scalars().all())

    def update_job_application_status(
        self,
        job_application_id: str,
        expected: JobApplicationStatus | Iterable[JobApplicationStatus],
        status: JobApplicationStatus,
    ) -> JobApplication | None:
        """Compare-and-set a job application's status.

        The row is only changed while its status is one of ``expected``.

        Returns:
            The updated job application, or None if its status did not match

        Raises:
            JobApplicationNotFoundError: If job application doesn't exist
        """
        if isinstance(expected, JobApplicationStatus):
            expected = [expected]
        with self.transaction() as session:
            result = session.execute(
                update(JobApplication)
                .where(
                    JobApplication.id == job_application_id,
                    JobApplication.status.in_([s.value for s in expected]),
                )
                .values(status=status.value)
                .execution_options(synchronize_session=False)
            )
            job_application = self.get_job_application(job_application_id, session=session)
            if result.rowcount == 0:
                return None
            return job_application

    # --- Notification Operations ---

    def create_notification(
        self,
        user_id: str,
        event_type: str,
        title: str,
        message: str,
        payload: dict[str, Any] | None = None,
    ) -> Notification:
        """Store a notification for a user."""
        notification = Notification(
            user_id=user_id,
            event_type=event_type,
            title=title,
            message=message,
            payload=payload,
            created_at=self.now(),
        )
        with self.transaction() as session:
            session.add(notification)
            session.flush()
            session.refresh(notification)
            return notification

    def list_notifications(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 20,
    ) -> list[Notification]:
        """List a user's notifications, newest first."""
        with self.transaction() as session:
            stmt = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                stmt = stmt.where(Notification.read.is_(False))
            stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
            return list(session.execute(stmt).scalars().all())

    def mark_notification_read(self, notification_id: str, user_id: str) -> Notification:
        """Mark one of a user's notifications as read.

        Raises:
            NotificationNotFoundError: If the notification doesn't exist or
                belongs to another user
        """
        with self.transaction() as session:
            notification = session.get(Notification, notification_id)
            if notification is None or notification.user_id != user_id:
                raise NotificationNotFoundError(
                    f"Notification with id '{notification_id}' not found"
                )
            if not notification.read:
                notification.read = True
                notification.read_at = self.now()
            session.flush()
            return notification

    def mark_all_notifications_read(self, user_id: str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        with self.transaction() as session:
            result = session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
                .values(read=True, read_at=self.now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    def count_unread_notifications(self, user_id: str) -> int:
        """Number of unread notifications for a user."""
        with self.transaction() as session:
            stmt = select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
            return session.execute(stmt).scalar_one()
