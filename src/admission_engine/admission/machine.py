"""Admission State Machine - application lifecycle management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from admission_engine.admission.exceptions import (
    DuplicateApplicationError,
    InvalidTransitionError,
    UnauthorizedError,
    UnqualifiedAdmissionError,
)
from admission_engine.admission.limiter import ApplicationLimiter
from admission_engine.admission.models import (
    Actor,
    ActorRole,
    TransitionResult,
    can_transition,
)
from admission_engine.admission.seats import SeatManager
from admission_engine.admission.waitlist import WaitlistAllocator
from admission_engine.config import AdmissionSettings
from admission_engine.exceptions import ValidationError
from admission_engine.grading import evaluate_qualification
from admission_engine.notifications import NotificationType, notify_safely
from admission_engine.state_store import (
    ApplicationExistsError,
    ApplicationStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from admission_engine.notifications import NotificationSink
    from admission_engine.state_store import (
        Application,
        ApplicationTransition,
        InstitutionStats,
        StateStore,
    )

logger = logging.getLogger(__name__)

# (user_id, event_type, payload) collected inside a transaction and sent after commit
_Pending = list[tuple[str, NotificationType, dict[str, Any]]]


def _event_payload(application: Application, **extra: Any) -> dict[str, Any]:
    payload = {
        "application_id": application.id,
        "course_id": application.course_id,
        "course_name": application.course_name,
        "status": application.status,
    }
    payload.update(extra)
    return payload


class AdmissionStateMachine:
    """Drives course applications through their status lifecycle.

    The state machine:
    - Gates submissions through the Application Limiter
    - Freezes the qualification verdict at submission
    - Applies institution decisions (review, admit, waitlist, reject)
    - Reserves and releases seats as applications enter and leave admission
    - Handles offer acceptance, rejecting the student's other offers
    - Records every status change in the audit trail

    Each operation runs in one store transaction. Notifications are sent after
    the transaction commits; a failed notification never undoes a change.
    """

    def __init__(
        self,
        state_store: StateStore,
        notification_sink: NotificationSink | None = None,
        settings: AdmissionSettings | None = None,
        limiter: ApplicationLimiter | None = None,
        seat_manager: SeatManager | None = None,
        waitlist: WaitlistAllocator | None = None,
    ) -> None:
        """Initialize the state machine.

        Args:
            state_store: StateStore instance for persistence.
            notification_sink: Where notifications are delivered (optional).
            settings: Admission rules. Defaults to AdmissionSettings().
            limiter: Application limiter. Built from settings when omitted.
            seat_manager: Seat manager. Built from the store when omitted.
            waitlist: Waitlist allocator. Built from the store when omitted.
        """
        self.state_store = state_store
        self.notification_sink = notification_sink
        self.settings = settings or AdmissionSettings()
        self.limiter = limiter or ApplicationLimiter(
            state_store, self.settings.max_open_applications_per_institution
        )
        self.seat_manager = seat_manager or SeatManager(state_store)
        self.waitlist = waitlist or WaitlistAllocator(state_store)

    # --- Submission ---

    def submit_application(
        self,
        actor: Actor,
        course_id: str,
        student_id: str | None = None,
        notes: str | None = None,
    ) -> Application:
        """Create a pending application for a student.

        The qualification verdict is computed here and never recomputed, so an
        unqualified student may still apply. It only blocks admission.

        Args:
            actor: The submitting student.
            course_id: The course applied to.
            student_id: Defaults to the actor's ID.
            notes: Free-text notes from the student (optional).

        Returns:
            The created Application in status pending.

        Raises:
            UnauthorizedError: If the actor is not the student.
            StudentNotFoundError: If the student doesn't exist.
            CourseNotFoundError: If the course doesn't exist.
            DuplicateApplicationError: If the student already applied to the course.
            LimitExceededError: If the student is at the institution's limit.
        """
        student_id = student_id or actor.actor_id
        if not actor.is_student(student_id):
            raise UnauthorizedError("Only the student can submit their own application")

        with self.state_store.transaction() as session:
            student = self.state_store.get_student(student_id, session=session)
            course = self.state_store.get_course(course_id, session=session)

            self.limiter.check(student_id, course, session=session)

            verdict = evaluate_qualification(student.grades, course.requirements)
            try:
                application = self.state_store.create_application(
                    session,
                    student_id=student_id,
                    course=course,
                    is_qualified=verdict.is_qualified,
                    qualification_score=verdict.score,
                    qualification_details=verdict.details_as_dicts(),
                    notes=notes,
                )
            except ApplicationExistsError as e:
                raise DuplicateApplicationError(
                    f"You have already applied to {course.name}"
                ) from e

            self.state_store.record_transition(
                session,
                application.id,
                from_status=None,
                to_status=ApplicationStatus.PENDING,
                actor_id=actor.actor_id,
                actor_role=actor.role.value,
            )

        logger.info(
            "Application %s submitted by student %s for course %s (qualified=%s, score=%.2f)",
            application.id,
            student_id,
            course_id,
            verdict.is_qualified,
            verdict.score,
        )

        self._deliver(
            [
                (
                    student_id,
                    NotificationType.APPLICATION_SUBMITTED,
                    _event_payload(application),
                ),
                (
                    application.institution_id,
                    NotificationType.APPLICATION_RECEIVED,
                    _event_payload(application, student_id=student_id),
                ),
            ]
        )
        return application

    # --- Institution decisions ---

    def transition(
        self,
        actor: Actor,
        application_id: str,
        to_status: ApplicationStatus | str,
        reason: str | None = None,
    ) -> TransitionResult:
        """Move an application to a new status.

        Requesting the status the application already has is a no-op, so a
        retried request does not repeat side effects.

        Args:
            actor: The acting institution (or, for acceptance, the student).
            application_id: The application's unique ID.
            to_status: Target status.
            reason: Free-text reason, stored in the audit trail and the
                application's notes (optional).

        Returns:
            TransitionResult describing what happened.

        Raises:
            ValidationError: If the target status is unknown.
            ApplicationNotFoundError: If the application doesn't exist.
            UnauthorizedError: If the actor does not own the application.
            InvalidTransitionError: If the transition is not allowed.
            UnqualifiedAdmissionError: If admitting an unqualified application.
            NoSeatsAvailableError: If admitting into a full course.
        """
        target = self._parse_status(to_status)
        if target == ApplicationStatus.ACCEPTED:
            return self.accept_offer(actor, application_id)

        pending: _Pending = []
        with self.state_store.transaction() as session:
            application = self.state_store.get_application(application_id, session=session)
            self._authorize_institution(actor, application)

            current = application.application_status
            if current == target:
                logger.info(
                    "Application %s already %s, nothing to do", application_id, target.value
                )
                return TransitionResult(application, previous_status=current, changed=False)
            if not can_transition(current, target):
                raise InvalidTransitionError(
                    f"Cannot change application from {current.value} to {target.value}"
                )

            values: dict[str, Any] = {}
            if reason:
                values["notes"] = reason
            if current == ApplicationStatus.WAITLISTED:
                values["waitlist_position"] = None

            match target:
                case ApplicationStatus.ADMITTED:
                    if not application.is_qualified:
                        raise UnqualifiedAdmissionError(
                            f"Student does not meet the mandatory requirements "
                            f"for {application.course_name}"
                        )
                    self.seat_manager.reserve(application.course_id, session=session)
                    values["decided_at"] = self.state_store.now()
                case ApplicationStatus.WAITLISTED:
                    values["waitlist_position"] = self.waitlist.next_position(
                        application.course_id, session=session
                    )
                case ApplicationStatus.REJECTED:
                    if current == ApplicationStatus.ADMITTED:
                        self.seat_manager.release(application.course_id, session=session)
                    values["decided_at"] = self.state_store.now()

            application = self._apply(
                session, application, current, target, actor, reason, values
            )

            if target == ApplicationStatus.ADMITTED:
                event = NotificationType.ADMISSION_OFFER
            else:
                event = NotificationType.APPLICATION_STATUS_CHANGED
            pending.append(
                (
                    application.student_id,
                    event,
                    _event_payload(
                        application,
                        waitlist_position=application.waitlist_position,
                        reason=reason,
                    ),
                )
            )

        logger.info(
            "Application %s moved %s -> %s by %s %s",
            application_id,
            current.value,
            target.value,
            actor.role.value,
            actor.actor_id,
        )
        self._deliver(pending)
        return TransitionResult(application, previous_status=current, changed=True)

    def review(
        self, actor: Actor, application_id: str, reason: str | None = None
    ) -> TransitionResult:
        """Mark an application as under review."""
        return self.transition(actor, application_id, ApplicationStatus.UNDER_REVIEW, reason)

    def admit(
        self, actor: Actor, application_id: str, reason: str | None = None
    ) -> TransitionResult:
        """Admit an application, reserving a course seat."""
        return self.transition(actor, application_id, ApplicationStatus.ADMITTED, reason)

    def reject(
        self, actor: Actor, application_id: str, reason: str | None = None
    ) -> TransitionResult:
        """Reject an application, releasing its seat if it held one."""
        return self.transition(actor, application_id, ApplicationStatus.REJECTED, reason)

    def waitlist_application(
        self, actor: Actor, application_id: str, reason: str | None = None
    ) -> TransitionResult:
        """Put an application on the course waitlist."""
        return self.transition(actor, application_id, ApplicationStatus.WAITLISTED, reason)

    # --- Student decision ---

    def accept_offer(self, actor: Actor, application_id: str) -> TransitionResult:
        """Accept an admission offer.

        Every other admitted application of the student is rejected and its
        seat released. The acceptance and all rejections commit together.

        Raises:
            ApplicationNotFoundError: If the application doesn't exist.
            UnauthorizedError: If the actor is not the owning student.
            InvalidTransitionError: If the application is not admitted or the
                student already accepted another offer.
        """
        pending: _Pending = []
        with self.state_store.transaction() as session:
            application = self.state_store.get_application(application_id, session=session)
            if not actor.is_student(application.student_id):
                raise UnauthorizedError("Only the applicant can accept this offer")

            current = application.application_status
            if current == ApplicationStatus.ACCEPTED:
                return TransitionResult(application, previous_status=current, changed=False)
            if current != ApplicationStatus.ADMITTED:
                raise InvalidTransitionError(
                    f"Only admitted applications can be accepted (status: {current.value})"
                )

            already = self.state_store.list_applications(
                student_id=application.student_id,
                status=ApplicationStatus.ACCEPTED,
                session=session,
            )
            if already:
                raise InvalidTransitionError(
                    f"You have already accepted an offer for {already[0].course_name}"
                )

            application = self._apply(
                session,
                application,
                current,
                ApplicationStatus.ACCEPTED,
                actor,
                None,
                {"decided_at": self.state_store.now()},
            )
            pending.append(
                (
                    application.institution_id,
                    NotificationType.OFFER_ACCEPTED,
                    _event_payload(application, student_id=application.student_id),
                )
            )

            cascaded = []
            others = self.state_store.list_applications(
                student_id=application.student_id,
                status=ApplicationStatus.ADMITTED,
                session=session,
            )
            reason = f"Accepted offer for {application.course_name}"
            for other in others:
                self.seat_manager.release(other.course_id, session=session)
                rejected = self._apply(
                    session,
                    other,
                    ApplicationStatus.ADMITTED,
                    ApplicationStatus.REJECTED,
                    actor,
                    reason,
                    {"decided_at": self.state_store.now(), "notes": reason},
                )
                cascaded.append(rejected)
                pending.append(
                    (
                        rejected.student_id,
                        NotificationType.APPLICATION_STATUS_CHANGED,
                        _event_payload(rejected, reason=reason),
                    )
                )

        logger.info(
            "Student %s accepted application %s; %d other offer(s) rejected",
            application.student_id,
            application_id,
            len(cascaded),
        )
        self._deliver(pending)
        return TransitionResult(
            application, previous_status=current, changed=True, cascaded=cascaded
        )

    # --- Queries ---

    def get_application(self, actor: Actor, application_id: str) -> Application:
        """Get an application the actor is allowed to see.

        Raises:
            ApplicationNotFoundError: If the application doesn't exist.
            UnauthorizedError: If the actor is neither its student nor its institution.
        """
        application = self.state_store.get_application(application_id)
        self._authorize_view(actor, application)
        return application

    def history(self, actor: Actor, application_id: str) -> list[ApplicationTransition]:
        """Audit trail of an application, oldest first."""
        self.get_application(actor, application_id)
        return self.state_store.list_transitions(application_id)

    def list_applications(
        self,
        actor: Actor,
        course_id: str | None = None,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        """List the actor's applications.

        Students see their own applications, institutions the applications
        to their courses, admins everything.

        Raises:
            UnauthorizedError: If the actor's role cannot hold applications.
        """
        match actor.role:
            case ActorRole.STUDENT:
                return self.state_store.list_applications(
                    student_id=actor.actor_id, course_id=course_id, status=status
                )
            case ActorRole.INSTITUTION:
                return self.state_store.list_applications(
                    institution_id=actor.actor_id, course_id=course_id, status=status
                )
            case ActorRole.ADMIN:
                return self.state_store.list_applications(course_id=course_id, status=status)
            case _:
                raise UnauthorizedError("Only students and institutions have applications")

    def institution_stats(self, actor: Actor, institution_id: str) -> InstitutionStats:
        """Application statistics for an institution.

        Raises:
            UnauthorizedError: If the actor is not the institution or an admin.
        """
        if actor.role != ActorRole.ADMIN and not actor.is_institution(institution_id):
            raise UnauthorizedError("Only the institution can view its statistics")
        return self.state_store.get_institution_stats(institution_id)

    # --- Internal helpers ---

    def _apply(
        self,
        session: Session,
        application: Application,
        current: ApplicationStatus,
        target: ApplicationStatus,
        actor: Actor,
        reason: str | None,
        values: dict[str, Any],
    ) -> Application:
        """Compare-and-set the status, record the audit row, return the fresh row."""
        if not self.state_store.set_application_status(
            session, application.id, current, target, **values
        ):
            raise InvalidTransitionError(
                f"Application {application.id} is no longer {current.value}; retry the request"
            )
        self.state_store.record_transition(
            session,
            application.id,
            from_status=current,
            to_status=target,
            actor_id=actor.actor_id,
            actor_role=actor.role.value,
            reason=reason,
        )
        return self.state_store.get_application(application.id, session=session)

    def _authorize_institution(self, actor: Actor, application: Application) -> None:
        if not actor.is_institution(application.institution_id):
            raise UnauthorizedError(
                "Only the institution that owns this course can change the application"
            )

    def _authorize_view(self, actor: Actor, application: Application) -> None:
        if actor.role == ActorRole.ADMIN:
            return
        if actor.is_student(application.student_id) or actor.is_institution(
            application.institution_id
        ):
            return
        raise UnauthorizedError("You do not have access to this application")

    @staticmethod
    def _parse_status(value: ApplicationStatus | str) -> ApplicationStatus:
        try:
            status = ApplicationStatus(value)
        except ValueError as e:
            raise ValidationError(f"Unknown application status: {value!r}") from e
        if status == ApplicationStatus.PENDING:
            raise InvalidTransitionError("Applications cannot be moved back to pending")
        return status

    def _deliver(self, pending: _Pending) -> None:
        for user_id, event_type, payload in pending:
            notify_safely(self.notification_sink, user_id, event_type, payload)
