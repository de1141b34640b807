"""Course application endpoints."""

from fastapi import APIRouter, Query, status

from admission_engine.api.dependencies import ActorDep, StateMachineDep
from admission_engine.api.models import (
    APIResponse,
    ApplicationCreate,
    ApplicationResponse,
    InstitutionStatsResponse,
    TransitionRecordResponse,
    TransitionRequest,
    TransitionResponse,
    application_to_response,
    transition_to_response,
)
from admission_engine.exceptions import ValidationError
from admission_engine.state_store import ApplicationStatus

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "",
    response_model=APIResponse[ApplicationResponse],
    status_code=status.HTTP_201_CREATED,
)
def submit_application(
    application: ApplicationCreate, machine: StateMachineDep, actor: ActorDep
) -> APIResponse[ApplicationResponse]:
    """Submit the acting student's application to a course."""
    created = machine.submit_application(
        actor, course_id=application.course_id, notes=application.notes
    )
    return APIResponse(data=application_to_response(created))


@router.get("", response_model=APIResponse[list[ApplicationResponse]])
def list_applications(
    machine: StateMachineDep,
    actor: ActorDep,
    course_id: str | None = Query(default=None, description="Filter by course ID"),
    application_status: str | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
) -> APIResponse[list[ApplicationResponse]]:
    """List the actor's applications (a student's own, or an institution's received)."""
    try:
        parsed = ApplicationStatus(application_status) if application_status else None
    except ValueError as e:
        raise ValidationError(f"Unknown application status: {application_status!r}") from e
    applications = machine.list_applications(actor, course_id=course_id, status=parsed)
    return APIResponse(data=[application_to_response(a) for a in applications])


@router.get("/stats", response_model=APIResponse[InstitutionStatsResponse])
def get_institution_stats(
    machine: StateMachineDep,
    actor: ActorDep,
    institution_id: str | None = Query(
        default=None, description="Institution ID (defaults to the actor)"
    ),
) -> APIResponse[InstitutionStatsResponse]:
    """Aggregated application statistics for an institution."""
    stats = machine.institution_stats(actor, institution_id or actor.actor_id)
    return APIResponse(data=InstitutionStatsResponse.model_validate(stats))


@router.get("/{application_id}", response_model=APIResponse[ApplicationResponse])
def get_application(
    application_id: str, machine: StateMachineDep, actor: ActorDep
) -> APIResponse[ApplicationResponse]:
    """Get an application by ID."""
    application = machine.get_application(actor, application_id)
    return APIResponse(data=application_to_response(application))


@router.post("/{application_id}/transition", response_model=APIResponse[TransitionResponse])
def transition_application(
    application_id: str,
    request: TransitionRequest,
    machine: StateMachineDep,
    actor: ActorDep,
) -> APIResponse[TransitionResponse]:
    """Move an application to a new status."""
    result = machine.transition(actor, application_id, request.status, reason=request.reason)
    return APIResponse(data=transition_to_response(result))


@router.post("/{application_id}/accept", response_model=APIResponse[TransitionResponse])
def accept_offer(
    application_id: str, machine: StateMachineDep, actor: ActorDep
) -> APIResponse[TransitionResponse]:
    """Accept an admission offer, declining the student's other offers."""
    result = machine.accept_offer(actor, application_id)
    return APIResponse(data=transition_to_response(result))


@router.get(
    "/{application_id}/history",
    response_model=APIResponse[list[TransitionRecordResponse]],
)
def get_application_history(
    application_id: str, machine: StateMachineDep, actor: ActorDep
) -> APIResponse[list[TransitionRecordResponse]]:
    """Status changes of an application, oldest first."""
    history = machine.history(actor, application_id)
    return APIResponse(data=[TransitionRecordResponse.model_validate(t) for t in history])
