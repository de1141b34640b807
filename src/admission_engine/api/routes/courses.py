"""Course CRUD endpoints."""

from fastapi import APIRouter, Query, status

from admission_engine.admission import UnauthorizedError
from admission_engine.api.dependencies import ActorDep, CatalogDep, StateMachineDep
from admission_engine.api.models import (
    APIResponse,
    ApplicationResponse,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    application_to_response,
    course_to_response,
)
from admission_engine.exceptions import ValidationError
from admission_engine.state_store import CourseStatus

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("", response_model=APIResponse[list[CourseResponse]])
def list_courses(
    catalog: CatalogDep,
    institution_id: str | None = Query(default=None, description="Filter by institution ID"),
    course_status: str | None = Query(
        default=None, alias="status", description="Filter by status (active or full)"
    ),
    faculty: str | None = Query(default=None, description="Filter by faculty"),
) -> APIResponse[list[CourseResponse]]:
    """List courses with optional filters."""
    try:
        parsed = CourseStatus(course_status) if course_status else None
    except ValueError as e:
        raise ValidationError(f"Unknown course status: {course_status!r}") from e
    courses = catalog.list_courses(institution_id=institution_id, status=parsed, faculty=faculty)
    return APIResponse(data=[course_to_response(c) for c in courses])


@router.post(
    "",
    response_model=APIResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_course(
    course: CourseCreate, catalog: CatalogDep, actor: ActorDep
) -> APIResponse[CourseResponse]:
    """Create a course owned by the acting institution."""
    created = catalog.create_course(
        actor,
        name=course.name,
        seats=course.seats,
        requirements=[r.model_dump() for r in course.requirements],
        faculty=course.faculty,
        description=course.description,
    )
    return APIResponse(data=course_to_response(created))


@router.get("/{course_id}", response_model=APIResponse[CourseResponse])
def get_course(course_id: str, catalog: CatalogDep) -> APIResponse[CourseResponse]:
    """Get a course by ID."""
    return APIResponse(data=course_to_response(catalog.get_course(course_id)))


@router.patch("/{course_id}", response_model=APIResponse[CourseResponse])
def update_course(
    course_id: str, course: CourseUpdate, catalog: CatalogDep, actor: ActorDep
) -> APIResponse[CourseResponse]:
    """Update a course (partial update). Seat changes shift available seats."""
    changes = course.model_dump(exclude_none=True)
    updated = catalog.update_course(actor, course_id, **changes)
    return APIResponse(data=course_to_response(updated))


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_course(course_id: str, catalog: CatalogDep, actor: ActorDep) -> None:
    """Delete a course that no application references."""
    catalog.delete_course(actor, course_id)


@router.get("/{course_id}/waitlist", response_model=APIResponse[list[ApplicationResponse]])
def get_waitlist(
    course_id: str, catalog: CatalogDep, machine: StateMachineDep, actor: ActorDep
) -> APIResponse[list[ApplicationResponse]]:
    """Waitlisted applications for a course, in position order."""
    course = catalog.get_course(course_id)
    if not actor.is_institution(course.institution_id):
        raise UnauthorizedError("Only the institution that owns this course can view its waitlist")
    queue = machine.waitlist.queue(course_id)
    return APIResponse(data=[application_to_response(a) for a in queue])
