"""Student profile endpoints."""

from fastapi import APIRouter, Query, status

from admission_engine.admission import ActorRole, UnauthorizedError
from admission_engine.api.dependencies import ActorDep, MatchingDep, StateStoreDep
from admission_engine.api.models import (
    APIResponse,
    RankedJobResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
    job_to_response,
    match_to_response,
    student_to_response,
)

router = APIRouter(prefix="/students", tags=["students"])


@router.post(
    "",
    response_model=APIResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_student(
    student: StudentCreate, store: StateStoreDep, actor: ActorDep
) -> APIResponse[StudentResponse]:
    """Create the acting student's profile. The profile ID is the actor ID."""
    if actor.role != ActorRole.STUDENT:
        raise UnauthorizedError("Only students can create a student profile")
    created = store.create_student(
        id=actor.actor_id,
        name=student.name,
        email=student.email,
        grades=student.grades,
        skills=student.skills,
        qualifications=student.qualifications,
        experience_years=student.experience_years,
    )
    return APIResponse(data=student_to_response(created))


@router.get("/{student_id}", response_model=APIResponse[StudentResponse])
def get_student(
    student_id: str, store: StateStoreDep, actor: ActorDep
) -> APIResponse[StudentResponse]:
    """Get a student profile. Students may only read their own."""
    if actor.role == ActorRole.STUDENT and actor.actor_id != student_id:
        raise UnauthorizedError("Students can only view their own profile")
    student = store.get_student(student_id)
    return APIResponse(data=student_to_response(student))


@router.patch("/{student_id}", response_model=APIResponse[StudentResponse])
def update_student(
    student_id: str, student: StudentUpdate, store: StateStoreDep, actor: ActorDep
) -> APIResponse[StudentResponse]:
    """Update a student profile (partial update). Grades changes recompute the GPA."""
    if not actor.is_student(student_id):
        raise UnauthorizedError("Students can only update their own profile")
    updated = store.update_student(
        student_id,
        name=student.name,
        email=student.email,
        grades=student.grades,
        skills=student.skills,
        qualifications=student.qualifications,
        experience_years=student.experience_years,
    )
    return APIResponse(data=student_to_response(updated))


@router.get("/{student_id}/recommended-jobs", response_model=APIResponse[list[RankedJobResponse]])
def recommended_jobs(
    student_id: str,
    matching: MatchingDep,
    actor: ActorDep,
    limit: int | None = Query(default=None, ge=1, le=100, description="Max results"),
) -> APIResponse[list[RankedJobResponse]]:
    """Open jobs ranked by match score for the student."""
    if not actor.is_student(student_id):
        raise UnauthorizedError("Students can only view their own recommendations")
    ranked = matching.recommend_jobs(student_id, limit=limit)
    return APIResponse(
        data=[
            RankedJobResponse(job=job_to_response(r.job), match=match_to_response(r.match))
            for r in ranked
        ]
    )
