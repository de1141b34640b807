"""Job posting and job application endpoints."""

from fastapi import APIRouter, Query, status

from admission_engine.api.dependencies import ActorDep, MatchingDep, StateStoreDep
from admission_engine.api.models import (
    APIResponse,
    CandidateResponse,
    CompanyStatsResponse,
    JobApplicationCreate,
    JobApplicationResponse,
    JobApplicationStatusUpdate,
    JobCreate,
    JobResponse,
    JobUpdate,
    job_application_to_response,
    job_to_response,
    match_to_response,
    student_to_response,
)
from admission_engine.state_store import JobStatus

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=APIResponse[list[JobResponse]])
def list_jobs(
    store: StateStoreDep,
    company_id: str | None = Query(default=None, description="Filter by company ID"),
    include_closed: bool = Query(default=False, description="Include closed and expired jobs"),
) -> APIResponse[list[JobResponse]]:
    """List job postings. By default only open jobs are returned."""
    if include_closed:
        jobs = store.list_jobs(company_id=company_id)
    else:
        jobs = store.list_jobs(
            company_id=company_id, status=JobStatus.ACTIVE, open_at=store.clock()
        )
    return APIResponse(data=[job_to_response(j) for j in jobs])


@router.post(
    "",
    response_model=APIResponse[JobResponse],
    status_code=status.HTTP_201_CREATED,
)
def post_job(job: JobCreate, matching: MatchingDep, actor: ActorDep) -> APIResponse[JobResponse]:
    """Post a job and notify matching students."""
    created = matching.post_job(
        actor,
        title=job.title,
        deadline=job.deadline,
        requirements=job.requirements,
        qualifications=job.qualifications,
        experience=job.experience,
        description=job.description,
        location=job.location,
        job_type=job.job_type,
    )
    return APIResponse(data=job_to_response(created))


@router.get("/applications", response_model=APIResponse[list[JobApplicationResponse]])
def list_my_job_applications(
    matching: MatchingDep, actor: ActorDep
) -> APIResponse[list[JobApplicationResponse]]:
    """The acting student's job applications."""
    job_applications = matching.list_student_job_applications(actor)
    return APIResponse(data=[job_application_to_response(a) for a in job_applications])


@router.patch(
    "/applications/{job_application_id}",
    response_model=APIResponse[JobApplicationResponse],
)
def update_job_application_status(
    job_application_id: str,
    update: JobApplicationStatusUpdate,
    matching: MatchingDep,
    actor: ActorDep,
) -> APIResponse[JobApplicationResponse]:
    """Shortlist or reject a job application."""
    job_application = matching.update_job_application_status(
        actor, job_application_id, update.status
    )
    return APIResponse(data=job_application_to_response(job_application))


@router.get("/stats", response_model=APIResponse[CompanyStatsResponse])
def get_company_stats(
    matching: MatchingDep,
    actor: ActorDep,
    company_id: str | None = Query(default=None, description="Company ID (admins only)"),
) -> APIResponse[CompanyStatsResponse]:
    """Job and applicant statistics for the acting company."""
    stats = matching.company_stats(actor, company_id)
    return APIResponse(data=CompanyStatsResponse.model_validate(stats))


@router.get("/{job_id}", response_model=APIResponse[JobResponse])
def get_job(job_id: str, store: StateStoreDep) -> APIResponse[JobResponse]:
    """Get a job by ID."""
    return APIResponse(data=job_to_response(store.get_job(job_id)))


@router.patch("/{job_id}", response_model=APIResponse[JobResponse])
def update_job(
    job_id: str, update: JobUpdate, matching: MatchingDep, actor: ActorDep
) -> APIResponse[JobResponse]:
    """Edit a job posting. The deadline can't be changed."""
    job = matching.update_job(actor, job_id, **update.model_dump(exclude_unset=True))
    return APIResponse(data=job_to_response(job))


@router.post("/{job_id}/close", response_model=APIResponse[JobResponse])
def close_job(job_id: str, matching: MatchingDep, actor: ActorDep) -> APIResponse[JobResponse]:
    """Close a job posting."""
    return APIResponse(data=job_to_response(matching.close_job(actor, job_id)))


@router.get(
    "/{job_id}/qualified-applicants",
    response_model=APIResponse[list[CandidateResponse]],
)
def qualified_applicants(
    job_id: str, matching: MatchingDep, actor: ActorDep
) -> APIResponse[list[CandidateResponse]]:
    """Students who match the job, best first."""
    candidates = matching.qualified_applicants(actor, job_id)
    return APIResponse(
        data=[
            CandidateResponse(
                student=student_to_response(c.student), match=match_to_response(c.match)
            )
            for c in candidates
        ]
    )


@router.get("/{job_id}/applications", response_model=APIResponse[list[JobApplicationResponse]])
def list_job_applications(
    job_id: str, matching: MatchingDep, actor: ActorDep
) -> APIResponse[list[JobApplicationResponse]]:
    """Applications received for a job, best match first."""
    job_applications = matching.list_job_applications(actor, job_id)
    return APIResponse(data=[job_application_to_response(a) for a in job_applications])


@router.post(
    "/{job_id}/applications",
    response_model=APIResponse[JobApplicationResponse],
    status_code=status.HTTP_201_CREATED,
)
def apply_for_job(
    job_id: str,
    application: JobApplicationCreate,
    matching: MatchingDep,
    actor: ActorDep,
) -> APIResponse[JobApplicationResponse]:
    """Apply the acting student to a job."""
    job_application = matching.apply_for_job(actor, job_id, cover_letter=application.cover_letter)
    return APIResponse(data=job_application_to_response(job_application))
