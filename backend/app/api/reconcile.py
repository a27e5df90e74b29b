from fastapi import APIRouter

from app.schemas import AssociationsResponse, RecordsPayload
from app.services.associations import (
    build_associations,
    count_orphaned_applications,
    count_unassociated_jobs,
    to_response,
)
from app.services.records import coerce_applications, coerce_jobs

router = APIRouter()


@router.post("/associations", response_model=AssociationsResponse)
async def associations(payload: RecordsPayload):
    associations = build_associations(payload.jobs, payload.companies, payload.applications)
    jobs = coerce_jobs(payload.jobs)
    return AssociationsResponse(
        companies=to_response(associations),
        unassociated_jobs=count_unassociated_jobs(jobs, payload.companies),
        orphaned_applications=count_orphaned_applications(
            jobs, coerce_applications(payload.applications)
        ),
    )
