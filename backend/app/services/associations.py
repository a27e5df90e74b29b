"""
Association Builder - Per-company job and application subsets

Consumes the full job, company and application lists and derives, for each
company, the jobs that belong to it and the applications submitted to
those jobs.

Join policy (ordered, see resolver):
    1. job.company_id == company.id
    2. job.company_name ~ company.name (case-insensitive, trimmed)

The name pair is only consulted when the job's company_id is absent or
does not resolve to any known company, so a job that names a company
by id is never pulled into a second company sharing its display name.

Applications join through job_id membership in the company's job ids.

Data-quality outcomes:
    - A job matching no company is left out of every per-company subset
      (global totals still count it, see aggregates)
    - An application whose job is absent is an orphan and silently dropped

Complexity: O(companies x jobs + jobs + applications); the job-id set per
company keeps the application pass linear.

The builder is pure: inputs are read, never mutated, and repeated calls
with the same inputs return equal results.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from app.middleware.metrics import record_orphans
from app.schemas.records import ApplicationRecord, CompanyRecord, JobRecord
from app.schemas.stats import CompanyAssociationResponse, CompanySummary
from app.services.normalizer import JobStatus
from app.services.records import coerce_applications, coerce_companies, coerce_jobs
from app.services.resolver import JOB_COMPANY_ID, JOB_TO_COMPANY, match

logger = logging.getLogger(__name__)


@dataclass
class CompanyAssociation:
    """
    Reconciled view of one company.

    Attributes:
        company: The company record
        jobs: Jobs resolved to this company
        applications: Applications to those jobs
    """
    company: CompanyRecord
    jobs: List[JobRecord] = field(default_factory=list)
    applications: List[ApplicationRecord] = field(default_factory=list)


def company_key(company: CompanyRecord) -> Optional[str]:
    """Stable key for a company: its id, else its casefolded name."""
    if company.id:
        return company.id
    if company.name and company.name.strip():
        return f"name:{company.name.strip().casefold()}"
    return None


def belongs_to(job: JobRecord, company: CompanyRecord, known_company_ids: Set[str]) -> bool:
    if job.company_id and job.company_id in known_company_ids:
        return match(job, company, (JOB_COMPANY_ID,))
    return match(job, company, JOB_TO_COMPANY)


def build_associations(
    jobs: Optional[Iterable[Any]],
    companies: Optional[Iterable[Any]],
    applications: Optional[Iterable[Any]],
) -> Dict[str, CompanyAssociation]:
    """
    Derive each company's jobs and applications.

    Args:
        jobs: Raw job maps or JobRecords
        companies: Raw company maps or CompanyRecords
        applications: Raw application maps or ApplicationRecords

    Returns:
        Mapping of company key -> CompanyAssociation, in company order.
        Companies with neither id nor name are skipped; a repeated key
        keeps its first company.
    """
    job_records = coerce_jobs(jobs)
    company_records = coerce_companies(companies)
    application_records = coerce_applications(applications)

    known_company_ids = {company.id for company in company_records if company.id}

    associations: Dict[str, CompanyAssociation] = {}
    associated_jobs: Set[int] = set()

    for company in company_records:
        key = company_key(company)
        if key is None or key in associations:
            continue

        company_jobs = []
        for index, job in enumerate(job_records):
            if belongs_to(job, company, known_company_ids):
                company_jobs.append(job)
                associated_jobs.add(index)

        job_ids = {job.id for job in company_jobs if job.id}
        company_applications = [
            app for app in application_records
            if app.job_id is not None and app.job_id in job_ids
        ]

        associations[key] = CompanyAssociation(
            company=company,
            jobs=company_jobs,
            applications=company_applications,
        )

    unassociated = len(job_records) - len(associated_jobs)
    orphaned = count_orphaned_applications(job_records, application_records)
    if unassociated or orphaned:
        logger.debug(
            f"Reconciliation left {unassociated} jobs without a company "
            f"and {orphaned} orphaned applications"
        )
    record_orphans("job", unassociated)
    record_orphans("application", orphaned)

    return associations


def count_orphaned_applications(
    jobs: Iterable[JobRecord],
    applications: Iterable[ApplicationRecord],
) -> int:
    job_ids = {job.id for job in jobs if job.id}
    return sum(1 for app in applications if not app.job_id or app.job_id not in job_ids)


def count_unassociated_jobs(
    jobs: Optional[Iterable[Any]],
    companies: Optional[Iterable[Any]],
) -> int:
    company_records = coerce_companies(companies)
    known_company_ids = {company.id for company in company_records if company.id}
    return sum(
        1 for job in coerce_jobs(jobs)
        if not any(belongs_to(job, company, known_company_ids) for company in company_records)
    )


def summarize_company(key: str, association: CompanyAssociation) -> CompanySummary:
    company = association.company
    return CompanySummary(
        company_key=key,
        company_id=company.id,
        name=company.name,
        verified=company.verified,
        total_jobs=len(association.jobs),
        active_jobs=sum(1 for job in association.jobs if job.status == JobStatus.ACTIVE),
        total_applications=len(association.applications),
    )


def summarize_companies(associations: Dict[str, CompanyAssociation]) -> List[CompanySummary]:
    """Per-company counts for the employer management table."""
    return [summarize_company(key, association) for key, association in associations.items()]


def to_response(associations: Dict[str, CompanyAssociation]) -> List[CompanyAssociationResponse]:
    responses = []
    for key, association in associations.items():
        summary = summarize_company(key, association)
        responses.append(
            CompanyAssociationResponse(
                **summary.model_dump(),
                jobs=association.jobs,
                applications=association.applications,
            )
        )
    return responses
