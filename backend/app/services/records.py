"""
Record Coercion - Loose backend maps into typed records

The API returns jobs, companies and applications as loosely-typed maps
whose field names drifted across schema revisions. The coercers below read
each semantic field through an ordered list of known spellings and apply
the documented defaults, so everything downstream works on one shape.

Coercion is total and read-only: malformed entries (None, strings, maps
with missing fields) produce a record filled with defaults, and the input
object is never modified. Already-typed records pass through unchanged.
"""

import logging
import math
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Union

from app.schemas.records import ApplicationRecord, CandidateRef, CompanyRecord, JobRecord
from app.services.normalizer import (
    normalize_application_status,
    normalize_job_status,
    normalize_tier,
)
from app.services.resolver import key_value, lookup

logger = logging.getLogger(__name__)

JobLike = Union[JobRecord, Mapping[str, Any]]
CompanyLike = Union[CompanyRecord, Mapping[str, Any]]
ApplicationLike = Union[ApplicationRecord, Mapping[str, Any]]

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}

JOB_ID_PATHS = ("id", "_id")
JOB_COMPANY_ID_PATHS = ("companyId", "company_id", "company.id", "company._id")
JOB_COMPANY_NAME_PATHS = ("companyName", "company_name", "company.name")
COMPANY_ID_PATHS = ("id", "_id")
COMPANY_NAME_PATHS = ("name", "company_name", "title")
APPLICATION_JOB_ID_PATHS = ("jobId", "job_id", "job.id", "job._id")
CANDIDATE_ID_PATHS = (
    "job_seeker._id",
    "job_seeker.id",
    "candidate._id",
    "candidate.id",
    "job_seeker_id",
    "candidateId",
    "candidate_id",
)
CANDIDATE_NAME_PATHS = (
    "job_seeker.full_name",
    "job_seeker.name",
    "candidate.full_name",
    "candidate.name",
    "candidateName",
    "name",
)


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    return raw if isinstance(raw, Mapping) else {}


def _text(record: Any, *paths: str) -> Optional[str]:
    """First non-blank scalar along the paths, trimmed."""
    for path in paths:
        value = lookup(record, path)
        if isinstance(value, bool):
            continue
        if isinstance(value, str):
            if value.strip():
                return value.strip()
            continue
        if isinstance(value, (int, float)):
            return str(value)
    return None


def _identifier(record: Any, paths: tuple) -> Optional[str]:
    return key_value(record, paths)


def _count(value: Any) -> int:
    """Non-negative integer, 0 for anything that is not a number."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        return max(int(value), 0) if math.isfinite(value) else 0
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return 0


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def coerce_job(raw: Any) -> JobRecord:
    if isinstance(raw, JobRecord):
        return raw
    data = _as_mapping(raw)

    company_name = _text(data, *JOB_COMPANY_NAME_PATHS)
    if company_name is None:
        # Legacy jobs store the company name directly in "company"
        company = data.get("company")
        if isinstance(company, str) and company.strip():
            company_name = company.strip()

    license_value = data.get("license_required")
    if isinstance(license_value, bool):
        license_required = license_value
    else:
        license_required = _flag(data.get("licenseRequired"))

    return JobRecord(
        id=_identifier(data, JOB_ID_PATHS),
        title=_text(data, "title") or "",
        company_id=_identifier(data, JOB_COMPANY_ID_PATHS),
        company_name=company_name,
        tier=normalize_tier(_text(data, "tier", "job_tier")),
        status=normalize_job_status(_text(data, "status")),
        application_count=_count(data.get("applicationCount", data.get("application_count"))),
        view_count=_count(data.get("viewCount", data.get("view_count"))),
        featured=_flag(data.get("featured")),
        urgent=_flag(data.get("urgent")),
        license_required=license_required,
        posted_date=_text(data, "postedDate", "posted_date") or date.today().isoformat(),
        expiry_date=_text(data, "expiryDate", "deadline") or "",
        source=_text(data, "source"),
        category=_text(data, "category"),
    )


def coerce_company(raw: Any) -> CompanyRecord:
    if isinstance(raw, CompanyRecord):
        return raw
    data = _as_mapping(raw)

    verified = data.get("verified")
    if verified is None:
        verified = data.get("is_verified", data.get("isVerified"))

    return CompanyRecord(
        id=_identifier(data, COMPANY_ID_PATHS),
        name=_text(data, *COMPANY_NAME_PATHS),
        verified=_flag(verified),
        status=_text(data, "status") or "active",
        industry=_text(data, "industry", "category"),
    )


def coerce_application(raw: Any) -> ApplicationRecord:
    if isinstance(raw, ApplicationRecord):
        return raw
    data = _as_mapping(raw)
    return ApplicationRecord(
        id=_identifier(data, ("id", "_id")),
        job_id=_identifier(data, APPLICATION_JOB_ID_PATHS),
        status=normalize_application_status(_text(data, "status")),
        candidate_id=_identifier(data, CANDIDATE_ID_PATHS),
        candidate_name=_text(data, *CANDIDATE_NAME_PATHS) or "Unknown",
    )


def coerce_jobs(jobs: Optional[Iterable[Any]]) -> List[JobRecord]:
    return [coerce_job(job) for job in jobs or ()]


def coerce_companies(companies: Optional[Iterable[Any]]) -> List[CompanyRecord]:
    return [coerce_company(company) for company in companies or ()]


def coerce_applications(applications: Optional[Iterable[Any]]) -> List[ApplicationRecord]:
    return [coerce_application(app) for app in applications or ()]


def unwrap_collection(payload: Any, key: str) -> List[Any]:
    """
    Accept either `{key: [...]}` or a bare list from an API response.

    Anything else (error bodies, None) yields an empty list.
    """
    if isinstance(payload, list):
        return list(payload)
    if isinstance(payload, Mapping):
        items = payload.get(key)
        if isinstance(items, list):
            return list(items)
    return []


def unique_candidates(applications: Optional[Iterable[Any]]) -> List[CandidateRef]:
    """
    Candidates derived from applications, de-duplicated by candidate id.

    The first application seen for a candidate supplies the name; records
    without a candidate id are skipped.
    """
    seen = {}
    for app in coerce_applications(applications):
        if not app.candidate_id or app.candidate_id in seen:
            continue
        seen[app.candidate_id] = CandidateRef(id=app.candidate_id, name=app.candidate_name)
    return list(seen.values())
