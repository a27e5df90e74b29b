from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.services.normalizer import ApplicationStatus, JobStatus, TierToken


class CamelModel(BaseModel):
    """Serializes as camelCase (the frontend's shape), accepts either case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobRecord(CamelModel):
    id: Optional[str] = None
    title: str = ""
    company_id: Optional[str] = None
    company_name: Optional[str] = None
    tier: TierToken = TierToken.LATEST
    status: JobStatus = JobStatus.ACTIVE
    application_count: int = 0
    view_count: int = 0
    featured: bool = False
    urgent: bool = False
    license_required: bool = False
    posted_date: str = Field(default_factory=lambda: date.today().isoformat())
    expiry_date: str = ""
    source: Optional[str] = None
    category: Optional[str] = None


class CompanyRecord(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    verified: bool = False
    status: str = "active"
    industry: Optional[str] = None


class ApplicationRecord(CamelModel):
    id: Optional[str] = None
    job_id: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    candidate_id: Optional[str] = None
    candidate_name: str = "Unknown"


class CandidateRef(CamelModel):
    id: str
    name: str = "Unknown"


class ConversationEntry(CamelModel):
    """A sent message. Created once, never mutated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    candidate_id: str
    candidate_name: str = "Unknown"
    text: str
    timestamp: str
