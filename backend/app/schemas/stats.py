from typing import Any, List, Optional

from pydantic import BaseModel, Field

from app.schemas.records import ApplicationRecord, CamelModel, JobRecord
from app.services.normalizer import TierToken


class RecordsPayload(BaseModel):
    """Raw records as the marketplace API returned them."""
    jobs: List[Any] = Field(default_factory=list)
    companies: List[Any] = Field(default_factory=list)
    applications: List[Any] = Field(default_factory=list)
    industries: List[str] = Field(default_factory=list)


class DashboardStats(CamelModel):
    active_jobs: int = 0
    total_applications: int = 0
    shortlisted: int = 0
    hired: int = 0


class TierStats(CamelModel):
    tier: TierToken
    label: str
    price: str = "Free"
    count: int = 0
    active_count: int = 0
    total_applications: int = 0
    revenue: int = 0


class CompanySummary(CamelModel):
    company_key: str
    company_id: Optional[str] = None
    name: Optional[str] = None
    verified: bool = False
    total_jobs: int = 0
    active_jobs: int = 0
    total_applications: int = 0


class CompanyAssociationResponse(CompanySummary):
    jobs: List[JobRecord] = Field(default_factory=list)
    applications: List[ApplicationRecord] = Field(default_factory=list)


class IndustryCount(CamelModel):
    industry: str
    job_count: int


class AdminOverview(CamelModel):
    mega_jobs: int = 0
    premium_jobs: int = 0
    prime_jobs: int = 0
    latest_jobs: int = 0
    newspaper_jobs: int = 0
    total_employers: int = 0
    verified_employers: int = 0
    industries: List[IndustryCount] = Field(default_factory=list)


class TierStatsResponse(CamelModel):
    tiers: List[TierStats]
    total_revenue: int = 0


class AssociationsResponse(CamelModel):
    companies: List[CompanyAssociationResponse]
    unassociated_jobs: int = 0
    orphaned_applications: int = 0
