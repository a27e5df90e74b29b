"""
Metrics Aggregator - Dashboard counts from reconciled records

Computes the numbers behind the employer dashboard cards, the tier
management view and the admin overview.

Every function is total over arbitrary input lists: records are coerced
first, so missing numbers count as 0 and missing or unknown enum values
take their normalizer fallback. Nothing here raises on malformed data.

Tier grouping runs on normalized tokens; without that, "MegaJob",
"mega_job" and "megajob" would split one tier into several undercounted
buckets.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.config import get_settings
from app.schemas.stats import AdminOverview, DashboardStats, IndustryCount, TierStats
from app.services.normalizer import (
    ApplicationStatus,
    JobStatus,
    TierToken,
    get_tier_label,
    is_active_job_status,
    tier_price,
    unit_price,
)
from app.services.records import coerce_applications, coerce_companies, coerce_jobs

logger = logging.getLogger(__name__)

NEWSPAPER_SOURCE = "newspaper"


def compute_stats(
    jobs: Optional[Iterable[Any]],
    applications: Optional[Iterable[Any]],
) -> DashboardStats:
    """
    Dashboard card numbers.

    active_jobs counts every job whose normalized status is neither closed
    nor expired.
    """
    job_records = coerce_jobs(jobs)
    application_records = coerce_applications(applications)

    return DashboardStats(
        active_jobs=sum(1 for job in job_records if is_active_job_status(job.status)),
        total_applications=len(application_records),
        shortlisted=sum(1 for app in application_records if app.status == ApplicationStatus.SHORTLISTED),
        hired=sum(1 for app in application_records if app.status == ApplicationStatus.HIRED),
    )


def compute_tier_stats(
    jobs: Optional[Iterable[Any]],
    prices: Optional[Mapping[str, Any]] = None,
) -> Dict[TierToken, TierStats]:
    """
    Per-tier counts and revenue.

    Args:
        jobs: Raw job maps or JobRecords
        prices: Tier -> formatted price (defaults to settings.tier_prices)

    Returns:
        One TierStats per canonical tier, in catalog order, including
        empty tiers. revenue = count x unit_price(price).
    """
    if prices is None:
        prices = get_settings().tier_prices

    buckets: Dict[TierToken, list] = {token: [] for token in TierToken}
    for job in coerce_jobs(jobs):
        buckets[job.tier].append(job)

    stats = {}
    for token, tier_jobs in buckets.items():
        price = tier_price(token, prices)
        stats[token] = TierStats(
            tier=token,
            label=get_tier_label(token),
            price=price,
            count=len(tier_jobs),
            active_count=sum(1 for job in tier_jobs if job.status == JobStatus.ACTIVE),
            total_applications=sum(job.application_count for job in tier_jobs),
            revenue=len(tier_jobs) * unit_price(price),
        )
    return stats


def total_revenue(tier_stats: Mapping[TierToken, TierStats]) -> int:
    return sum(stats.revenue for stats in tier_stats.values())


def compute_admin_overview(
    jobs: Optional[Iterable[Any]],
    companies: Optional[Iterable[Any]],
    industries: Optional[Iterable[str]] = None,
) -> AdminOverview:
    """
    Admin dashboard tiles.

    The "latest" tile reflects every posted job regardless of tier, and
    newspaper counts tier newspaper plus anything sourced from newspapers.
    """
    job_records = coerce_jobs(jobs)
    company_records = coerce_companies(companies)
    tier_counts = Counter(job.tier for job in job_records)

    newspaper_jobs = sum(
        1 for job in job_records
        if job.tier == TierToken.NEWSPAPER
        or (job.source or "").strip().lower() == NEWSPAPER_SOURCE
    )

    return AdminOverview(
        mega_jobs=tier_counts[TierToken.MEGAJOB],
        premium_jobs=tier_counts[TierToken.PREMIUM],
        prime_jobs=tier_counts[TierToken.PRIME],
        latest_jobs=len(job_records),
        newspaper_jobs=newspaper_jobs,
        total_employers=len(company_records),
        verified_employers=sum(1 for company in company_records if company.verified),
        industries=compute_industry_distribution(job_records, company_records, industries),
    )


def compute_industry_distribution(
    jobs: Optional[Iterable[Any]],
    companies: Optional[Iterable[Any]],
    industries: Optional[Iterable[str]] = None,
    top_n: int = 5,
) -> List[IndustryCount]:
    """
    Top industries by job count.

    A job's industry comes from its company (matched by name first, then
    by id), else from its own category when that is an allowed industry.
    An empty allow-list admits any non-empty industry. Ties keep first-seen
    order.
    """
    company_records = coerce_companies(companies)
    by_id: Dict[str, str] = {}
    by_name: Dict[str, str] = {}
    for company in company_records:
        industry = company.industry or ""
        if company.id:
            by_id[company.id] = industry
        if company.name:
            by_name[company.name.strip().casefold()] = industry

    allowed = {name.strip().casefold() for name in industries or () if name and name.strip()}

    def is_allowed(name: Optional[str]) -> bool:
        if not name or not name.strip():
            return False
        if not allowed:
            return True
        return name.strip().casefold() in allowed

    counts: Counter = Counter()
    for job in coerce_jobs(jobs):
        name_key = job.company_name.strip().casefold() if job.company_name else ""
        if name_key and name_key in by_name:
            industry = by_name[name_key]
        elif job.company_id and job.company_id in by_id:
            industry = by_id[job.company_id]
        elif is_allowed(job.category):
            industry = job.category
        else:
            industry = ""

        if is_allowed(industry):
            counts[industry] += 1

    ranked = sorted(counts.items(), key=lambda item: -item[1])[:top_n]
    return [IndustryCount(industry=industry, job_count=count) for industry, count in ranked]
