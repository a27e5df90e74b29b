import logging
from typing import Any, Awaitable, Callable, List

from fastapi import APIRouter, Depends

from app.config import Settings, get_settings
from app.dependencies import get_marketplace
from app.schemas import AdminOverview, DashboardStats, RecordsPayload, TierStatsResponse
from app.services.aggregates import (
    compute_admin_overview,
    compute_stats,
    compute_tier_stats,
    total_revenue,
)
from app.services.marketplace import MarketplaceClient, MarketplaceError

logger = logging.getLogger(__name__)

router = APIRouter()


async def fetch_or_empty(fetch: Callable[[], Awaitable[List[Any]]], label: str) -> List[Any]:
    """A failed fetch degrades to an empty dataset; the dashboard shows zeros."""
    try:
        return await fetch()
    except MarketplaceError as e:
        logger.warning(f"Using empty {label} after fetch failure: {e}")
        return []


@router.post("/dashboard", response_model=DashboardStats)
async def dashboard_stats(payload: RecordsPayload):
    return compute_stats(payload.jobs, payload.applications)


@router.post("/tiers", response_model=TierStatsResponse)
async def tier_stats(
    payload: RecordsPayload,
    settings: Settings = Depends(get_settings),
):
    stats = compute_tier_stats(payload.jobs, settings.tier_prices)
    return TierStatsResponse(tiers=list(stats.values()), total_revenue=total_revenue(stats))


@router.post("/overview", response_model=AdminOverview)
async def admin_overview(payload: RecordsPayload):
    return compute_admin_overview(payload.jobs, payload.companies, payload.industries)


@router.get("/employer", response_model=DashboardStats)
async def employer_stats(client: MarketplaceClient = Depends(get_marketplace)):
    jobs = await fetch_or_empty(client.fetch_my_jobs, "jobs")
    applications = await fetch_or_empty(client.fetch_applications, "applications")
    return compute_stats(jobs, applications)
