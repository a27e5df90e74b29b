"""
Enum Normalizer - Canonical tokens for tier and status fields

Tier and status values reach us under several spellings accumulated over
schema revisions ("MegaJob", "mega_job", "MEGA_JOB", "premium_job", ...).
Every lookup is a case-insensitive hit against a declared alias table; any
other input takes a configured fallback token. The functions are total:
every input yields a canonical token and nothing raises.

Unmapped, non-empty input is logged and counted (unmapped_enum_values_total)
so new server-side values surface instead of silently merging into the
fallback bucket. Both the fallback and the warning are controlled from
Settings (tier_fallback, job_status_fallback, application_status_fallback,
warn_on_unmapped_enums).
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from app.config import get_settings
from app.middleware.metrics import record_unmapped_enum

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_NON_DIGIT_RE = re.compile(r"[^\d]")


class TierToken(str, Enum):
    """Canonical job tiers, most prominent placement first."""

    MEGAJOB = "megajob"
    PREMIUM = "premium"
    PRIME = "prime"
    LATEST = "latest"
    NEWSPAPER = "newspaper"


class JobStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CLOSED = "closed"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    INTERVIEW = "interview"
    HIRED = "hired"
    REJECTED = "rejected"


# Statuses that take a job off the dashboard's active count
INACTIVE_JOB_STATUSES = frozenset({JobStatus.CLOSED, JobStatus.EXPIRED})

TIER_FALLBACK = TierToken.LATEST
JOB_STATUS_FALLBACK = JobStatus.ACTIVE
APPLICATION_STATUS_FALLBACK = ApplicationStatus.PENDING

# Keys are lowercase; lookups lowercase and trim the input first.
TIER_ALIASES: Dict[str, TierToken] = {
    "megajob": TierToken.MEGAJOB,
    "mega_job": TierToken.MEGAJOB,
    "mega-job": TierToken.MEGAJOB,
    "mega job": TierToken.MEGAJOB,
    "premium": TierToken.PREMIUM,
    "premium_job": TierToken.PREMIUM,
    "premium job": TierToken.PREMIUM,
    "prime": TierToken.PRIME,
    "prime_job": TierToken.PRIME,
    "prime job": TierToken.PRIME,
    "latest": TierToken.LATEST,
    "latest_job": TierToken.LATEST,
    "latest jobs": TierToken.LATEST,
    "newspaper": TierToken.NEWSPAPER,
    "newspaper_job": TierToken.NEWSPAPER,
    "newspaper jobs": TierToken.NEWSPAPER,
}

JOB_STATUS_ALIASES: Dict[str, JobStatus] = {
    "active": JobStatus.ACTIVE,
    "approved": JobStatus.ACTIVE,
    "published": JobStatus.ACTIVE,
    "open": JobStatus.ACTIVE,
    "live": JobStatus.ACTIVE,
    "pending": JobStatus.PENDING,
    "pending_approval": JobStatus.PENDING,
    "awaiting_approval": JobStatus.PENDING,
    "draft": JobStatus.PENDING,
    "rejected": JobStatus.REJECTED,
    "declined": JobStatus.REJECTED,
    "expired": JobStatus.EXPIRED,
    "archived": JobStatus.EXPIRED,
    "closed": JobStatus.CLOSED,
    "filled": JobStatus.CLOSED,
    "inactive": JobStatus.CLOSED,
}

APPLICATION_STATUS_ALIASES: Dict[str, ApplicationStatus] = {
    "pending": ApplicationStatus.PENDING,
    "applied": ApplicationStatus.PENDING,
    "submitted": ApplicationStatus.PENDING,
    "new": ApplicationStatus.PENDING,
    "reviewing": ApplicationStatus.PENDING,
    "reviewed": ApplicationStatus.PENDING,
    "shortlisted": ApplicationStatus.SHORTLISTED,
    "short_listed": ApplicationStatus.SHORTLISTED,
    "short-listed": ApplicationStatus.SHORTLISTED,
    "interview": ApplicationStatus.INTERVIEW,
    "interviewing": ApplicationStatus.INTERVIEW,
    "interview_scheduled": ApplicationStatus.INTERVIEW,
    "hired": ApplicationStatus.HIRED,
    "accepted": ApplicationStatus.HIRED,
    "selected": ApplicationStatus.HIRED,
    "rejected": ApplicationStatus.REJECTED,
    "declined": ApplicationStatus.REJECTED,
    "not_selected": ApplicationStatus.REJECTED,
}


@dataclass(frozen=True)
class TierInfo:
    """Display metadata for one canonical tier."""
    token: TierToken
    label: str
    description: str


TIER_CATALOG: Dict[TierToken, TierInfo] = {
    TierToken.MEGAJOB: TierInfo(TierToken.MEGAJOB, "MegaJob", "Premium placement with maximum visibility"),
    TierToken.PREMIUM: TierInfo(TierToken.PREMIUM, "Premium", "Enhanced visibility and special highlighting"),
    TierToken.PRIME: TierInfo(TierToken.PRIME, "Prime", "Featured placement with priority listing"),
    TierToken.LATEST: TierInfo(TierToken.LATEST, "Latest", "Standard job posting"),
    TierToken.NEWSPAPER: TierInfo(TierToken.NEWSPAPER, "Newspaper", "Basic listing for newspaper jobs"),
}


def _normalize(
    value: Any,
    enum_cls: Type[E],
    aliases: Mapping[str, E],
    fallback: E,
    field: str,
    warn: bool,
) -> E:
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return fallback
    text = str(value).strip().lower()
    if not text:
        return fallback
    token = aliases.get(text)
    if token is None:
        if warn:
            logger.warning(f"Unmapped {field} value {value!r}, using '{fallback.value}'")
            record_unmapped_enum(field)
        return fallback
    return token


def _resolve_fallback(
    configured: Any,
    enum_cls: Type[E],
    aliases: Mapping[str, E],
    default: E,
) -> E:
    """A configured fallback must itself be canonical; anything else uses the default."""
    if isinstance(configured, enum_cls):
        return configured
    if configured is None:
        return default
    return aliases.get(str(configured).strip().lower(), default)


def _warn_enabled(warn: Optional[bool]) -> bool:
    if warn is not None:
        return warn
    return get_settings().warn_on_unmapped_enums


def normalize_tier(
    value: Any,
    fallback: Optional[Any] = None,
    warn: Optional[bool] = None,
) -> TierToken:
    """
    Map a tier spelling to its canonical token.

    Args:
        value: Raw tier (any case, legacy alias, None)
        fallback: Token for unknown/empty input (defaults to settings.tier_fallback)
        warn: Log/count unmapped input (defaults to settings.warn_on_unmapped_enums)

    Returns:
        TierToken; never raises
    """
    if fallback is None:
        fallback = get_settings().tier_fallback
    resolved = _resolve_fallback(fallback, TierToken, TIER_ALIASES, TIER_FALLBACK)
    return _normalize(value, TierToken, TIER_ALIASES, resolved, "tier", _warn_enabled(warn))


def normalize_job_status(
    value: Any,
    fallback: Optional[Any] = None,
    warn: Optional[bool] = None,
) -> JobStatus:
    if fallback is None:
        fallback = get_settings().job_status_fallback
    resolved = _resolve_fallback(fallback, JobStatus, JOB_STATUS_ALIASES, JOB_STATUS_FALLBACK)
    return _normalize(value, JobStatus, JOB_STATUS_ALIASES, resolved, "job_status", _warn_enabled(warn))


def normalize_application_status(
    value: Any,
    fallback: Optional[Any] = None,
    warn: Optional[bool] = None,
) -> ApplicationStatus:
    if fallback is None:
        fallback = get_settings().application_status_fallback
    resolved = _resolve_fallback(
        fallback, ApplicationStatus, APPLICATION_STATUS_ALIASES, APPLICATION_STATUS_FALLBACK
    )
    return _normalize(
        value,
        ApplicationStatus,
        APPLICATION_STATUS_ALIASES,
        resolved,
        "application_status",
        _warn_enabled(warn),
    )


def is_active_job_status(status: Any) -> bool:
    """Dashboard notion of "active": anything not closed or expired."""
    return normalize_job_status(status) not in INACTIVE_JOB_STATUSES


def get_tier_label(tier: Any) -> str:
    """Display label for a tier; unknown input labels as the fallback tier."""
    return TIER_CATALOG[normalize_tier(tier, warn=False)].label


def tier_price(tier: Any, prices: Optional[Mapping[str, Any]] = None) -> str:
    """
    Formatted price configured for a tier.

    Price table keys may use any alias spelling; "Free" when unconfigured.
    """
    if prices is None:
        prices = get_settings().tier_prices
    token = normalize_tier(tier, warn=False)
    for key, price in prices.items():
        if _alias_known(key) and normalize_tier(key, warn=False) == token:
            return str(price)
    return "Free"


def _alias_known(key: Any) -> bool:
    return isinstance(key, TierToken) or str(key).strip().lower() in TIER_ALIASES


def unit_price(price: Any) -> int:
    """
    Numeric unit price from a formatted price.

    "Free" (any case, anywhere in the string) is 0. Otherwise every non-digit
    character is stripped, so "Rs. 5,000" is 5000. Unparseable input is 0.
    """
    if price is None or isinstance(price, bool):
        return 0
    if isinstance(price, int):
        return max(price, 0)
    if isinstance(price, float):
        return max(int(price), 0) if math.isfinite(price) else 0
    text = str(price)
    if "free" in text.lower():
        return 0
    digits = _NON_DIGIT_RE.sub("", text)
    if not digits:
        return 0
    return int(digits)
