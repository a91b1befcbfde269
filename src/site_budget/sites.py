"""Site configuration: input validation, lookup and display formatting."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .errors import DuplicateDomain, InvalidLimit
from .models import Budget, Period, Site
from .normalization import domains_overlap, host_matches, normalize_domain
from .timeutils import MINUTES_PER_DAY, next_period_start, normalize_window_bounds, period_start


@dataclass(frozen=True, slots=True)
class SiteConfig:
    """Validated, user-editable settings of a site."""

    domain: str
    budget: Budget
    period: Period
    window_start_minutes: int
    window_end_minutes: int
    invert_window: bool


def normalize_site_input(
    domain: Optional[str],
    limit_minutes: Any = 0,
    period: Any = Period.DAILY,
    window_start: Any = 0,
    window_end: Any = MINUTES_PER_DAY,
    invert_window: bool = False,
) -> SiteConfig:
    """Validate raw form values. Raises ``InvalidDomain`` or ``InvalidLimit``."""
    canonical = normalize_domain(domain)
    budget = _parse_budget(limit_minutes)
    start, end = normalize_window_bounds(window_start, window_end)
    return SiteConfig(
        domain=canonical,
        budget=budget,
        period=Period.parse(period),
        window_start_minutes=start,
        window_end_minutes=end,
        invert_window=bool(invert_window),
    )


def _parse_budget(raw: Any) -> Budget:
    if raw is None or raw == "":
        return Budget.unlimited()
    if isinstance(raw, bool):
        raise InvalidLimit()
    try:
        minutes = float(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidLimit() from exc
    if minutes == 0:
        return Budget.unlimited()
    if not math.isfinite(minutes) or minutes < 0:
        raise InvalidLimit()
    return Budget.from_minutes(minutes)


def create_site(config: SiteConfig, now: int, site_id: Optional[str] = None) -> Site:
    return Site(
        id=site_id or str(uuid.uuid4()),
        domain=config.domain,
        period=config.period,
        budget=config.budget,
        enabled=True,
        window_start_minutes=config.window_start_minutes,
        window_end_minutes=config.window_end_minutes,
        invert_window=config.invert_window,
        usage_seconds=0,
        period_start=period_start(config.period.value, now),
        created_at=now,
        last_updated=now,
        last_blocked_at=None,
    )


def apply_site_config(site: Site, config: SiteConfig, now: int) -> None:
    site.domain = config.domain
    site.budget = config.budget
    site.period = config.period
    site.window_start_minutes = config.window_start_minutes
    site.window_end_minutes = config.window_end_minutes
    site.invert_window = config.invert_window
    site.last_updated = now


def find_site_for_host(sites: dict[str, Site], host: Optional[str]) -> Optional[Site]:
    """First configured site whose domain is ``host`` or a parent of it."""
    for site in sites.values():
        if host_matches(site.domain, host):
            return site
    return None


def ensure_unique_domain(
    sites: Iterable[Site], domain: str, exclude_id: Optional[str] = None
) -> None:
    """Reject a domain that equals or nests with another configured domain.

    Overlapping domains would make host lookup depend on insertion order.
    """
    for candidate in sites:
        if candidate.id == exclude_id:
            continue
        if candidate.domain == domain:
            if exclude_id is None:
                raise DuplicateDomain()
            raise DuplicateDomain("Another site already uses that domain.")
        if domains_overlap(candidate.domain, domain):
            raise DuplicateDomain(
                f"{domain} overlaps with the configured site {candidate.domain}."
            )


def format_site(site: Site) -> dict[str, Any]:
    """Plain-data snapshot of a site for list views and the block page."""
    start = site.period_start
    if start is None:
        start = period_start(site.period.value, site.created_at)
    return {
        "id": site.id,
        "domain": site.domain,
        "period": site.period.value,
        "limit_minutes": site.budget.minutes,
        "limit_seconds": site.budget.seconds,
        "unlimited": site.budget.is_unlimited,
        "usage_seconds": site.usage_seconds,
        "remaining_seconds": site.budget.remaining(site.usage_seconds),
        "period_start": start,
        "next_reset": next_period_start(site.period.value, start),
        "enabled": site.enabled,
        "window_start_minutes": site.window_start_minutes,
        "window_end_minutes": site.window_end_minutes,
        "invert_window": site.invert_window,
        "created_at": site.created_at,
        "last_updated": site.last_updated,
        "last_blocked_at": site.last_blocked_at,
    }
