"""Entry points for host events and site management requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from .config import TrackerSettings
from .engine import (
    accrue_focus,
    accrue_session,
    apply_attention_change,
    close_tab,
    end_site_session,
    ensure_period,
    finalize_active,
    is_site_exhausted,
)
from .enforcement import BLOCKED_BADGE, Badge, BrowserHost, Enforcer, compute_badge
from .errors import MissingIdentifier, NotFound
from .metrics import build_stats, ensure_metrics, rename_site_total
from .models import Site, State
from .sanitize import session_to_dict
from .sites import (
    apply_site_config,
    create_site,
    ensure_unique_domain,
    format_site,
    normalize_site_input,
)
from .store import StateStore
from .timeutils import MINUTES_PER_DAY, now_ms, period_start

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class EventOutcome:
    """What a host event changed from the browser's point of view."""

    badge: Badge
    blocked_site_id: Optional[str] = None
    blocked_tabs: list[int] = field(default_factory=list)


class BudgetService:
    """Runs every operation through the state store and enforces budgets."""

    def __init__(
        self,
        store: StateStore,
        host: BrowserHost,
        settings: Optional[TrackerSettings] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.host = host
        self.settings = settings or TrackerSettings()
        self.enforcer = Enforcer(host, self.settings)
        self._clock = clock

    # Host events

    def attention_changed(
        self,
        tab_id: int,
        url: Optional[str],
        window_id: Optional[int] = None,
        now: Optional[int] = None,
    ) -> EventOutcome:
        now = self._now(now)
        return self._dispatch(
            lambda state: apply_attention_change(state, tab_id, url, window_id, now), now
        )

    def tick(self, now: Optional[int] = None) -> EventOutcome:
        now = self._now(now)

        def mutate(state: State) -> Optional[str]:
            accrue_focus(state, now)
            return accrue_session(state, now)

        return self._dispatch(mutate, now)

    def tab_closed(self, tab_id: int, now: Optional[int] = None) -> EventOutcome:
        now = self._now(now)

        def mutate(state: State) -> None:
            close_tab(state, tab_id, now)

        return self._dispatch(mutate, now)

    def focus_lost(self, now: Optional[int] = None) -> EventOutcome:
        now = self._now(now)
        return self._dispatch(lambda state: finalize_active(state, now), now)

    # Requests

    def list_sites(self, now: Optional[int] = None) -> dict[str, Any]:
        now = self._now(now)

        def mutate(state: State) -> None:
            for site in state.sites.values():
                ensure_period(site, now)

        state, _ = self._commit(mutate, now)
        return {
            "session": session_to_dict(state.session),
            "sites": [format_site(site) for site in state.sites.values()],
        }

    def get_site(self, site_id: Optional[str], now: Optional[int] = None) -> dict[str, Any]:
        _require_id(site_id)
        for site in self.list_sites(now)["sites"]:
            if site["id"] == site_id:
                return site
        raise NotFound()

    def add_site(
        self,
        domain: Optional[str],
        limit_minutes: Any = 0,
        period: Any = "daily",
        window_start: Any = 0,
        window_end: Any = MINUTES_PER_DAY,
        invert_window: bool = False,
        now: Optional[int] = None,
    ) -> dict[str, Any]:
        now = self._now(now)
        config = normalize_site_input(
            domain, limit_minutes, period, window_start, window_end, invert_window
        )

        def mutate(state: State) -> dict[str, Any]:
            ensure_unique_domain(state.sites.values(), config.domain)
            site = create_site(config, now)
            state.sites[site.id] = site
            return format_site(site)

        _, created = self._commit(mutate, now)
        logger.info("Added site %s", created["domain"])
        return created

    def update_site(
        self,
        site_id: Optional[str],
        domain: Optional[str],
        limit_minutes: Any = 0,
        period: Any = "daily",
        window_start: Any = 0,
        window_end: Any = MINUTES_PER_DAY,
        invert_window: bool = False,
        now: Optional[int] = None,
    ) -> dict[str, Any]:
        _require_id(site_id)
        now = self._now(now)
        config = normalize_site_input(
            domain, limit_minutes, period, window_start, window_end, invert_window
        )

        def mutate(state: State) -> dict[str, Any]:
            site = _get_site(state, site_id)
            ensure_unique_domain(state.sites.values(), config.domain, exclude_id=site.id)
            end_site_session(state, site.id, now)
            apply_site_config(site, config, now)
            ensure_period(site, now)
            if is_site_exhausted(site):
                site.last_blocked_at = now
            rename_site_total(state, site, now)
            return format_site(site)

        _, updated = self._commit(mutate, now)
        logger.info("Updated site %s", updated["domain"])
        return updated

    def remove_site(self, site_id: Optional[str], now: Optional[int] = None) -> None:
        _require_id(site_id)
        now = self._now(now)

        def mutate(state: State) -> None:
            site = _get_site(state, site_id)
            end_site_session(state, site.id, now)
            del state.sites[site.id]

        self._commit(mutate, now)
        logger.info("Removed site %s", site_id)

    def reset_usage(self, site_id: Optional[str], now: Optional[int] = None) -> None:
        _require_id(site_id)
        now = self._now(now)

        def mutate(state: State) -> None:
            site = _get_site(state, site_id)
            site.usage_seconds = 0
            site.period_start = period_start(site.period.value, now)
            site.last_updated = now
            site.last_blocked_at = None
            if state.session is not None and state.session.site_id == site.id:
                state.session.last_tick = now

        self._commit(mutate, now)

    def set_enabled(
        self, site_id: Optional[str], enabled: bool, now: Optional[int] = None
    ) -> None:
        _require_id(site_id)
        now = self._now(now)

        def mutate(state: State) -> None:
            site = _get_site(state, site_id)
            site.enabled = bool(enabled)
            site.last_updated = now
            if not site.enabled:
                end_site_session(state, site.id, now)

        self._commit(mutate, now)

    def get_stats(self, now: Optional[int] = None) -> dict[str, Any]:
        now = self._now(now)
        _, stats = self._commit(lambda state: build_stats(ensure_metrics(state, now)), now)
        return stats

    # Internals

    def _now(self, now: Optional[int]) -> int:
        return self._clock() if now is None else now

    def _commit(self, mutator: Callable[[State], T], now: int) -> tuple[State, T]:
        state, result = self.store.mutate(mutator, now)
        self.host.set_badge(compute_badge(state, now))
        return state, result

    def _dispatch(
        self, mutator: Callable[[State], Optional[str]], now: int
    ) -> EventOutcome:
        state, reached = self._commit(mutator, now)
        outcome = EventOutcome(badge=compute_badge(state, now))
        if reached:
            tabs = self.enforcer.enforce_block(state.sites.get(reached), now)
            if tabs is not None:
                outcome.blocked_site_id = reached
                outcome.blocked_tabs = tabs
                outcome.badge = BLOCKED_BADGE
        return outcome


def _require_id(site_id: Optional[str]) -> None:
    if not site_id:
        raise MissingIdentifier()


def _get_site(state: State, site_id: Optional[str]) -> Site:
    site = state.sites.get(site_id or "")
    if site is None:
        raise NotFound()
    return site
