"""Blocking of exhausted sites and badge display intents for the host browser."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote

from .config import TrackerSettings
from .models import Site, State
from .normalization import url_matches_patterns, url_patterns
from .timeutils import is_within_active_window

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Badge:
    text: str
    color: str


IDLE_BADGE = Badge("", "#1a73e8")
UNLIMITED_BADGE = Badge("∞", "#6366f1")
BLOCKED_BADGE = Badge("STOP", "#d93025")


def compute_badge(state: State, now: int) -> Badge:
    """Badge for the live session: remaining minutes, unlimited, or stop."""
    session = state.session
    if session is None:
        return IDLE_BADGE
    site = state.sites.get(session.site_id)
    if site is None or not site.enabled or not is_within_active_window(site, now):
        return IDLE_BADGE
    remaining = site.budget.remaining(site.usage_seconds)
    if remaining is None:
        return UNLIMITED_BADGE
    if remaining <= 0:
        return BLOCKED_BADGE
    minutes = math.ceil(remaining / 60)
    return Badge("99+" if minutes > 99 else str(minutes), IDLE_BADGE.color)


class BrowserHost(Protocol):
    """Operations the engine needs from the browser it runs against."""

    def query_tabs(self, patterns: list[str]) -> list[int]: ...

    def navigate(self, tab_id: int, url: str) -> None: ...

    def set_badge(self, badge: Badge) -> None: ...


class TabRegistryHost:
    """Host adapter that mirrors reported tabs and queues commands for pickup.

    The browser-side adapter reports tab URLs through attention events and
    periodically drains the queued navigate commands and badge.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tabs: dict[int, str] = {}
        self._commands: list[dict[str, Any]] = []
        self._badge = IDLE_BADGE

    @property
    def badge(self) -> Badge:
        with self._lock:
            return self._badge

    def remember_tab(self, tab_id: int, url: Optional[str]) -> None:
        with self._lock:
            if url:
                self._tabs[tab_id] = url
            else:
                self._tabs.pop(tab_id, None)

    def forget_tab(self, tab_id: int) -> None:
        with self._lock:
            self._tabs.pop(tab_id, None)

    def query_tabs(self, patterns: list[str]) -> list[int]:
        with self._lock:
            return sorted(
                tab_id
                for tab_id, url in self._tabs.items()
                if url_matches_patterns(url, patterns)
            )

    def navigate(self, tab_id: int, url: str) -> None:
        with self._lock:
            self._tabs[tab_id] = url
            self._commands.append({"type": "navigate", "tab_id": tab_id, "url": url})

    def set_badge(self, badge: Badge) -> None:
        with self._lock:
            self._badge = badge

    def drain_commands(self) -> list[dict[str, Any]]:
        with self._lock:
            commands, self._commands = self._commands, []
        return commands


class Enforcer:
    """Replaces every tab of an exhausted site with the block page."""

    def __init__(self, host: BrowserHost, settings: TrackerSettings) -> None:
        self.host = host
        self.settings = settings

    def block_url(self, site_id: str) -> str:
        return self.settings.block_page_url.format(site_id=quote(site_id, safe=""))

    def enforce_block(self, site: Optional[Site], now: int) -> Optional[list[int]]:
        """Block ``site`` in all open tabs; ``None`` when the block no longer applies."""
        if site is None or not site.enabled:
            return None
        if not is_within_active_window(site, now):
            logger.debug("Skipping block for %s outside its active window", site.domain)
            return None

        target = self.block_url(site.id)
        tab_ids = self.host.query_tabs(url_patterns(site.domain))
        for tab_id in tab_ids:
            self.host.navigate(tab_id, target)
        self.host.set_badge(BLOCKED_BADGE)
        logger.info("Blocked %s in %d tab(s)", site.domain, len(tab_ids))
        return tab_ids
