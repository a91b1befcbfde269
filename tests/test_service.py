"""
Tests for the service facade: host events, site requests and enforcement.
"""

from __future__ import annotations

import pytest

from conftest import at
from site_budget.enforcement import BLOCKED_BADGE, IDLE_BADGE, UNLIMITED_BADGE, Badge
from site_budget.errors import DuplicateDomain, InvalidDomain, InvalidLimit, MissingIdentifier, NotFound

T0 = at(2024, 5, 15, 12, 0)
NEWS_URL = "https://news.example.com/today"


@pytest.fixture()
def news(service):
    return service.add_site("news.example.com", limit_minutes=1, now=T0)


class TestBlockingScenario:
    def test_budget_exhaustion_blocks_every_matching_tab_once(self, service, host, news):
        host.remember_tab(7, NEWS_URL)
        host.remember_tab(8, "http://news.example.com/sports")
        host.remember_tab(9, "https://other.org/")

        service.attention_changed(7, NEWS_URL, 1, now=T0)
        outcomes = [service.tick(now=T0 + 13_000 * step) for step in range(1, 6)]

        assert [o.blocked_site_id for o in outcomes] == [None, None, None, None, news["id"]]
        assert outcomes[-1].blocked_tabs == [7, 8]
        assert outcomes[-1].badge == BLOCKED_BADGE
        commands = host.drain_commands()
        assert [c["tab_id"] for c in commands] == [7, 8]
        assert all(c["url"] == f"blocked.html?siteId={news['id']}" for c in commands)

        site = service.get_site(news["id"], now=T0 + 70_000)
        assert site["usage_seconds"] == 65
        assert site["remaining_seconds"] == 0

        stats = service.get_stats(now=T0 + 70_000)
        assert stats["session_count"] == 1
        assert stats["avg_session_seconds"] == 65
        assert stats["tracked_seconds"] == 65

    def test_returning_to_blocked_site_blocks_again(self, service, host, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.tick(now=T0 + 60_000)
        host.drain_commands()
        host.remember_tab(7, NEWS_URL)

        outcome = service.attention_changed(7, NEWS_URL, 1, now=T0 + 90_000)

        assert outcome.blocked_site_id == news["id"]
        assert outcome.blocked_tabs == [7]
        assert service.list_sites(now=T0 + 90_000)["session"] is None

    def test_disabled_site_is_not_enforced(self, service, news):
        service.set_enabled(news["id"], False, now=T0)
        outcome = service.attention_changed(7, NEWS_URL, 1, now=T0)
        assert outcome.blocked_site_id is None
        assert service.list_sites(now=T0)["session"] is None


class TestBadge:
    def test_badge_shows_remaining_minutes(self, service, host):
        service.add_site("example.com", limit_minutes=10, now=T0)
        outcome = service.attention_changed(1, "https://example.com/", 1, now=T0)
        assert outcome.badge == Badge("10", IDLE_BADGE.color)
        service.tick(now=T0 + 61_000)
        assert host.badge == Badge("9", IDLE_BADGE.color)

    def test_badge_caps_at_99(self, service):
        service.add_site("example.com", limit_minutes=500, now=T0)
        outcome = service.attention_changed(1, "https://example.com/", 1, now=T0)
        assert outcome.badge.text == "99+"

    def test_unlimited_and_idle_badges(self, service):
        service.add_site("example.com", limit_minutes=0, now=T0)
        assert service.attention_changed(1, "https://example.com/", 1, now=T0).badge == UNLIMITED_BADGE
        assert service.focus_lost(now=T0 + 1_000).badge == IDLE_BADGE


class TestSiteRequests:
    def test_add_site_formats_snapshot(self, service):
        site = service.add_site(
            "WWW.Example.COM/path", limit_minutes=30, period="weekly", now=T0
        )
        assert site["domain"] == "example.com"
        assert site["limit_seconds"] == 1800
        assert site["remaining_seconds"] == 1800
        assert site["period_start"] == at(2024, 5, 13)
        assert site["next_reset"] == at(2024, 5, 20)
        assert site["enabled"] is True

    def test_add_rejects_duplicates_and_overlaps(self, service, news):
        with pytest.raises(DuplicateDomain):
            service.add_site("https://www.news.example.com", 5, now=T0)
        with pytest.raises(DuplicateDomain):
            service.add_site("example.com", 5, now=T0)
        with pytest.raises(DuplicateDomain):
            service.add_site("live.news.example.com", 5, now=T0)
        assert len(service.list_sites(now=T0)["sites"]) == 1

    def test_add_validates_input(self, service):
        with pytest.raises(InvalidDomain):
            service.add_site("not a url", 5, now=T0)
        with pytest.raises(InvalidLimit):
            service.add_site("example.com", -1, now=T0)
        with pytest.raises(InvalidLimit):
            service.add_site("example.com", "lots", now=T0)
        assert service.list_sites(now=T0)["sites"] == []

    def test_zero_limit_means_unlimited(self, service):
        site = service.add_site("example.com", 0, now=T0)
        assert site["unlimited"] is True
        assert site["limit_seconds"] is None
        assert site["remaining_seconds"] is None

    def test_update_site(self, service, news):
        other = service.add_site("other.org", 5, now=T0)
        with pytest.raises(DuplicateDomain):
            service.update_site(other["id"], "news.example.com", 5, now=T0)
        with pytest.raises(NotFound):
            service.update_site("missing", "x.org", 5, now=T0)
        with pytest.raises(MissingIdentifier):
            service.update_site("", "x.org", 5, now=T0)

        updated = service.update_site(
            news["id"], "news.example.com", 20, window_start=600, window_end=660, now=T0
        )
        assert updated["limit_minutes"] == 20
        assert (updated["window_start_minutes"], updated["window_end_minutes"]) == (600, 660)
        assert updated["id"] == news["id"]

    def test_update_ends_live_session_and_renames_totals(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.tick(now=T0 + 20_000)
        service.update_site(news["id"], "example.net", 1, now=T0 + 25_000)

        assert service.list_sites(now=T0 + 25_000)["session"] is None
        stats = service.get_stats(now=T0 + 25_000)
        assert stats["session_count"] == 1
        assert stats["top_sites"][0]["domain"] == "example.net"
        assert stats["top_sites"][0]["seconds"] == 25

    def test_update_marks_already_exhausted_site(self, service):
        site = service.add_site("example.com", 5, now=T0)
        service.attention_changed(7, "https://example.com/", 1, now=T0)
        service.tick(now=T0 + 90_000)

        updated = service.update_site(site["id"], "example.com", 1, now=T0 + 95_000)

        assert updated["usage_seconds"] == 95
        assert updated["remaining_seconds"] == 0
        assert updated["last_blocked_at"] == T0 + 95_000

    def test_fractional_limits_round_up_to_a_minute(self, service):
        site = service.add_site("example.com", 0.5, now=T0)
        assert site["limit_seconds"] == 60
        assert site["limit_minutes"] == 1

    def test_remove_site(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.remove_site(news["id"], now=T0 + 10_000)
        listing = service.list_sites(now=T0 + 10_000)
        assert listing["sites"] == []
        assert listing["session"] is None
        assert service.get_stats(now=T0 + 10_000)["session_count"] == 1
        with pytest.raises(NotFound):
            service.remove_site(news["id"])
        with pytest.raises(MissingIdentifier):
            service.remove_site(None)

    def test_reset_usage(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.tick(now=T0 + 60_000)
        service.reset_usage(news["id"], now=T0 + 61_000)
        site = service.get_site(news["id"], now=T0 + 61_000)
        assert site["usage_seconds"] == 0
        assert site["last_blocked_at"] is None
        with pytest.raises(NotFound):
            service.reset_usage("missing")

    def test_reset_moves_live_session_tick(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.reset_usage(news["id"], now=T0 + 30_000)
        service.tick(now=T0 + 40_000)
        assert service.get_site(news["id"], now=T0 + 40_000)["usage_seconds"] == 10

    def test_disable_ends_session(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.set_enabled(news["id"], False, now=T0 + 15_000)
        listing = service.list_sites(now=T0 + 15_000)
        assert listing["session"] is None
        assert listing["sites"][0]["enabled"] is False
        assert listing["sites"][0]["usage_seconds"] == 15
        with pytest.raises(NotFound):
            service.set_enabled("missing", True)

    def test_listing_rolls_stale_periods(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.tick(now=T0 + 60_000)
        tomorrow = at(2024, 5, 16, 8, 0)
        site = service.list_sites(now=tomorrow)["sites"][0]
        assert site["usage_seconds"] == 0
        assert site["period_start"] == at(2024, 5, 16)
        assert site["last_blocked_at"] is None

    def test_get_site_errors(self, service):
        with pytest.raises(MissingIdentifier):
            service.get_site("")
        with pytest.raises(NotFound):
            service.get_site("missing")


class TestStatsRollover:
    def test_next_day_archives_previous_totals(self, service):
        service.add_site("example.com", 0, now=T0)
        service.attention_changed(1, "https://example.com/", 1, now=T0)
        service.tick(now=T0 + 500_000)
        service.focus_lost(now=T0 + 500_000)

        stats = service.get_stats(now=at(2024, 5, 16, 9, 0))

        assert stats["today_seconds"] == 0
        assert stats["tracked_seconds"] == 0
        assert stats["trend"] == [
            {"day_key": "2024-05-15", "total_seconds": 500},
            {"day_key": "2024-05-16", "total_seconds": 0},
        ]


class TestTabClosed:
    def test_closing_attended_tab_finalizes(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.tab_closed(7, now=T0 + 12_000)
        assert service.list_sites(now=T0 + 12_000)["session"] is None
        stats = service.get_stats(now=T0 + 12_000)
        assert stats["today_seconds"] == 12
        assert stats["session_count"] == 1

    def test_closing_other_tab_keeps_session(self, service, news):
        service.attention_changed(7, NEWS_URL, 1, now=T0)
        service.tab_closed(3, now=T0 + 12_000)
        assert service.list_sites(now=T0 + 12_000)["session"]["tab_id"] == 7
