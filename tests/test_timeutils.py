"""
Tests for calendar helpers (site_budget/timeutils.py).
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from conftest import at
from site_budget.timeutils import (
    day_key,
    is_within_active_window,
    minutes_since_midnight,
    next_period_start,
    normalize_window_bounds,
    period_start,
)


def window(start: int, end: int, invert: bool = False) -> SimpleNamespace:
    return SimpleNamespace(
        window_start_minutes=start, window_end_minutes=end, invert_window=invert
    )


class TestPeriodStart:
    def test_daily_truncates_to_midnight(self):
        assert period_start("daily", at(2024, 5, 15, 15, 42, 7)) == at(2024, 5, 15)

    def test_weekly_from_wednesday_rewinds_to_monday(self):
        assert period_start("weekly", at(2024, 5, 15, 15, 30)) == at(2024, 5, 13)

    def test_weekly_on_monday_stays_on_monday(self):
        assert period_start("weekly", at(2024, 5, 13, 0, 0, 1)) == at(2024, 5, 13)

    def test_weekly_on_sunday_uses_previous_monday(self):
        assert period_start("weekly", at(2024, 5, 19, 23, 59)) == at(2024, 5, 13)

    def test_unknown_period_behaves_like_daily(self):
        assert period_start("monthly", at(2024, 5, 15, 9)) == at(2024, 5, 15)

    def test_next_period_start(self):
        assert next_period_start("daily", at(2024, 5, 15)) == at(2024, 5, 16)
        assert next_period_start("weekly", at(2024, 5, 13)) == at(2024, 5, 20)


class TestDayKey:
    def test_formats_local_date(self):
        assert day_key(at(2024, 1, 3, 8, 0)) == "2024-01-03"

    def test_minutes_since_midnight(self):
        assert minutes_since_midnight(at(2024, 1, 3, 8, 15, 59)) == 495


class TestWindowBounds:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ((600, 600), (0, 1440)),
            ((-5, 2000), (0, 1440)),
            ((540, 1020), (540, 1020)),
            ((1380, 360), (1380, 360)),
            ((1440, 360), (0, 360)),
            ((1380, 0), (1380, 1440)),
            (("abc", 60), (0, 60)),
            ((None, None), (0, 1440)),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_window_bounds(*raw) == expected

    def test_normalized_bounds_never_equal(self):
        for start in range(0, 1441, 120):
            for end in range(0, 1441, 120):
                low, high = normalize_window_bounds(start, end)
                assert low != high


class TestActiveWindow:
    def test_all_day_window_is_always_active(self):
        site = window(0, 1440)
        assert is_within_active_window(site, at(2024, 5, 15, 0, 0))
        assert is_within_active_window(site, at(2024, 5, 15, 23, 59))

    def test_daytime_window_is_half_open(self):
        site = window(540, 1020)
        assert not is_within_active_window(site, at(2024, 5, 15, 8, 59))
        assert is_within_active_window(site, at(2024, 5, 15, 9, 0))
        assert is_within_active_window(site, at(2024, 5, 15, 16, 59))
        assert not is_within_active_window(site, at(2024, 5, 15, 17, 0))

    def test_overnight_window(self):
        site = window(1380, 360)
        assert is_within_active_window(site, at(2024, 5, 15, 23, 30))
        assert is_within_active_window(site, at(2024, 5, 15, 5, 59))
        assert not is_within_active_window(site, at(2024, 5, 15, 6, 0))
        assert not is_within_active_window(site, at(2024, 5, 15, 12, 0))

    def test_inverted_window(self):
        site = window(540, 1020, invert=True)
        assert is_within_active_window(site, at(2024, 5, 15, 7, 0))
        assert not is_within_active_window(site, at(2024, 5, 15, 12, 0))

    @pytest.mark.parametrize("bounds", [(0, 1440), (540, 1020), (1380, 360), (10, 11)])
    def test_inversion_is_the_complement(self, bounds):
        for hour in range(24):
            for minute in (0, 30):
                now = at(2024, 5, 15, hour, minute)
                plain = is_within_active_window(window(*bounds), now)
                inverted = is_within_active_window(window(*bounds, invert=True), now)
                assert plain is not inverted
