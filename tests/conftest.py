"""
Shared pytest fixtures.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from site_budget.config import TrackerSettings
from site_budget.enforcement import TabRegistryHost
from site_budget.service import BudgetService
from site_budget.store import StateStore
from site_budget.timeutils import from_local


def at(*args: int) -> int:
    """Epoch milliseconds for a local wall-clock time."""
    return from_local(datetime(*args))


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "budget.sqlite3"


@pytest.fixture()
def store(db_path):
    return StateStore(db_path)


@pytest.fixture()
def host():
    return TabRegistryHost()


@pytest.fixture()
def service(store, host):
    return BudgetService(store, host, TrackerSettings(), clock=lambda: at(2024, 5, 15, 12, 0))
