"""
Shared fixtures for the finance ledger tests.

No real API calls are made: the ledger store is the in-memory one and
the cache sits on an in-memory key-value store.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from finance_ledger.config import CategoryDeletePolicy, LedgerSettings
from finance_ledger.ledger.clipboard import ClipboardSession
from finance_ledger.models.ledger import Category, Entry, MoneyType
from finance_ledger.orchestrator import FinanceGrid
from finance_ledger.services.cache import FinanceCache, InMemoryKeyValueStore
from finance_ledger.services.storage import InMemoryFinanceStore


USER = "user-1"
YEAR = 2024

_BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)


def make_category(id, name, type=MoneyType.INCOME, parent_id=None, order=0):
    """Category with a deterministic creation time."""
    return Category(
        id=id,
        user_id=USER,
        name=name,
        type=type,
        parent_id=parent_id,
        created_at=_BASE_TIME + timedelta(minutes=order),
    )


def make_entry(category_id, month, amount, position=0, included=True, note=None, year=YEAR, id=None):
    fields = dict(
        user_id=USER,
        category_id=category_id,
        year=year,
        month=month,
        amount=Decimal(str(amount)),
        note=note,
        included=included,
        position=position,
        created_at=_BASE_TIME + timedelta(seconds=position),
    )
    if id is not None:
        fields["id"] = id
    return Entry(**fields)


@pytest.fixture
def salary_categories():
    """Salary (root) with Bonus under it, plus an unrelated expense root."""
    return [
        make_category("1", "Salary", order=0),
        make_category("2", "Bonus", parent_id="1", order=1),
        make_category("3", "Rent", type=MoneyType.EXPENSE, order=2),
    ]


@pytest.fixture
def store(salary_categories):
    return InMemoryFinanceStore(
        categories=salary_categories,
        entries=[
            make_entry("2", 0, 100, id="bonus-jan"),
            make_entry("3", 0, 40, id="rent-jan"),
        ],
    )


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(kv_store):
    return FinanceCache(kv_store)


@pytest.fixture
def ledger_settings():
    return LedgerSettings(delete_policy=CategoryDeletePolicy.CASCADE, include_parent_direct=False)


@pytest.fixture
def grid(store, cache, ledger_settings):
    return FinanceGrid(
        store=store,
        cache=cache,
        user_id=USER,
        clipboard=ClipboardSession(),
        settings=ledger_settings,
    )
