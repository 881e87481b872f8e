"""Configuration package."""

from finance_ledger.config.settings import (
    AppSettings,
    CacheSettings,
    CategoryDeletePolicy,
    GoogleSheetsSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "CategoryDeletePolicy",
    "GoogleSheetsSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
