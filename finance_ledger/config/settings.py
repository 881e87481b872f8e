"""
Configuration Management for Finance Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The two open behaviours of the grid (what deleting a parent category
does, and whether a parent's own entries count in its displayed total)
are explicit settings rather than hard-coded guesses.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CategoryDeletePolicy(str, Enum):
    """What happens to the children of a deleted category."""
    CASCADE = "cascade"    # Delete the whole subtree (and its entries)
    REPARENT = "reparent"  # Children move up to the deleted category's parent


class LedgerSettings(BaseSettings):
    """Behaviour of the finance grid core."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_",
        extra="ignore"
    )

    delete_policy: CategoryDeletePolicy = Field(
        default=CategoryDeletePolicy.CASCADE,
        description="Default policy when a category with children is deleted"
    )
    include_parent_direct: bool = Field(
        default=False,
        description="Add a parent's own entries to its displayed rollup"
    )
    inflow_note: str = Field(
        default="Inflow adjustment",
        max_length=200,
        description="Note on the entry created when a cell total goes up"
    )
    outflow_note: str = Field(
        default="Outflow adjustment",
        max_length=200,
        description="Note on the entry created when a cell total goes down"
    )


class CacheSettings(BaseSettings):
    """Local snapshot cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_CACHE_",
        extra="ignore"
    )

    schema_version: str = Field(
        default="v2",
        min_length=1,
        description="Bump to make old snapshots miss instead of failing to parse"
    )
    key_prefix: str = Field(
        default="finance",
        min_length=1,
        description="Namespace for cache keys"
    )
    directory: Path = Field(
        default=Path("./data"),
        description="Directory holding the durable cache file"
    )
    filename: str = Field(
        default="finance-cache.json",
        description="Name of the durable cache file"
    )
    max_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Quota for the whole cache document"
    )

    @property
    def path(self) -> Path:
        """Full path of the cache file."""
        return self.directory / self.filename


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    categories_sheet_name: str = Field(
        default="FinanceCategories",
        description="Name of the sheet for categories"
    )
    entries_sheet_name: str = Field(
        default="FinanceEntries",
        description="Name of the sheet for ledger entries"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_user_id: str = Field(
        default="local",
        min_length=1,
        description="User the grid runs as when no session provides one"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "cache", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
