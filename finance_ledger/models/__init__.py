"""
Data Models Package

This package contains all Pydantic models used by the finance ledger core.
All data flowing through the system must conform to these schemas.
"""

from finance_ledger.models.ledger import (
    MONTHS_IN_YEAR,
    CacheSnapshot,
    Category,
    CategorySnapshot,
    CellAddress,
    ClipboardRecord,
    Entry,
    EntryPatch,
    MoneyType,
    ValidationIssue,
    ValidationResult,
    new_id,
    normalize_months,
    zero_months,
)
from finance_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MONTHS_IN_YEAR",
    "CacheSnapshot",
    "Category",
    "CategorySnapshot",
    "CellAddress",
    "ClipboardRecord",
    "Entry",
    "EntryPatch",
    "MoneyType",
    "ValidationIssue",
    "ValidationResult",
    "new_id",
    "normalize_months",
    "zero_months",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
