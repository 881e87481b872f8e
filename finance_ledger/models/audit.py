"""
Audit Models for the Finance Ledger

Every ledger mutation made through the grid is logged for audit purposes.
Together with the append-only reconciliation entries this makes it
possible to reconstruct how a cell reached its current value.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entries
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    ENTRIES_REORDERED = "entries_reordered"

    # Cells
    CELL_RECONCILED = "cell_reconciled"
    CELL_COPIED = "cell_copied"
    CELL_PASTED = "cell_pasted"

    # Category structure
    CATEGORY_CREATED = "category_created"
    CATEGORY_RENAMED = "category_renamed"
    CATEGORY_DELETED = "category_deleted"

    # Loading
    LEDGER_LOADED = "ledger_loaded"
    LOAD_DISCARDED = "load_discarded"

    # Failures
    REMOTE_WRITE_FAILED = "remote_write_failed"
    CYCLIC_CATEGORY_GRAPH = "cyclic_category_graph"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'cell', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one paste and its inserts)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.user_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


def _cell(category_id: str, month: int, year: int) -> dict:
    return {"category_id": category_id, "month": month, "year": year}


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.cell_reconciled(user_id, category_id, 0, 2024, ...)
        event = AuditEventBuilder.category_deleted(user_id, category_id, ...)
    """

    @staticmethod
    def entry_created(
        user_id: str,
        entry_id: str,
        category_id: str,
        month: int,
        year: int,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            entity_type="entry",
            entity_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Entry created: {amount}",
            details={**_cell(category_id, month, year), "amount": str(amount)},
            is_user_action=True,
        )

    @staticmethod
    def entry_updated(
        user_id: str,
        entry_id: str,
        changes: dict,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Entry updated: {', '.join(sorted(changes))}",
            details={key: str(value) for key, value in changes.items()},
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        user_id: str,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Entry deleted",
            is_user_action=True,
        )

    @staticmethod
    def entries_reordered(
        user_id: str,
        category_id: str,
        month: int,
        year: int,
        entry_ids: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRIES_REORDERED,
            entity_type="cell",
            entity_id=category_id,
            user_id=user_id,
            description=f"Reordered {len(entry_ids)} entries",
            details={**_cell(category_id, month, year), "entry_ids": entry_ids},
            is_user_action=True,
        )

    @staticmethod
    def cell_reconciled(
        user_id: str,
        category_id: str,
        month: int,
        year: int,
        previous_total: Decimal,
        new_total: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CELL_RECONCILED,
            entity_type="cell",
            entity_id=category_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Cell total set from {previous_total} to {new_total}",
            details={
                **_cell(category_id, month, year),
                "previous_total": str(previous_total),
                "new_total": str(new_total),
                "adjustment": str(new_total - previous_total),
            },
            is_user_action=True,
        )

    @staticmethod
    def cell_copied(
        user_id: str,
        category_id: str,
        month: int,
        year: int,
        record_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CELL_COPIED,
            entity_type="cell",
            entity_id=category_id,
            user_id=user_id,
            description=f"Copied {record_count} entries",
            details={**_cell(category_id, month, year), "record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def cell_pasted(
        user_id: str,
        category_id: str,
        month: int,
        year: int,
        entry_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CELL_PASTED,
            entity_type="cell",
            entity_id=category_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Pasted {len(entry_ids)} entries",
            details={**_cell(category_id, month, year), "entry_ids": entry_ids},
            is_user_action=True,
        )

    @staticmethod
    def category_created(
        user_id: str,
        category_id: str,
        name: str,
        money_type: str,
        parent_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            description=f"Category created: {name}",
            details={"name": name, "type": money_type, "parent_id": parent_id},
            is_user_action=True,
        )

    @staticmethod
    def category_renamed(
        user_id: str,
        category_id: str,
        old_name: str,
        new_name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RENAMED,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            description=f"Category renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        user_id: str,
        category_id: str,
        policy: str,
        deleted_ids: list[str],
        reparented_ids: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            description=f"Category deleted ({policy}), {len(deleted_ids)} removed",
            details={
                "policy": policy,
                "deleted_ids": deleted_ids,
                "reparented_ids": reparented_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def ledger_loaded(
        user_id: str,
        year: int,
        category_count: int,
        entry_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            user_id=user_id,
            description=f"Loaded {category_count} categories and {entry_count} entries for {year}",
            details={"year": year, "category_count": category_count, "entry_count": entry_count},
        )

    @staticmethod
    def load_discarded(user_id: str, year: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAD_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type="ledger",
            user_id=user_id,
            description=f"Discarded superseded load for {year}",
            details={"year": year},
        )

    @staticmethod
    def remote_write_failed(
        user_id: str,
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Remote write failed: {operation}",
            error_message=error_message,
            details={"operation": operation, **(details or {})},
        )

    @staticmethod
    def cyclic_category_graph(user_id: str, cycles: list[list[str]]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CYCLIC_CATEGORY_GRAPH,
            severity=AuditSeverity.ERROR,
            entity_type="category",
            user_id=user_id,
            description=f"Category parents form {len(cycles)} cycle(s)",
            details={"cycles": cycles},
        )
