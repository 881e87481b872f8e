"""Ledger core: category trees, rollups, reconciliation and clipboard."""

from finance_ledger.ledger.aggregation import (
    CyclicCategoryGraph,
    balance,
    compute_rollups,
    find_cycles,
    monthly_totals,
)
from finance_ledger.ledger.clipboard import (
    ClipboardError,
    ClipboardSession,
    EmptyClipboardPaste,
    EmptySourceCopy,
    build_paste_entries,
)
from finance_ledger.ledger.export import (
    ImportedLedger,
    export_to_csv,
    export_to_json,
    parse_json_import,
)
from finance_ledger.ledger.reconciliation import (
    PlannedAdjustment,
    build_adjustment_entry,
    current_total,
    next_position,
    plan_adjustment,
)
from finance_ledger.ledger.tree import (
    CategoryTree,
    direct_values_from_entries,
    display_rows,
    entry_counts_from_entries,
)

__all__ = [
    # Tree
    "CategoryTree",
    "direct_values_from_entries",
    "display_rows",
    "entry_counts_from_entries",
    # Aggregation
    "CyclicCategoryGraph",
    "balance",
    "compute_rollups",
    "find_cycles",
    "monthly_totals",
    # Reconciliation
    "PlannedAdjustment",
    "build_adjustment_entry",
    "current_total",
    "next_position",
    "plan_adjustment",
    # Clipboard
    "ClipboardError",
    "ClipboardSession",
    "EmptyClipboardPaste",
    "EmptySourceCopy",
    "build_paste_entries",
    # Export
    "ImportedLedger",
    "export_to_csv",
    "export_to_json",
    "parse_json_import",
]
