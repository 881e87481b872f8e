"""
Cell Reconciliation

Turns "set this cell's total to X" into at most one new ledger entry.

DESIGN DECISION: Existing entries are never rewritten to reach a target
total. The difference is appended as a single offsetting entry, so the
entry list stays append-only and every past value can be explained.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from finance_ledger.models.ledger import CellAddress, Entry


DEFAULT_INFLOW_NOTE = "Inflow adjustment"
DEFAULT_OUTFLOW_NOTE = "Outflow adjustment"


@dataclass(frozen=True)
class PlannedAdjustment:
    """The single entry that moves a cell from its current to its target total."""
    amount: Decimal
    note: str
    previous_total: Decimal
    new_total: Decimal


def current_total(entries: Iterable[Entry]) -> Decimal:
    """Sum of the included entries' amounts."""
    return sum((e.amount for e in entries if e.included), Decimal(0))


def next_position(entries: Iterable[Entry]) -> int:
    """Position that sorts after every existing entry of the cell."""
    positions = [e.position for e in entries]
    return max(positions) + 1 if positions else 0


def plan_adjustment(
    entries: Iterable[Entry],
    new_total: Decimal,
    inflow_note: str = DEFAULT_INFLOW_NOTE,
    outflow_note: str = DEFAULT_OUTFLOW_NOTE,
) -> Optional[PlannedAdjustment]:
    """
    Work out the offsetting entry for a target total.

    Returns:
        None when the cell already sums to `new_total`, otherwise the
        adjustment to append
    """
    entries = list(entries)
    previous = current_total(entries)
    delta = Decimal(new_total) - previous
    if delta == 0:
        return None
    return PlannedAdjustment(
        amount=delta,
        note=inflow_note if delta > 0 else outflow_note,
        previous_total=previous,
        new_total=Decimal(new_total),
    )


def build_adjustment_entry(
    adjustment: PlannedAdjustment,
    address: CellAddress,
    existing: Iterable[Entry],
    user_id: str,
) -> Entry:
    """Materialize a planned adjustment as an included entry at the end of the cell."""
    return Entry(
        user_id=user_id,
        category_id=address.category_id,
        year=address.year,
        month=address.month,
        amount=adjustment.amount,
        note=adjustment.note,
        included=True,
        position=next_position(existing),
    )
