"""
Cell Clipboard

Copies the entry set of one cell and pastes it into another as new entries.

DESIGN DECISION: The buffer is an explicit session object, not module
state, so two grids (or two tests) never share a clipboard. The buffer
is an immutable tuple replaced in a single assignment: a paste reads
either the previous copy or the new one, never a mix.

Paste is strictly additive. It never removes entries from the
destination and never touches the source.
"""

import json
from collections.abc import Iterable
from typing import Optional

from finance_ledger.ledger.reconciliation import next_position
from finance_ledger.models.ledger import CellAddress, ClipboardRecord, Entry


class ClipboardError(Exception):
    """Base exception for clipboard operations."""
    pass


class EmptySourceCopy(ClipboardError):
    """Tried to copy a cell that has no entries."""
    pass


class EmptyClipboardPaste(ClipboardError):
    """Tried to paste with nothing on the clipboard."""
    pass


class ClipboardSession:
    """Session-scoped clipboard buffer for cell entry sets."""

    def __init__(self):
        self._records: tuple[ClipboardRecord, ...] = ()
        self._source: Optional[CellAddress] = None

    @property
    def has_clipboard(self) -> bool:
        return bool(self._records)

    @property
    def source(self) -> Optional[CellAddress]:
        """Cell the current buffer was copied from."""
        return self._source

    def copy(self, entries: Iterable[Entry], source: Optional[CellAddress] = None) -> int:
        """
        Replace the buffer with the given entries.

        Returns:
            Number of records copied

        Raises:
            EmptySourceCopy: If there is nothing to copy; the previous
                buffer is kept
        """
        records = tuple(
            ClipboardRecord.from_entry(entry)
            for entry in sorted(entries, key=lambda e: (e.position, e.created_at))
        )
        if not records:
            raise EmptySourceCopy("Source cell has no entries to copy")
        self._records = records
        self._source = source
        return len(records)

    def records(self) -> tuple[ClipboardRecord, ...]:
        """
        The buffered records, in source order.

        Raises:
            EmptyClipboardPaste: If nothing has been copied
        """
        records = self._records
        if not records:
            raise EmptyClipboardPaste("Clipboard is empty")
        return records

    def clear(self) -> None:
        self._records = ()
        self._source = None

    def to_json(self) -> str:
        """Buffer as a JSON array of {amount, note, included}."""
        return json.dumps([record.model_dump(mode="json") for record in self._records])


def build_paste_entries(
    records: Iterable[ClipboardRecord],
    destination: CellAddress,
    existing: Iterable[Entry],
    user_id: str,
) -> list[Entry]:
    """
    New entries for the destination cell, appended after its existing ones.

    Amount, note and included flag come from the records; ids and
    positions are fresh.
    """
    start = next_position(existing)
    return [
        Entry(
            user_id=user_id,
            category_id=destination.category_id,
            year=destination.year,
            month=destination.month,
            amount=record.amount,
            note=record.note,
            included=record.included,
            position=start + offset,
        )
        for offset, record in enumerate(records)
    ]
