"""
Finance Export / Import

JSON and CSV renderings of one year of the grid, and a tolerant
parser for the JSON form.
"""

import csv
import io
import json
from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from finance_ledger.ledger.aggregation import balance, monthly_totals
from finance_ledger.models.ledger import CategorySnapshot, MoneyType


logger = structlog.get_logger(__name__)

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class ImportedLedger(BaseModel):
    """Validated content of a JSON export."""

    year: int = Field(..., ge=1900, le=9999)
    income: list[CategorySnapshot]
    expense: list[CategorySnapshot]


def export_to_json(
    income: list[CategorySnapshot],
    expense: list[CategorySnapshot],
    year: int,
    exported_at: Optional[datetime] = None,
) -> str:
    data = {
        "year": year,
        "exportDate": (exported_at or datetime.utcnow()).isoformat(),
        "income": [c.model_dump(mode="json") for c in income],
        "expense": [c.model_dump(mode="json") for c in expense],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def _totals(rows: list[CategorySnapshot]) -> list[Decimal]:
    return monthly_totals([r.id for r in rows], {r.id: r.values for r in rows})


def export_to_csv(
    income: list[CategorySnapshot],
    expense: list[CategorySnapshot],
    year: int,
) -> str:
    """
    Render INCOME, EXPENSE and BALANCE sections.

    Each row carries twelve month columns and a row total. Section totals
    sum direct values, so parent rows never double count their children.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([f"Finance Data Export - {year}"])
    writer.writerow([])

    header = ["Category", *MONTH_LABELS, "Total"]
    for title, rows in (("INCOME", income), ("EXPENSE", expense)):
        writer.writerow([title])
        writer.writerow(header)
        for row in rows:
            writer.writerow([row.name, *row.values, sum(row.values, Decimal(0))])
        totals = _totals(rows)
        writer.writerow([f"TOTAL {title}", *totals, sum(totals, Decimal(0))])
        writer.writerow([])

    by_month = balance(_totals(income), _totals(expense))
    writer.writerow(["BALANCE"])
    writer.writerow(["Month", *MONTH_LABELS, "Total"])
    writer.writerow(["Balance", *by_month, sum(by_month, Decimal(0))])
    return buffer.getvalue()


def parse_json_import(text: str) -> Optional[ImportedLedger]:
    """
    Parse a JSON export.

    Returns:
        The imported ledger, or None when the text is not a valid export
    """
    try:
        imported = ImportedLedger.model_validate_json(text)
    except ValidationError as e:
        logger.error("finance_import_invalid", error_count=e.error_count())
        return None
    for expected, rows in ((MoneyType.INCOME, imported.income), (MoneyType.EXPENSE, imported.expense)):
        misplaced = [row.id for row in rows if row.type != expected]
        if misplaced:
            logger.error("finance_import_misplaced", section=expected.value, category_ids=misplaced)
            return None
    return imported
