"""
Core Data Models for the Finance Ledger

These models define the schemas for all data flowing through the grid core.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the remote store, the local cache and logging

DESIGN DECISION: A cell's value is never stored. It is always the sum of
the included entries at that (category, month, year) address. Everything
that looks like a stored number (cache snapshot values, rollups) is derived.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MONTHS_IN_YEAR = 12


def new_id() -> str:
    """Generate a fresh row id."""
    return uuid4().hex


def zero_months() -> list[Decimal]:
    """Twelve zero values, one per month."""
    return [Decimal(0)] * MONTHS_IN_YEAR


def normalize_months(values: Optional[list]) -> list[Decimal]:
    """
    Coerce a monthly value array to exactly twelve Decimals.

    Missing, short or non-numeric arrays are padded with zeros, and
    anything that is not a list or tuple reads as all zeros.
    Extra values are dropped. Never raises.
    """
    out = zero_months()
    if not isinstance(values, (list, tuple)) or not values:
        return out
    for month, value in enumerate(values[:MONTHS_IN_YEAR]):
        if value is None:
            continue
        try:
            out[month] = Decimal(str(value))
        except ArithmeticError:
            continue
        if not out[month].is_finite():
            out[month] = Decimal(0)
    return out


# =============================================================================
# ENUMS
# =============================================================================

class MoneyType(str, Enum):
    """
    Which side of the grid a category lives on.

    A category's type is fixed at creation and shared by its whole subtree.
    """
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# CATEGORIES AND ENTRIES
# =============================================================================

class Category(BaseModel):
    """A node of the income or expense category forest."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique category ID"
    )
    user_id: str = Field(
        default="",
        description="Owner of the category"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    type: MoneyType = Field(
        ...,
        description="Income or expense"
    )
    parent_id: Optional[str] = Field(
        default=None,
        description="Parent category, None for a root"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Creation time, used as the stable list order"
    )

    @field_validator('parent_id')
    @classmethod
    def empty_parent_is_root(cls, v: Optional[str]) -> Optional[str]:
        """Blank parent references mean 'no parent'."""
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_not_own_parent(self) -> 'Category':
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("Category cannot be its own parent")
        return self


class Entry(BaseModel):
    """
    One additive contribution to a cell.

    `included=False` keeps the entry in the ledger but out of the cell sum.
    `position` is the display and paste order inside the cell.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique entry ID"
    )
    user_id: str = Field(
        default="",
        description="Owner of the entry"
    )
    category_id: str = Field(
        ...,
        min_length=1,
        description="Category the entry belongs to"
    )
    year: int = Field(
        ...,
        ge=1900,
        le=9999,
        description="Calendar year"
    )
    month: int = Field(
        ...,
        ge=0,
        le=MONTHS_IN_YEAR - 1,
        description="Zero-based month (0 = January)"
    )
    amount: Decimal = Field(
        ...,
        description="Signed amount"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Free text note"
    )
    included: bool = Field(
        default=True,
        description="Whether the amount counts towards the cell value"
    )
    position: int = Field(
        default=0,
        ge=0,
        description="Order inside the cell"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @field_validator('amount')
    @classmethod
    def amount_is_finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("Entry amount must be a finite number")
        return v

    @property
    def address(self) -> "CellAddress":
        return CellAddress(category_id=self.category_id, month=self.month, year=self.year)


class EntryPatch(BaseModel):
    """
    Partial update of an entry.

    Only the fields that were explicitly set are applied.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = None
    note: Optional[str] = Field(default=None, max_length=500)
    included: Optional[bool] = None
    position: Optional[int] = Field(default=None, ge=0)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class CellAddress(BaseModel):
    """The (category, month, year) coordinate of a grid cell."""
    model_config = ConfigDict(frozen=True)

    category_id: str = Field(..., min_length=1)
    month: int = Field(..., ge=0, le=MONTHS_IN_YEAR - 1)
    year: int = Field(..., ge=1900, le=9999)


class ClipboardRecord(BaseModel):
    """
    One copied entry.

    Only the cell-independent part of an entry is copied. Ids and
    positions belong to the destination cell and are regenerated on paste.
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    note: Optional[str] = None
    included: bool = True

    @classmethod
    def from_entry(cls, entry: Entry) -> "ClipboardRecord":
        return cls(amount=entry.amount, note=entry.note, included=entry.included)


# =============================================================================
# CACHE SNAPSHOT
# =============================================================================

class CategorySnapshot(BaseModel):
    """A category row with its resolved twelve monthly direct values."""

    id: str
    name: str
    type: MoneyType
    parent_id: Optional[str] = None
    values: list[Decimal] = Field(default_factory=zero_months)

    @field_validator('values', mode='before')
    @classmethod
    def pad_values(cls, v):
        # Non-lists are left for pydantic to reject
        if not isinstance(v, (list, tuple)):
            return v
        return normalize_months(v)

    def to_category(self) -> Category:
        return Category(id=self.id, name=self.name, type=self.type, parent_id=self.parent_id)


class CacheSnapshot(BaseModel):
    """
    What the grid needs to paint one (user, year) without a network call.

    Serialized as JSON: {"income": [...], "expense": [...]}.
    """

    income: list[CategorySnapshot] = Field(default_factory=list)
    expense: list[CategorySnapshot] = Field(default_factory=list)

    def categories(self) -> list[CategorySnapshot]:
        return [*self.income, *self.expense]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field or category with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'cycle', 'type_mismatch', 'dangling_parent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    category_ids: list[str] = Field(
        default_factory=list,
        description="Categories involved"
    )


class ValidationResult(BaseModel):
    """Result of validating a category set."""

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool = Field(
        ...,
        description="False when any error-level issue was found"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]
