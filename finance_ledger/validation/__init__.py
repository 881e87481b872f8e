"""Validation package."""

from finance_ledger.validation.validator import CategoryValidator, InvalidCategoryChange

__all__ = ["CategoryValidator", "InvalidCategoryChange"]
