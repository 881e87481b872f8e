"""
Category Structure Validation

Checks a category set against the structural invariants of the grid:

ERRORS (the data is wrong):
- A category that is its own parent
- A child whose type differs from its parent's
- Parent references that form a cycle

WARNINGS (the data is usable):
- A parent reference to a category that doesn't exist (shown as a root)
- Two siblings with the same name

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the caller can decide.
"""

from collections.abc import Iterable
from typing import Optional

from finance_ledger.ledger.aggregation import find_cycles
from finance_ledger.ledger.tree import CategoryTree
from finance_ledger.models.ledger import (
    Category,
    MoneyType,
    ValidationIssue,
    ValidationResult,
)


class CategoryValidator:
    """Validates category sets and proposed category changes."""

    def validate(self, categories: Iterable[Category]) -> ValidationResult:
        categories = list(categories)
        tree = CategoryTree.build(categories)
        issues: list[ValidationIssue] = []

        for category in categories:
            parent_id = category.parent_id
            if parent_id is None:
                continue
            parent = tree.get(parent_id)
            if parent is None:
                issues.append(ValidationIssue(
                    field="parent_id",
                    issue_type="dangling_parent",
                    message=f"'{category.name}' points at a missing parent and is shown as a root",
                    severity="warning",
                    category_ids=[category.id, parent_id],
                ))
            elif parent.type != category.type:
                issues.append(ValidationIssue(
                    field="type",
                    issue_type="type_mismatch",
                    message=(
                        f"'{category.name}' is {category.type.value} "
                        f"but its parent '{parent.name}' is {parent.type.value}"
                    ),
                    severity="error",
                    category_ids=[category.id, parent.id],
                ))

        for cycle in find_cycles(tree):
            issues.append(ValidationIssue(
                field="parent_id",
                issue_type="cycle",
                message=f"Categories {', '.join(cycle)} are each other's ancestors",
                severity="error",
                category_ids=list(cycle),
            ))

        issues.extend(self._duplicate_siblings(tree))

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    @staticmethod
    def _duplicate_siblings(tree: CategoryTree) -> list[ValidationIssue]:
        issues = []
        groups: dict[tuple[Optional[str], MoneyType], dict[str, list[str]]] = {}
        for category in tree.categories():
            key = (tree.parent_of(category.id), category.type)
            groups.setdefault(key, {}).setdefault(category.name.casefold(), []).append(category.id)
        for names in groups.values():
            for ids in names.values():
                if len(ids) > 1:
                    name = tree.get(ids[0]).name
                    issues.append(ValidationIssue(
                        field="name",
                        issue_type="duplicate_name",
                        message=f"{len(ids)} sibling categories are named '{name}'",
                        severity="warning",
                        category_ids=ids,
                    ))
        return issues

    def check_new_category(
        self,
        tree: CategoryTree,
        money_type: MoneyType,
        parent_id: Optional[str],
    ) -> list[ValidationIssue]:
        """
        Issues that would stop a new category from being created.

        Returns an empty list when the category may be created.
        """
        if parent_id is None:
            return []
        parent = tree.get(parent_id)
        if parent is None:
            return [ValidationIssue(
                field="parent_id",
                issue_type="unknown_parent",
                message=f"Parent category {parent_id} does not exist",
                severity="error",
                category_ids=[parent_id],
            )]
        if parent.type != money_type:
            return [ValidationIssue(
                field="type",
                issue_type="type_mismatch",
                message=(
                    f"A {money_type.value} category can't be added under "
                    f"the {parent.type.value} category '{parent.name}'"
                ),
                severity="error",
                category_ids=[parent.id],
            )]
        return []


class InvalidCategoryChange(ValueError):
    """A category change would break the structural invariants."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))
