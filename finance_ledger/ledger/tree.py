"""
Category Tree Builder

Turns the flat category rows of the store into a navigable forest and
sums entries into per-category monthly direct values.

A parent reference that points at an unknown id is treated as a root.
The builder itself never walks parent chains, so it is safe on
malformed (cyclic) data; cycle detection lives with the aggregation.
"""

from collections.abc import Iterable, Iterator
from decimal import Decimal
from typing import Optional

from finance_ledger.models.ledger import (
    Category,
    Entry,
    zero_months,
)


class CategoryTree:
    """
    Immutable parent -> children view over a set of categories.

    Children keep the order of the input rows (the store returns them
    in creation order).
    """

    def __init__(
        self,
        by_id: dict[str, Category],
        children: dict[str, list[str]],
    ):
        self._by_id = by_id
        self._children = children

    @classmethod
    def build(cls, categories: Iterable[Category]) -> "CategoryTree":
        by_id: dict[str, Category] = {}
        for category in categories:
            by_id[category.id] = category

        children: dict[str, list[str]] = {}
        for category in by_id.values():
            parent_id = category.parent_id
            if parent_id is None or parent_id not in by_id:
                continue
            children.setdefault(parent_id, []).append(category.id)
        return cls(by_id, children)

    @property
    def by_id(self) -> dict[str, Category]:
        return dict(self._by_id)

    @property
    def children(self) -> dict[str, list[str]]:
        return {parent: list(kids) for parent, kids in self._children.items()}

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def get(self, category_id: str) -> Optional[Category]:
        return self._by_id.get(category_id)

    def categories(self) -> list[Category]:
        return list(self._by_id.values())

    def children_of(self, category_id: str) -> list[str]:
        return list(self._children.get(category_id, ()))

    def has_children(self, category_id: str) -> bool:
        return bool(self._children.get(category_id))

    def parent_of(self, category_id: str) -> Optional[str]:
        """Resolved parent id; None for roots and dangling references."""
        category = self._by_id.get(category_id)
        if category is None or category.parent_id not in self._by_id:
            return None
        return category.parent_id

    def roots(self) -> list[str]:
        return [cid for cid in self._by_id if self.parent_of(cid) is None]

    def descendants(self, category_id: str) -> list[str]:
        """
        All descendants in depth-first pre-order.

        Each id is visited once, so a cycle ends the walk instead of
        looping forever.
        """
        seen = {category_id}
        out: list[str] = []
        stack = list(reversed(self.children_of(category_id)))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            out.append(current)
            stack.extend(reversed(self.children_of(current)))
        return out


def direct_values_from_entries(entries: Iterable[Entry]) -> dict[str, list[Decimal]]:
    """
    Sum included entry amounts into twelve monthly values per category.

    Excluded entries don't contribute. Categories without entries are absent.
    """
    values: dict[str, list[Decimal]] = {}
    for entry in entries:
        if not entry.included:
            continue
        months = values.get(entry.category_id)
        if months is None:
            months = values[entry.category_id] = zero_months()
        months[entry.month] += entry.amount
    return values


def entry_counts_from_entries(entries: Iterable[Entry]) -> dict[tuple[str, int], int]:
    """Count entries (included or not) per (category_id, month)."""
    counts: dict[tuple[str, int], int] = {}
    for entry in entries:
        key = (entry.category_id, entry.month)
        counts[key] = counts.get(key, 0) + 1
    return counts


def display_rows(
    tree: CategoryTree,
    collapsed: Iterable[str] = (),
) -> Iterator[tuple[Category, int]]:
    """
    Yield (category, depth) in grid order.

    Roots come first in input order, each followed by its subtree.
    Children of collapsed categories are skipped. Categories that are
    only reachable through a cycle are never yielded.
    """
    hidden = set(collapsed)
    seen: set[str] = set()
    stack = [(cid, 0) for cid in reversed(tree.roots())]
    while stack:
        category_id, depth = stack.pop()
        if category_id in seen:
            continue
        seen.add(category_id)
        category = tree.get(category_id)
        if category is None:
            continue
        yield category, depth
        if category_id in hidden:
            continue
        for child_id in reversed(tree.children_of(category_id)):
            stack.append((child_id, depth + 1))
