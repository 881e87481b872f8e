"""
Aggregation Engine

Computes, for every category that has children, the twelve monthly sums
contributed by its descendants:

    rollup[p] = sum over children c of (direct[c] + rollup[c] if c has children)

A parent's own direct entries are not part of its rollup; whether the
grid adds them on top is a display setting.

DESIGN DECISION: The traversal is an explicit post-order walk with a
memo, not recursion. Parent graphs come from user data, so the walk is
preceded by a cycle check that raises CyclicCategoryGraph instead of
looping. Callers that want everything else computed anyway pass the
cyclic ids in `skip`.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Optional

from finance_ledger.ledger.tree import CategoryTree
from finance_ledger.models.ledger import MONTHS_IN_YEAR, normalize_months, zero_months


class CyclicCategoryGraph(Exception):
    """Parent references form at least one cycle."""

    def __init__(self, cycles: list[list[str]]):
        self.cycles = cycles
        self.category_ids = frozenset(cid for cycle in cycles for cid in cycle)
        rendered = "; ".join(" -> ".join(cycle) for cycle in cycles)
        super().__init__(f"Category parents form a cycle: {rendered}")


def find_cycles(tree: CategoryTree) -> list[list[str]]:
    """
    Return every cycle in the parent graph, each as a list of ids.

    Every category has at most one parent, so following parent links
    from each node either reaches a root or enters a cycle. Each node
    is walked at most once overall.
    """
    state: dict[str, int] = {}  # 1 = on the current path, 2 = done
    cycles: list[list[str]] = []

    for start in tree.by_id:
        if start in state:
            continue
        path: list[str] = []
        current: Optional[str] = start
        while current is not None and current not in state:
            state[current] = 1
            path.append(current)
            current = tree.parent_of(current)
        if current is not None and state[current] == 1:
            cycles.append(path[path.index(current):])
        for node in path:
            state[node] = 2
    return cycles


def _add_into(target: list[Decimal], values: list[Decimal]) -> None:
    for month in range(MONTHS_IN_YEAR):
        target[month] += values[month]


def compute_rollups(
    tree: CategoryTree,
    direct_values: Mapping[str, Optional[list]],
    skip: Iterable[str] = (),
) -> dict[str, list[Decimal]]:
    """
    Rollup values for every category with children.

    Args:
        tree: The category forest
        direct_values: Per-category monthly direct values; missing or
            short arrays count as zeros
        skip: Categories to leave out entirely (no rollup, not descended
            into, not counted in their parent)

    Returns:
        {parent_id: twelve monthly sums}

    Raises:
        CyclicCategoryGraph: If the graph (minus `skip`) has a cycle
    """
    skipped = frozenset(skip)
    cycles = [
        cycle for cycle in find_cycles(tree)
        if not skipped.intersection(cycle)
    ]
    if cycles:
        raise CyclicCategoryGraph(cycles)

    def direct(category_id: str) -> list[Decimal]:
        return normalize_months(direct_values.get(category_id))

    memo: dict[str, list[Decimal]] = {}

    for root in tree.by_id:
        if root in memo or root in skipped or not tree.has_children(root):
            continue
        # Post-order: a node is finished once all of its children are
        stack: list[tuple[str, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if node in memo:
                continue
            kids = [k for k in tree.children_of(node) if k not in skipped]
            if not expanded:
                stack.append((node, True))
                for kid in reversed(kids):
                    if tree.has_children(kid) and kid not in memo:
                        stack.append((kid, False))
                continue
            total = zero_months()
            for kid in kids:
                _add_into(total, direct(kid))
                if kid in memo:
                    _add_into(total, memo[kid])
            memo[node] = total

    return {category_id: list(values) for category_id, values in memo.items()}


def monthly_totals(
    category_ids: Iterable[str],
    direct_values: Mapping[str, Optional[list]],
) -> list[Decimal]:
    """
    Sum the direct values of a set of categories month by month.

    Every entry belongs to exactly one category, so summing direct values
    (not rollups) counts each entry once.
    """
    total = zero_months()
    for category_id in category_ids:
        _add_into(total, normalize_months(direct_values.get(category_id)))
    return total


def balance(income: list[Decimal], expense: list[Decimal]) -> list[Decimal]:
    """Income minus expense, month by month."""
    income = normalize_months(income)
    expense = normalize_months(expense)
    return [income[m] - expense[m] for m in range(MONTHS_IN_YEAR)]
