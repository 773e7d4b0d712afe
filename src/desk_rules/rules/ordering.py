"""Rule ordering engine.

Rules of one type carry a dense 1-based ``order``. Drag-and-drop moves are
applied to a draft ordering that is saved in one request or discarded.
"""

from __future__ import annotations

from typing import Sequence

from desk_shared import get_logger

from desk_rules.core.exceptions import ReorderError
from desk_rules.models import Rule, RuleOrder

log = get_logger(__name__)


def _moved_order(order: int, start: int, end: int) -> int:
    moved_down = start < end
    if order == start:
        return end
    if order == end:
        return end - 1 if moved_down else end + 1
    if moved_down and start < order < end:
        return order - 1
    if not moved_down and end < order < start:
        return order + 1
    return order


def reorder(rules: Sequence[Rule], start: int, end: int) -> list[Rule]:
    """Move the rule at order ``start`` to order ``end``.

    Rules between the two positions shift by one against the direction of
    the move. The input is left untouched.

    Args:
        rules: Rules of one type with dense orders 1..n
        start: Order of the dragged rule
        end: Order it is dropped at

    Returns:
        Copies of the rules with their new orders, sorted by order

    Raises:
        ReorderError: start or end outside 1..n
    """
    count = len(rules)
    for position in (start, end):
        if not 1 <= position <= count:
            raise ReorderError(
                f"Order {position} is outside 1..{count}",
                details={"start": start, "end": end, "count": count},
            )

    if start == end:
        return sorted(rules, key=lambda rule: rule.order)

    moved = [
        rule.model_copy(update={"order": _moved_order(rule.order, start, end)}) for rule in rules
    ]
    return sorted(moved, key=lambda rule: rule.order)


class RuleOrdering:
    """Draft/committed pair over the rule list of one rule type.

    The committed side is the last fetched (or last saved) ordering; moves
    only touch the draft until commit() or cancel().
    """

    def __init__(self, rules: Sequence[Rule] = ()) -> None:
        self._committed: list[Rule] = []
        self._draft: dict[int, int] = {}
        self.load(rules)

    def load(self, rules: Sequence[Rule]) -> None:
        """Replace both sides with freshly fetched rules."""
        self._committed = sorted(rules, key=lambda rule: rule.order)
        self._draft = {rule.id: rule.order for rule in self._committed}

    @property
    def committed(self) -> list[Rule]:
        return list(self._committed)

    @property
    def rules(self) -> list[Rule]:
        """Rules with their draft orders, in draft order."""
        drafted = [
            rule.model_copy(update={"order": self._draft[rule.id]})
            if self._draft[rule.id] != rule.order
            else rule
            for rule in self._committed
        ]
        return sorted(drafted, key=lambda rule: rule.order)

    def move(self, start: int, end: int) -> list[Rule]:
        moved = reorder(self.rules, start, end)
        self._draft = {rule.id: rule.order for rule in moved}
        log.debug("Rule moved in draft order", start=start, end=end, dirty=self.is_dirty)
        return moved

    @property
    def is_dirty(self) -> bool:
        return any(self._draft[rule.id] != rule.order for rule in self._committed)

    def draft_orders(self) -> list[RuleOrder]:
        """Full ``{id, order}`` list to persist."""
        return [RuleOrder(id=rule.id, order=rule.order) for rule in self.rules]

    def cancel(self) -> None:
        self._draft = {rule.id: rule.order for rule in self._committed}

    def commit(self) -> None:
        self._committed = self.rules
