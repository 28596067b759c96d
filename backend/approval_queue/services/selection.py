"""Reviewer selection over the currently loaded queue page.

The selection is always a subset of the loaded page's ids and is cleared
whenever the loader publishes a new page, so a bulk action can never reach
items the reviewer no longer sees.
"""
import logging
from decimal import Decimal

from approval_queue.schemas.approval import ApprovalItem, BUDGET_ISSUE_LEVELS, URGENT_LEVELS
from approval_queue.schemas.queue import ApprovalSummary
from approval_queue.services.queue_loader import QueueLoader

logger = logging.getLogger(__name__)


class SelectionManager:
    def __init__(self, loader: QueueLoader):
        self.loader = loader
        # insertion-ordered so bulk requests keep the reviewer's click order
        self._selected: dict[str, None] = {}
        loader.add_listener(self._on_page_loaded)

    def _on_page_loaded(self, items: list[ApprovalItem]) -> None:
        if self._selected:
            logger.debug("Clearing %d selected items after queue reload", len(self._selected))
        self.clear()

    # ─── Mutations ───

    def toggle(self, item_id: str) -> None:
        """Select ``item_id`` if unselected, otherwise unselect it.

        Raises:
            KeyError: if the id is not on the loaded page.
        """
        if item_id in self._selected:
            del self._selected[item_id]
            return
        if self.loader.item_by_id(item_id) is None:
            raise KeyError(item_id)
        self._selected[item_id] = None

    def select_all(self) -> None:
        """Select every loaded item, or clear if they are all selected already."""
        if self.is_all_selected:
            self.clear()
        else:
            self._selected = dict.fromkeys(item.id for item in self.loader.items)

    def clear(self) -> None:
        self._selected = {}

    # ─── Derived state ───

    @property
    def selected_ids(self) -> list[str]:
        return list(self._selected)

    @property
    def selected_items(self) -> list[ApprovalItem]:
        return [item for item in self.loader.items if item.id in self._selected]

    @property
    def selected_count(self) -> int:
        return len(self._selected)

    @property
    def is_all_selected(self) -> bool:
        loaded = len(self.loader.items)
        return loaded > 0 and len(self._selected) == loaded

    @property
    def is_partially_selected(self) -> bool:
        return 0 < len(self._selected) < len(self.loader.items)

    @property
    def selected_total_amount(self) -> Decimal:
        return sum((item.total_amount for item in self.selected_items), Decimal("0"))

    @property
    def urgent_count(self) -> int:
        """HIGH/CRITICAL items on the loaded page, selected or not."""
        return self.loader.urgent_count

    def summary(self) -> ApprovalSummary:
        items = self.selected_items
        now = self.loader.clock()
        return ApprovalSummary(
            total_selected=len(items),
            total_amount=sum((item.total_amount for item in items), Decimal("0")),
            projects_count=len({item.project_id for item in items}),
            managers_count=len({item.manager_id for item in items}),
            urgent_count=sum(1 for item in items if item.urgency_level(now) in URGENT_LEVELS),
            budget_issues_count=sum(1 for item in items if item.budget_compliance in BUDGET_ISSUE_LEVELS),
        )
