"""Filter, sort and paging state for the next queue load.

Any change that alters what "page N" means (filters, sort, page size)
resets the page to 0. Filter content is not validated here.
"""
import logging
from collections.abc import Mapping
from typing import Any

from approval_queue.core.config import settings
from approval_queue.schemas.queue import ApprovalFilters, SortConfig, SortDirection

logger = logging.getLogger(__name__)


class QueryState:
    def __init__(
        self,
        filters: ApprovalFilters | None = None,
        sort: SortConfig | None = None,
        page_size: int | None = None,
        max_page_size: int | None = None,
    ):
        self.max_page_size = settings.MAX_PAGE_SIZE if max_page_size is None else max_page_size
        self.filters = filters or ApprovalFilters()
        self.sort = sort or SortConfig(
            field=settings.DEFAULT_SORT_FIELD,
            direction=SortDirection(settings.DEFAULT_SORT_DIRECTION),
        )
        self.page = 0
        self.size = self._checked_size(settings.DEFAULT_PAGE_SIZE if page_size is None else page_size)

    def _checked_size(self, size: int) -> int:
        if size < 1 or size > self.max_page_size:
            raise ValueError(f"Page size must be between 1 and {self.max_page_size}, got {size}.")
        return size

    def set_filters(self, changes: "Mapping[str, Any] | ApprovalFilters") -> None:
        """Merge ``changes`` into the current filters and go back to page 0."""
        self.filters = self.filters.merge(changes)
        self.page = 0

    def reset_filters(self) -> None:
        self.filters = ApprovalFilters()
        self.page = 0

    def set_sort(self, sort: SortConfig) -> None:
        self.sort = sort
        self.page = 0

    def set_page(self, page: int) -> None:
        if page < 0:
            raise ValueError(f"Page must be >= 0, got {page}.")
        self.page = page

    def set_page_size(self, size: int) -> None:
        self.size = self._checked_size(size)
        self.page = 0

    def as_params(self) -> dict[str, Any]:
        """Arguments for ``QueueDataSource.fetch_queue``."""
        return {
            "page": self.page,
            "size": self.size,
            "filters": self.filters,
            "sort": self.sort,
        }
