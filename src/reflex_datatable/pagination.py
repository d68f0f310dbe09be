"""Page/page-size state with forgiving (clamping) setters."""

import logging
import math
from collections.abc import Sequence

from reflex_datatable.config import DEFAULT_PAGE_SIZE, PAGE_SIZE_OPTIONS

logger = logging.getLogger(__name__)


class PaginationController:
    """1-based ``(page, page_size)`` over an externally supplied item count.

    Out-of-range requests are clamped, never raised: a page change that
    was issued before a filter shrank the result set simply lands on the
    last page that still exists.
    """

    def __init__(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        total_items: int = 0,
        page_size_options: Sequence[int] = PAGE_SIZE_OPTIONS,
    ) -> None:
        options = sorted({int(n) for n in page_size_options if int(n) > 0})
        if not options:
            options = [DEFAULT_PAGE_SIZE]
        self.page_size_options: tuple[int, ...] = tuple(options)
        self._page_size = self._snap_page_size(page_size)
        self._total_items = max(0, int(total_items))
        self._page = 1
        self.set_page(page)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def total_items(self) -> int:
        return self._total_items

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self._total_items / self._page_size))

    @property
    def offset(self) -> int:
        """0-based index of the first item on the current page."""
        return (self._page - 1) * self._page_size

    def display_range(self) -> tuple[int, int]:
        """1-based inclusive ``(start, end)`` of the shown slice; ``(0, 0)`` if empty."""
        if self._total_items == 0:
            return 0, 0
        start = self.offset + 1
        end = min(self._page * self._page_size, self._total_items)
        return start, end

    def range_label(self) -> str:
        start, end = self.display_range()
        return f"{start}-{end} of {self._total_items}"

    def model(self) -> dict[str, int]:
        return {"page": self._page, "pageSize": self._page_size}

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_page(self, page: int) -> int:
        requested = int(page)
        self._page = min(max(1, requested), self.total_pages)
        if self._page != requested:
            logger.debug("[DataTable] page %s clamped to %s", requested, self._page)
        return self._page

    def set_page_size(self, page_size: int) -> dict[str, int]:
        """Snap to the nearest allowed preset and go back to page 1."""
        self._page_size = self._snap_page_size(page_size)
        self._page = 1
        return self.model()

    def set_total_items(self, total_items: int) -> int:
        self._total_items = max(0, int(total_items))
        return self.set_page(self._page)

    def reset_page(self) -> bool:
        """Go back to page 1; return whether the page actually changed."""
        changed = self._page != 1
        self._page = 1
        return changed

    def _snap_page_size(self, page_size: int) -> int:
        requested = int(page_size)
        if requested in self.page_size_options:
            return requested
        # Nearest preset; ties go to the smaller one.
        snapped = min(self.page_size_options, key=lambda n: (abs(n - requested), n))
        logger.debug("[DataTable] page size %s snapped to %s", requested, snapped)
        return snapped
