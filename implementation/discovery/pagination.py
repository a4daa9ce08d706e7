"""
Page navigation for catalog result lists.

PageController owns the current page number, keeps it inside
[1, effective_max], persists every accepted change, and refuses user
navigation while a fetch is still in flight.
"""

import logging
import math
from typing import Any, Callable, Optional

from db.session_store import SessionStore

logger = logging.getLogger(__name__)

# TMDB refuses to serve pages past 500 regardless of total_pages
MAX_CATALOG_PAGE = 500


def sanitize_page(value: Any) -> int:
    """
    Coerce an arbitrary page input to a positive int, defaulting to 1.

    Examples:
        >>> sanitize_page(3)
        3
        >>> sanitize_page("7")
        7
        >>> sanitize_page(float("nan"))
        1
        >>> sanitize_page(-5)
        1
        >>> sanitize_page("abc")
        1
    """
    if isinstance(value, bool):
        return 1
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 1
        value = int(value)
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def effective_max_page(total_pages: int) -> int:
    """Smaller of the server's page count and the catalog ceiling, never below 1."""
    return max(1, min(total_pages, MAX_CATALOG_PAGE))


class PageController:
    """
    Current-page state with clamping, backpressure, and session persistence.

    Args:
        session_store: durable home of the remembered page. A stored value
            overrides the default first page at construction.
        is_busy: returns True while a fetch is in flight; user navigation
            is silently ignored during that time.
        on_change: called with the new page after every accepted change.
    """

    def __init__(
        self,
        session_store: SessionStore,
        is_busy: Callable[[], bool] = lambda: False,
        on_change: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._session_store = session_store
        self._is_busy = is_busy
        self._on_change = on_change
        self.total_pages = 0
        self.effective_max = effective_max_page(0)

        remembered = self._remembered_page()
        self.current = remembered if remembered is not None else 1

    def _remembered_page(self) -> Optional[int]:
        """Stored page capped at the catalog ceiling, or None when nothing is stored."""
        remembered = self._session_store.read_remembered_page()
        if remembered is None:
            return None
        return min(remembered, MAX_CATALOG_PAGE)

    def _set(self, page: int, notify: bool = True) -> None:
        self.current = page
        self._session_store.write_remembered_page(page)
        if notify and self._on_change is not None:
            self._on_change(page)

    def go_to(self, n: Any) -> bool:
        """
        Move to page `n` if it is in range and no fetch is in flight.

        Returns True when the page changed; every rejection is silent.
        """
        page = sanitize_page(n)
        if self._is_busy():
            logger.debug("Ignoring navigation to page %d while a fetch is in flight", page)
            return False
        if not 1 <= page <= self.effective_max:
            return False
        if page == self.current:
            return False
        self._set(page)
        return True

    def first(self) -> bool:
        return self.go_to(1)

    def previous(self) -> bool:
        return self.go_to(self.current - 1)

    def next(self) -> bool:
        return self.go_to(self.current + 1)

    def last(self) -> bool:
        return self.go_to(self.effective_max)

    @property
    def has_previous(self) -> bool:
        return self.current > 1

    @property
    def has_next(self) -> bool:
        return self.current < self.effective_max

    def update_total_pages(self, total_pages: int) -> bool:
        """
        Record the server's page count and clamp the current page into range.

        Returns True if the current page had to move; the caller is expected
        to fetch again in that case. No change listener is fired.
        """
        self.total_pages = max(0, total_pages)
        self.effective_max = effective_max_page(self.total_pages)
        if self.current <= self.effective_max:
            return False
        logger.info(
            "Page %d is past the last available page %d; clamping",
            self.current, self.effective_max,
        )
        self._set(self.effective_max, notify=False)
        return True

    def reset_for_new_query(self) -> int:
        """
        Pick the page a new search term starts on, without notifying listeners.

        A remembered page in session storage wins over resetting to 1, so a
        returning user keeps their place.
        """
        remembered = self._remembered_page()
        if remembered is not None:
            self.current = remembered
        else:
            self._set(1, notify=False)
        return self.current
