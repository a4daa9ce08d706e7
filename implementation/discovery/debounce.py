"""
Debounced search input.

Turns a stream of raw per-keystroke query strings into a stable query that is
only emitted once the input has been quiet for the debounce window.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.75


class DebouncedQueryController:
    """
    Emit the latest raw query after `delay` seconds without a new update.

    Each update cancels the pending timer and starts a fresh one. A timer that
    has already fired is never retracted: its emission is delivered even if a
    new update arrives right after. Nothing is emitted until the first update.

    Must be used from inside a running asyncio event loop.
    """

    def __init__(
        self,
        on_stable: Callable[[str], None],
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self._on_stable = on_stable
        self.delay = delay
        self.raw_query: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def update(self, raw_query: str) -> None:
        """Record a keystroke and restart the quiet-period timer."""
        self.raw_query = raw_query
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        stable = self.raw_query or ""
        logger.debug("Debounce settled on %r", stable)
        self._on_stable(stable)

    def cancel(self) -> None:
        """Drop a pending emission without delivering it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
