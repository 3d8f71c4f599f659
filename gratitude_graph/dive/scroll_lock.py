"""
gratitude_graph/dive/scroll_lock.py — Background page scroll lock.

While the graph is fullscreen the host page must not scroll underneath it.
The lock is idempotent (acquiring twice, releasing twice is harmless) and
reports every real change to the host through `on_change(locked)`.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class ScrollLock:
    """
    Args:
        on_change: Called with True when scrolling is disabled and False when
                   it is restored; e.g. toggles `overflow: hidden` on the page.
    """

    def __init__(self, on_change: Optional[Callable[[bool], None]] = None):
        self._on_change = on_change
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def acquire(self) -> None:
        if self._locked:
            return
        self._locked = True
        logger.debug("Page scroll locked.")
        if self._on_change is not None:
            self._on_change(True)

    def release(self) -> None:
        if not self._locked:
            return
        self._locked = False
        logger.debug("Page scroll restored.")
        if self._on_change is not None:
            self._on_change(False)

    @contextmanager
    def held(self) -> Iterator["ScrollLock"]:
        """Hold the lock for the duration of a block; always released on exit."""
        self.acquire()
        try:
            yield self
        finally:
            self.release()
