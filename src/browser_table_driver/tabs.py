"""Ordered tab bookkeeping for the active browser context."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from playwright.sync_api import BrowserContext, Page

from .errors import ErrorReason, no_such_tab, usage_error

LOGGER = logging.getLogger(__name__)


class TabRegistry:
    """Track the current page within the active context.

    Tab order is the order in which pages were created in the context (the
    order of ``BrowserContext.pages``), so "next" and "preceding" do not depend
    on window focus.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._context: Optional[BrowserContext] = None
        self._current: Optional[Page] = None
        self._context_closed = False

    def bind(self, context: BrowserContext, page: Optional[Page] = None) -> None:
        """Make ``context`` the active context and ``page`` its current tab."""

        with self._lock:
            self._context = context
            self._context_closed = False
            self._current = None
            if page is not None:
                self.set_current(page)

    def mark_context_closed(self) -> None:
        with self._lock:
            self._context_closed = True
            self._current = None

    @property
    def context(self) -> BrowserContext:
        with self._lock:
            if self._context is None or self._context_closed:
                raise usage_error(ErrorReason.NO_ACTIVE_CONTEXT, "No browser context is open")
            return self._context

    @property
    def has_live_page(self) -> bool:
        with self._lock:
            if self._context is None or self._context_closed or self._current is None:
                return False
            return not self._current.is_closed()

    def pages(self) -> list[Page]:
        return list(self.context.pages)

    def set_current(self, page: Page) -> Page:
        """Single mutation point for the current tab."""

        with self._lock:
            if self.index_of(page) < 0:
                raise no_such_tab("Page does not belong to the active browser context")
            self._current = page
            LOGGER.debug("Current tab is now #%s (%s)", self.index_of(page), page.url)
            return page

    def current_tab(self) -> Page:
        with self._lock:
            context = self.context
            if not context.pages:
                raise usage_error(ErrorReason.NO_OPEN_TAB, "All tabs of the browser context are closed")
            if self._current is None or self._current not in context.pages:
                raise usage_error(ErrorReason.NO_OPEN_TAB, "The current tab has been closed")
            return self._current

    def index_of(self, page: Page) -> int:
        """Return the position of ``page`` in the active context or -1."""

        with self._lock:
            if self._context is None or self._context_closed:
                return -1
            pages = self._context.pages
            return pages.index(page) if page in pages else -1

    def switch_to_next(self) -> Page:
        with self._lock:
            pages = self.pages()
            index = pages.index(self.current_tab())
            if index + 1 >= len(pages):
                raise no_such_tab(f"There is no tab after tab #{index}")
            page = self.set_current(pages[index + 1])
        page.bring_to_front()
        return page

    def switch_to_preceding(self) -> Page:
        with self._lock:
            pages = self.pages()
            index = pages.index(self.current_tab())
            if index == 0:
                raise no_such_tab("There is no tab before the first tab")
            page = self.set_current(pages[index - 1])
        page.bring_to_front()
        return page

    def close_next_tab(self) -> None:
        with self._lock:
            pages = self.pages()
            index = pages.index(self.current_tab())
            if index + 1 >= len(pages):
                raise no_such_tab(f"There is no tab after tab #{index} to close")
            target = pages[index + 1]
        target.close()

    def close_current_tab(self) -> Optional[Page]:
        """Close the current tab and fall back to its neighbour.

        The preceding tab becomes current; when the closed tab was the first
        one, the tab that followed it does. Returns the new current tab, or
        ``None`` when the last remaining tab was closed.
        """

        with self._lock:
            pages = self.pages()
            closing = self.current_tab()
            index = pages.index(closing)
            remaining = pages[:index] + pages[index + 1 :]
            successor = remaining[index - 1] if index > 0 else (remaining[0] if remaining else None)
            closing.close()
            if successor is None:
                self._current = None
                return None
            self.set_current(successor)
        successor.bring_to_front()
        return successor

    def open_new_tab(self, url: Optional[str] = None) -> Page:
        with self._lock:
            page = self.context.new_page()
            self.set_current(page)
        if url:
            page.goto(url)
        return page

    def list_tabs(self) -> list[str]:
        return [page.url for page in self.pages()]
