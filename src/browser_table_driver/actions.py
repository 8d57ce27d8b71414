"""Actions executed together with the event they are expected to trigger."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import DriverError, ErrorReason, engine_error
from .models import WaitCondition, WaitKind

LOGGER = logging.getLogger(__name__)

Action = Callable[[], Any]


class ActionExecutor:
    """Arm a wait condition, dispatch an action, then block on the condition.

    The subscription is always registered before the action runs, so a
    response or new tab produced while the action is still executing cannot
    be missed.
    """

    def __init__(self, default_timeout: Optional[float] = None) -> None:
        self.default_timeout = default_timeout

    def effective_timeout(self, condition: WaitCondition) -> Optional[float]:
        if condition.timeout is not None:
            return condition.timeout
        return self.default_timeout

    def act_and_wait(self, page: Page, action: Action, condition: WaitCondition) -> Any:
        """Run ``action`` on ``page`` and return the event that satisfied ``condition``."""

        timeout = self.effective_timeout(condition)
        LOGGER.debug("Arming wait for %s (timeout=%s)", condition.describe(), timeout)
        started = time.monotonic()
        try:
            if condition.kind == WaitKind.ELAPSED:
                _dispatch(action)
                page.wait_for_timeout(timeout or 0)
                return None
            with self._arm(page, condition, timeout) as event:
                _dispatch(action)
            result = event.value
        except PlaywrightTimeoutError as exc:
            elapsed = (time.monotonic() - started) * 1000
            raise DriverError(
                ErrorReason.WAIT_TIMEOUT,
                f"Timed out after {elapsed:.0f} ms waiting for {condition.describe()}: {exc}",
            ) from exc
        LOGGER.debug("Wait for %s satisfied", condition.describe())
        return result

    def _arm(self, page: Page, condition: WaitCondition, timeout: Optional[float]):
        matcher = condition.matcher()
        if condition.kind == WaitKind.RESPONSE:
            if matcher is None:
                raise ValueError("A response wait needs a URL pattern")
            return page.expect_response(matcher, timeout=timeout)
        if condition.kind == WaitKind.REQUEST_FINISHED:
            if matcher is None:
                return page.expect_request_finished(timeout=timeout)
            return page.expect_request_finished(
                lambda request: _url_matches(request.url, condition),
                timeout=timeout,
            )
        if condition.kind == WaitKind.NEW_PAGE:
            return page.context.expect_page(timeout=timeout)
        if condition.kind == WaitKind.NAVIGATION:
            if matcher is None:
                return page.expect_navigation(timeout=timeout)
            return page.expect_navigation(url=matcher, timeout=timeout)
        raise ValueError(f"Unsupported wait condition: {condition.kind}")

    def click_opens_tab_with_url(self, page: Page, selector: str, url: str) -> bool:
        """Probe whether clicking ``selector`` opens a tab whose URL is exactly ``url``."""

        new_page = self.act_and_wait(
            page,
            lambda: page.locator(selector).click(),
            WaitCondition(kind=WaitKind.NEW_PAGE),
        )
        if new_page.url != url:
            LOGGER.info("New tab opened with %s, expected %s", new_page.url, url)
            return False
        return True

    def click_and_wait_opens_tab_with_url(self, page: Page, selector: str, url: str) -> Page:
        """Click ``selector`` and fail unless the new tab reaches ``url``."""

        new_page = self.act_and_wait(
            page,
            lambda: page.locator(selector).click(),
            WaitCondition(kind=WaitKind.NEW_PAGE),
        )
        try:
            new_page.wait_for_url(url, timeout=self.default_timeout)
        except PlaywrightTimeoutError as exc:
            raise DriverError(
                ErrorReason.URL_MISMATCH,
                f"New tab did not reach url '{url}' (currently at '{new_page.url}'): {exc}",
            ) from exc
        return new_page


def _url_matches(url: str, condition: WaitCondition) -> bool:
    pattern = condition.url_regex()
    if pattern is None:
        return True
    return pattern.search(url) is not None


def _dispatch(action: Action) -> None:
    # A timeout raised by the action itself is an engine failure, not a wait timeout.
    try:
        action()
    except PlaywrightTimeoutError as exc:
        raise engine_error(exc) from exc
