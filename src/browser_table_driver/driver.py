"""Browser driver exposing the table commands."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

from playwright.sync_api import BrowserContext, Locator, Page, StorageState, expect

from .actions import ActionExecutor
from .artifacts import ArtifactLayout, screenshot_link
from .config import DriverConfig
from .diagnostics import DiagnosticBoundary, capture_screenshot, diagnosed, timestamp_name
from .engine import ContextFactory
from .models import CookieEntry, WaitCondition, WaitKind
from .session_state import SessionStateStore
from .tabs import TabRegistry
from .tracing import TraceRecorder

LOGGER = logging.getLogger(__name__)

CookieInput = Union[Mapping[str, Any], CookieEntry]
ConditionInput = Union[Mapping[str, Any], WaitCondition]

_WHITESPACE = re.compile("[\\u00a0\\s]+")
_INPUT_TAGS = {"input", "textarea", "select"}
_MARKUP_TAGS = {"button", "option", "text"}


def normalize_text(text: Optional[str]) -> Optional[str]:
    """Collapse whitespace (including non-breaking spaces) to single spaces."""

    if text is None:
        return None
    return _WHITESPACE.sub(" ", text).strip()


class BrowserDriver:
    """One browser session driven command by command.

    The driver owns the active context and, through its :class:`TabRegistry`,
    the current page. Every public command runs inside the diagnostic
    boundary, so failures surface as :class:`~browser_table_driver.errors.DriverError`
    with a screenshot of the page that was current when the command failed.
    """

    def __init__(
        self,
        engine: ContextFactory,
        artifacts: ArtifactLayout,
        *,
        default_timeout: Optional[float] = None,
        open_context: bool = True,
    ) -> None:
        self._engine = engine
        self.artifacts = artifacts
        self._timeout = default_timeout
        self.tabs = TabRegistry()
        self.session_state = SessionStateStore(engine, artifacts)
        self.executor = ActionExecutor(default_timeout)
        self.tracer = TraceRecorder(artifacts)
        self.diagnostics = DiagnosticBoundary(artifacts, self._live_page)
        if open_context:
            self._activate(engine.new_context())

    @classmethod
    def from_config(cls, engine: ContextFactory, config: DriverConfig) -> "BrowserDriver":
        return cls(
            engine,
            ArtifactLayout.from_config(config.artifacts),
            default_timeout=config.context.default_timeout,
        )

    # Internal helpers

    def _activate(self, context: BrowserContext) -> Page:
        if self._timeout is not None:
            context.set_default_timeout(self._timeout)
        page = context.pages[0] if context.pages else context.new_page()
        self.tabs.bind(context, page)
        self.tracer.bind(context)
        LOGGER.debug("Activated new browser context")
        return page

    def _live_page(self) -> Optional[Page]:
        if not self.tabs.has_live_page:
            return None
        return self.tabs.current_tab()

    @property
    def page(self) -> Page:
        return self.tabs.current_tab()

    @property
    def context(self) -> BrowserContext:
        return self.tabs.context

    def _locator(self, selector: str, has_text: Optional[str] = None) -> Locator:
        if has_text is None:
            return self.page.locator(selector)
        return self.page.locator(selector, has_text=has_text)

    # Context and page management

    @diagnosed
    def set_timeout(self, milliseconds: float) -> None:
        self._timeout = milliseconds
        self.executor.default_timeout = milliseconds
        self.context.set_default_timeout(milliseconds)

    @diagnosed
    def open_new_context(self) -> None:
        self._activate(self._engine.new_context())

    @diagnosed
    def close_context(self) -> None:
        context = self.context
        self.tabs.mark_context_closed()
        self.tracer.unbind()
        context.close()

    @diagnosed
    def accept_next_dialog(self) -> None:
        self.page.once("dialog", lambda dialog: dialog.accept())

    # Tabs

    @diagnosed
    def current_tab_index(self) -> int:
        return self.tabs.index_of(self.page)

    @diagnosed
    def switch_to_next_tab(self) -> None:
        self.tabs.switch_to_next()

    @diagnosed
    def switch_to_preceding_tab(self) -> None:
        self.tabs.switch_to_preceding()

    @diagnosed
    def close_current_tab(self) -> None:
        self.tabs.close_current_tab()

    @diagnosed
    def close_next_tab(self) -> None:
        self.tabs.close_next_tab()

    @diagnosed
    def open_new_tab(self, url: str) -> None:
        self.tabs.open_new_tab(url)

    @diagnosed
    def list_tabs(self) -> list[str]:
        return self.tabs.list_tabs()

    # Cookies

    @diagnosed
    def set_cookie(self, cookie: CookieInput) -> None:
        self.session_state.set_cookie(self.context, cookie)

    @diagnosed
    def set_cookies(self, cookies: list[CookieInput]) -> None:
        self.session_state.set_cookies(self.context, cookies)

    @diagnosed
    def get_cookies(self) -> dict[str, CookieEntry]:
        return self.session_state.get_cookies(self.context)

    @diagnosed
    def delete_cookies(self) -> None:
        self.session_state.delete_cookies(self.context)

    # Navigation

    @diagnosed
    def navigate_to(self, url: str) -> None:
        self.page.goto(url)

    @diagnosed
    def open(self, url: str) -> None:
        """Open ``url`` in a new tab of the current context and make it current."""

        self.tabs.open_new_tab(url)

    @diagnosed
    def go_back(self) -> None:
        self.page.go_back()

    @diagnosed
    def reload_page(self) -> None:
        self.page.reload()

    # User interaction

    @diagnosed
    def click(self, selector: str) -> None:
        self._locator(selector).click()

    @diagnosed
    def click_role_with_name(self, role: str, name: str) -> None:
        self.page.get_by_role(role.lower(), name=name).click()  # type: ignore[arg-type]

    @diagnosed
    def click_with_text(self, selector: str, text: str) -> None:
        self._locator(selector, has_text=text).click()

    @diagnosed
    def click_times(self, times: int, selector: str) -> None:
        for _ in range(times):
            self.click(selector)

    @diagnosed
    def double_click(self, selector: str) -> None:
        self._locator(selector).dblclick()

    @diagnosed
    def enter_into(self, value: str, selector: str) -> None:
        self._locator(selector).fill(value)

    @diagnosed
    def select_label_in(self, label: str, selector: str) -> None:
        self._locator(selector).select_option(label=label)

    @diagnosed
    def select_value_in(self, value: str, selector: str) -> None:
        self._locator(selector).select_option(value=value)

    @diagnosed
    def select_index_in(self, index: int, selector: str) -> None:
        self._locator(selector).select_option(index=index)

    @diagnosed
    def select_checkbox(self, selector: str) -> None:
        self._locator(selector).check()

    @diagnosed
    def force_select_checkbox(self, selector: str) -> None:
        self._locator(selector).check(force=True)

    @diagnosed
    def force_deselect_checkbox(self, selector: str) -> None:
        self._locator(selector).uncheck(force=True)

    # Keyboard

    @diagnosed
    def press(self, key_or_chord: str) -> None:
        self.page.keyboard.press(key_or_chord)

    @diagnosed
    def type(self, text: str) -> None:
        self.page.keyboard.type(text)

    @diagnosed
    def type_in(self, text: str, selector: str) -> None:
        self._locator(selector).press_sequentially(text, delay=200)

    # Waiting

    @diagnosed
    def wait_for_url(self, url: str) -> None:
        self.page.wait_for_url(url)

    @diagnosed
    def wait_for_visible(self, selector: str) -> None:
        self._locator(selector).wait_for()

    @diagnosed
    def wait_for_hidden(self, selector: str) -> None:
        self._locator(selector).wait_for(state="hidden")

    @diagnosed
    def wait_for_present_in_dom(self, selector: str) -> None:
        self._locator(selector).wait_for(state="attached")

    @diagnosed
    def wait_for_network_idle(self) -> None:
        self.page.wait_for_load_state("networkidle")

    @diagnosed
    def wait_for_milliseconds(self, milliseconds: float) -> None:
        self.page.wait_for_timeout(milliseconds)

    # Assertions

    @diagnosed
    def assert_that_is_visible(self, selector: str, timeout: Optional[float] = None) -> None:
        expect(self._locator(selector)).to_be_visible(timeout=timeout)

    @diagnosed
    def assert_that_is_hidden(self, selector: str, timeout: Optional[float] = None) -> None:
        expect(self._locator(selector)).to_be_hidden(timeout=timeout)

    @diagnosed
    def assert_that_is_enabled(self, selector: str) -> None:
        expect(self._locator(selector)).to_be_enabled()

    @diagnosed
    def assert_that_is_checked(self, selector: str) -> None:
        expect(self._locator(selector)).to_be_checked()

    @diagnosed
    def assert_that_contains_text(self, selector: str, value: str) -> None:
        expect(self._locator(selector)).to_contain_text(value)

    @diagnosed
    def assert_that_has_value(
        self,
        selector: str,
        value: str,
        timeout: Optional[float] = None,
    ) -> None:
        expect(self._locator(selector)).to_have_value(value, timeout=timeout)

    @diagnosed
    def assert_that_page_has_url(self, url: str, timeout: Optional[float] = None) -> None:
        expect(self.page).to_have_url(re.compile(url), timeout=timeout)

    @diagnosed
    def assert_that_page_has_not_url(self, url: str, timeout: Optional[float] = None) -> None:
        expect(self.page).not_to_have_url(re.compile(url), timeout=timeout)

    @diagnosed
    def is_visible(self, selector: str) -> bool:
        return self._locator(selector).is_visible()

    @diagnosed
    def is_hidden(self, selector: str) -> bool:
        return self._locator(selector).is_hidden()

    @diagnosed
    def is_enabled(self, selector: str) -> bool:
        return self._locator(selector).is_enabled()

    @diagnosed
    def is_checked(self, selector: str) -> bool:
        return self._locator(selector).is_checked()

    # Value retrieval

    @diagnosed
    def value_of(self, selector: str) -> str:
        locator = self._locator(selector)
        tag = str(locator.evaluate("e => e.tagName")).lower()
        if tag in _INPUT_TAGS:
            return locator.input_value()
        if tag in _MARKUP_TAGS:
            return locator.inner_html()
        return locator.inner_text()

    @diagnosed
    def value_of_attribute_for_selector(self, attribute: str, selector: str) -> Optional[str]:
        return self._locator(selector).get_attribute(attribute)

    @diagnosed
    def selected_label_in(self, selector: str) -> str:
        return str(self._locator(selector).evaluate("e => e.options[e.selectedIndex].innerText"))

    @diagnosed
    def normalized_value_of(self, selector: str) -> Optional[str]:
        return normalize_text(self.value_of(selector))

    @diagnosed
    def get_url(self) -> str:
        return self.page.url

    # Screenshots and debugging

    @diagnosed
    def take_screenshot(self, base_name: Optional[str] = None) -> str:
        name = base_name or timestamp_name()
        path = capture_screenshot(self.page, self.artifacts, name)
        return screenshot_link(path, name)

    @diagnosed
    def debug(self) -> None:
        """Open the Playwright inspector; only works when running headed."""

        self.page.pause()

    @diagnosed
    def current_page(self) -> str:
        return str(self.page)

    @diagnosed
    def pages(self) -> list[str]:
        return [str(page) for page in self.tabs.pages()]

    @diagnosed
    def current_context(self) -> str:
        return str(self.context)

    # Re-usable session state

    @diagnosed
    def save_storage_state(self) -> StorageState:
        return self.session_state.save_snapshot(self.context)

    @diagnosed
    def save_storage_state_to_file(self, name: str) -> None:
        self.session_state.save_snapshot_to_file(self.context, name)

    @property
    def storage_state(self) -> Optional[StorageState]:
        return self.session_state.snapshot

    @diagnosed
    def open_new_context_with_saved_storage_state(self) -> None:
        self._activate(self.session_state.new_context_from_snapshot())

    @diagnosed
    def open_new_context_with_saved_storage_state_from_file(self, name: str) -> None:
        self._activate(self.session_state.new_context_from_file(name))

    # Tracing

    @diagnosed
    def start_trace(self) -> None:
        self.tracer.start()

    @diagnosed
    def stop_trace(self, name: str) -> Path:
        return self.tracer.stop(name)

    # Synchronised actions

    @diagnosed
    def click_and_wait(self, selector: str, condition: ConditionInput) -> Any:
        return self.executor.act_and_wait(
            self.page,
            lambda: self._locator(selector).click(),
            _condition(condition),
        )

    @diagnosed
    def select_and_wait(self, selector: str, condition: ConditionInput) -> Any:
        return self.executor.act_and_wait(
            self.page,
            lambda: self._locator(selector).check(),
            _condition(condition),
        )

    @diagnosed
    def enter_into_and_wait(self, value: str, selector: str, condition: ConditionInput) -> Any:
        return self.executor.act_and_wait(
            self.page,
            lambda: self._locator(selector).fill(value),
            _condition(condition),
        )

    @diagnosed
    def navigate_and_wait(self, url: str, condition: ConditionInput) -> Any:
        page = self.page
        return self.executor.act_and_wait(page, lambda: page.goto(url), _condition(condition))

    @diagnosed
    def open_and_wait_for_response_from_url(self, open_url: str, response_url: str) -> None:
        page = self.tabs.open_new_tab()
        self.executor.act_and_wait(
            page,
            lambda: page.goto(open_url),
            WaitCondition(kind=WaitKind.RESPONSE, url_pattern=response_url),
        )

    @diagnosed
    def click_and_wait_for_response_from_url(self, selector: str, url: str) -> None:
        self.click_and_wait(selector, WaitCondition(kind=WaitKind.RESPONSE, url_pattern=url))

    @diagnosed
    def click_and_wait_for_request_finished(self, selector: str) -> None:
        self.click_and_wait(selector, WaitCondition(kind=WaitKind.REQUEST_FINISHED))

    @diagnosed
    def click_and_wait_for_navigation(self, selector: str) -> None:
        self.click_and_wait(selector, WaitCondition(kind=WaitKind.NAVIGATION))

    @diagnosed
    def select_and_wait_for_response_from_url(self, selector: str, url: str) -> None:
        self.select_and_wait(
            selector,
            WaitCondition(kind=WaitKind.RESPONSE, url_pattern=url, regex=True),
        )

    @diagnosed
    def select_and_wait_for_request_finished(self, selector: str) -> None:
        self.select_and_wait(selector, WaitCondition(kind=WaitKind.REQUEST_FINISHED))

    @diagnosed
    def enter_into_and_wait_for_response_from_url(self, value: str, selector: str, url: str) -> None:
        self.enter_into_and_wait(
            value,
            selector,
            WaitCondition(kind=WaitKind.RESPONSE, url_pattern=url),
        )

    @diagnosed
    def wait_for_response_from_url_matching(self, url_regex: str) -> None:
        self.executor.act_and_wait(
            self.page,
            lambda: None,
            WaitCondition(kind=WaitKind.RESPONSE, url_pattern=url_regex, regex=True),
        )

    @diagnosed
    def click_on_opens_tab_with_url(self, selector: str, url: str) -> bool:
        return self.executor.click_opens_tab_with_url(self.page, selector, url)

    @diagnosed
    def click_on_and_wait_opens_tab_with_url(self, selector: str, url: str) -> bool:
        self.executor.click_and_wait_opens_tab_with_url(self.page, selector, url)
        return True

    @diagnosed
    def set_url_to_return_body(self, url: str, body: str) -> None:
        self.context.route(url, lambda route: route.fulfill(body=body))


def _condition(condition: ConditionInput) -> WaitCondition:
    if isinstance(condition, WaitCondition):
        return condition
    return WaitCondition.model_validate(dict(condition))
