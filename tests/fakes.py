"""In-memory stand-ins for the Playwright objects the driver talks to."""

from __future__ import annotations

import json
import re
import time
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.sync_api import Error
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from browser_table_driver.models import glob_to_regex

FAKE_DEFAULT_TIMEOUT = 1000.0


def _matches(matcher: Any, target: Any) -> bool:
    if matcher is None:
        return True
    if callable(matcher) and not isinstance(matcher, re.Pattern):
        return bool(matcher(target))
    url = target if isinstance(target, str) else target.url
    if isinstance(matcher, re.Pattern):
        return matcher.search(url) is not None
    return re.search(glob_to_regex(matcher), url) is not None


class FakeEventInfo:
    def __init__(self) -> None:
        self.received = False
        self._value: Any = None

    def set(self, value: Any) -> None:
        self._value = value
        self.received = True

    @property
    def value(self) -> Any:
        if not self.received:
            raise PlaywrightTimeoutError("event was not received")
        return self._value


class FakeExpectation:
    """Context manager mirroring Playwright's ``expect_*`` helpers."""

    def __init__(
        self,
        emitter: "FakeEmitter",
        event: str,
        matcher: Any,
        timeout: Optional[float],
    ) -> None:
        self._emitter = emitter
        self.event = event
        self.matcher = matcher
        self.timeout = timeout if timeout is not None else emitter.default_timeout
        self.info = FakeEventInfo()

    def __enter__(self) -> FakeEventInfo:
        self._emitter.waiters.append(self)
        return self.info

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._emitter.waiters.remove(self)
        if exc_type is not None:
            return False
        if not self.info.received:
            time.sleep(self.timeout / 1000)
            raise PlaywrightTimeoutError(
                f"Timeout {self.timeout:.0f}ms exceeded while waiting for event \"{self.event}\""
            )
        return False


class FakeEmitter:
    def __init__(self) -> None:
        self.waiters: list[FakeExpectation] = []
        self.default_timeout = FAKE_DEFAULT_TIMEOUT

    def emit(self, event: str, payload: Any) -> None:
        for waiter in list(self.waiters):
            if waiter.event == event and not waiter.info.received and _matches(waiter.matcher, payload):
                waiter.info.set(payload)


class FakeResponse:
    def __init__(self, url: str, status: int = 200) -> None:
        self.url = url
        self.status = status


class FakeRequest:
    def __init__(self, url: str) -> None:
        self.url = url


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, has_text: Optional[str] = None) -> None:
        self._page = page
        self.selector = selector
        self.has_text = has_text

    def _perform(self, action: str, *args: Any, **kwargs: Any) -> Any:
        self._page.calls.append((action, self.selector, args, kwargs))
        if self.selector in self._page.broken_selectors:
            raise Error(self._page.broken_selectors[self.selector])
        handler = self._page.handlers.get((action, self.selector))
        if handler is not None:
            return handler(*args, **kwargs)
        return None

    def click(self, **kwargs: Any) -> None:
        self._perform("click", **kwargs)

    def dblclick(self, **kwargs: Any) -> None:
        self._perform("dblclick", **kwargs)

    def fill(self, value: str, **kwargs: Any) -> None:
        self._perform("fill", value, **kwargs)

    def check(self, **kwargs: Any) -> None:
        self._perform("check", **kwargs)

    def uncheck(self, **kwargs: Any) -> None:
        self._perform("uncheck", **kwargs)

    def select_option(self, **kwargs: Any) -> None:
        self._perform("select_option", **kwargs)

    def press_sequentially(self, text: str, **kwargs: Any) -> None:
        self._perform("press_sequentially", text, **kwargs)

    def wait_for(self, **kwargs: Any) -> None:
        self._perform("wait_for", **kwargs)

    def evaluate(self, expression: str) -> Any:
        return self._perform("evaluate", expression)

    def input_value(self) -> str:
        return self._perform("input_value")

    def inner_html(self) -> str:
        return self._perform("inner_html")

    def inner_text(self) -> str:
        return self._perform("inner_text")

    def get_attribute(self, name: str) -> Optional[str]:
        return self._perform("get_attribute", name)

    def is_visible(self) -> bool:
        return bool(self._perform("is_visible"))


class FakeTracing:
    def __init__(self) -> None:
        self.started_with: Optional[dict[str, Any]] = None
        self.stopped_at: list[Path] = []
        self.stop_error: Optional[BaseException] = None

    def start(self, **kwargs: Any) -> None:
        self.started_with = kwargs

    def stop(self, path: Any = None) -> None:
        if self.stop_error is not None:
            raise self.stop_error
        if path is not None:
            Path(path).write_bytes(b"PK-fake-trace")
            self.stopped_at.append(Path(path))


class FakePage(FakeEmitter):
    def __init__(self, context: "FakeContext", url: str = "about:blank") -> None:
        super().__init__()
        self.context = context
        self.url = url
        self.closed = False
        self.calls: list[tuple[str, str, tuple[Any, ...], dict[str, Any]]] = []
        self.handlers: dict[tuple[str, str], Callable[..., Any]] = {}
        self.broken_selectors: dict[str, str] = {}
        self.screenshot_error: Optional[BaseException] = None
        self.fronted = 0
        self.default_timeout = context.default_timeout

    def __repr__(self) -> str:
        return f"<FakePage url={self.url!r}>"

    def on(self, action: str, selector: str, handler: Callable[..., Any]) -> None:
        self.handlers[(action, selector)] = handler

    def fail(self, selector: str, message: str) -> None:
        self.broken_selectors[selector] = message

    def locator(self, selector: str, has_text: Optional[str] = None) -> FakeLocator:
        return FakeLocator(self, selector, has_text)

    def goto(self, url: str, **kwargs: Any) -> FakeResponse:
        self.url = url
        response = FakeResponse(url)
        self.emit("response", response)
        self.emit("requestfinished", FakeRequest(url))
        self.emit("navigation", url)
        return response

    def respond(self, url: str) -> None:
        self.emit("response", FakeResponse(url))
        self.emit("requestfinished", FakeRequest(url))

    def expect_response(self, url_or_predicate: Any, *, timeout: Optional[float] = None):
        return FakeExpectation(self, "response", url_or_predicate, timeout)

    def expect_request_finished(self, predicate: Any = None, *, timeout: Optional[float] = None):
        return FakeExpectation(self, "requestfinished", predicate, timeout)

    def expect_navigation(self, *, url: Any = None, timeout: Optional[float] = None, **kwargs: Any):
        return FakeExpectation(self, "navigation", url, timeout)

    def wait_for_timeout(self, timeout: float) -> None:
        self.calls.append(("wait_for_timeout", "", (timeout,), {}))

    def wait_for_url(self, url: str, *, timeout: Optional[float] = None) -> None:
        if self.url != url:
            raise PlaywrightTimeoutError(f"Timeout exceeded waiting for url \"{url}\"")

    def screenshot(self, *, path: Any = None, full_page: bool = False) -> bytes:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        data = b"\x89PNG-fake"
        if path is not None:
            Path(path).write_bytes(data)
        return data

    def bring_to_front(self) -> None:
        self.fronted += 1

    def is_closed(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True
        if self in self.context.pages:
            self.context.pages.remove(self)


class FakeContext(FakeEmitter):
    def __init__(self, cookies: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__()
        self.pages: list[FakePage] = []
        self._cookies: list[dict[str, Any]] = list(cookies or [])
        self.tracing = FakeTracing()
        self.routes: dict[str, Callable[..., Any]] = {}
        self.closed = False

    def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        self.emit("page", page)
        return page

    def open_popup(self, url: str) -> FakePage:
        """Simulate a ``target=_blank`` link opening a tab."""

        page = FakePage(self, url=url)
        self.pages.append(page)
        self.emit("page", page)
        return page

    def expect_page(self, predicate: Any = None, *, timeout: Optional[float] = None):
        return FakeExpectation(self, "page", predicate, timeout)

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout
        for page in self.pages:
            page.default_timeout = timeout

    def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        for cookie in cookies:
            if "url" not in cookie and "domain" not in cookie:
                raise Error("Cookie should have a url or a domain/path pair")
            self._cookies = [c for c in self._cookies if c["name"] != cookie["name"]]
            stored = {"path": "/", "expires": -1, "httpOnly": False, "secure": False, "sameSite": "Lax"}
            stored.update(cookie)
            self._cookies.append(stored)

    def cookies(self) -> list[dict[str, Any]]:
        return [dict(cookie) for cookie in self._cookies]

    def clear_cookies(self) -> None:
        self._cookies = []

    def storage_state(self, *, path: Any = None) -> dict[str, Any]:
        state = {"cookies": self.cookies(), "origins": []}
        if path is not None:
            Path(path).write_text(json.dumps(state))
        return state

    def route(self, url: str, handler: Callable[..., Any]) -> None:
        self.routes[url] = handler

    def close(self) -> None:
        for page in list(self.pages):
            page.close()
        self.closed = True


class FakeEngine:
    """Context factory used in place of :class:`BrowserEngine`."""

    def __init__(self) -> None:
        self.contexts: list[FakeContext] = []
        self.seeds: list[Any] = []

    def new_context(self, storage_state: Any = None) -> FakeContext:
        self.seeds.append(storage_state)
        cookies: list[dict[str, Any]] = []
        if isinstance(storage_state, str):
            # Playwright parses the file client side, so bad JSON surfaces as ValueError.
            state = json.loads(Path(storage_state).read_text())
            if not isinstance(state, dict) or not isinstance(state.get("cookies"), list):
                raise Error(f"storageState: expected object with cookies in {storage_state}")
            cookies = state["cookies"]
        elif storage_state is not None:
            cookies = storage_state["cookies"]
        context = FakeContext(cookies)
        self.contexts.append(context)
        return context
