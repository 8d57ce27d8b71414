"""Failure interception boundary wrapped around every driver command."""

from __future__ import annotations

import functools
import html
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from playwright.sync_api import Error, Page

from .artifacts import ArtifactLayout, ensure_parent, screenshot_link
from .errors import DriverError, ErrorReason, infra_error
from .models import Diagnostic, FailureKind

LOGGER = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_ANSI_ESCAPE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|[@-Z\\-_])")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def capture_screenshot(page: Page, artifacts: ArtifactLayout, base_name: str) -> Path:
    """Write a full-page screenshot of ``page`` and return its path."""

    path = artifacts.screenshot_path(base_name)
    try:
        ensure_parent(path)
        page.screenshot(path=path, full_page=True)
    except OSError as exc:
        raise infra_error(f"Cannot write screenshot {path}: {exc}") from exc
    return path


def timestamp_name() -> str:
    return str(int(time.time() * 1000))


def printable(text: str) -> str:
    """Drop terminal colour codes and replace other control characters with U+FFFD."""

    return _CONTROL_CHARS.sub("\ufffd", _ANSI_ESCAPE.sub("", text))


class DiagnosticBoundary:
    """Turn any failure into a screenshot-annotated :class:`DriverError`.

    ``page_provider`` returns the page to capture, or ``None`` when there is no
    live context/page; in that case the failure is re-raised without a
    screenshot instead of cascading into a second failure.
    """

    def __init__(
        self,
        artifacts: ArtifactLayout,
        page_provider: Callable[[], Optional[Page]],
        name_factory: Callable[[], str] = timestamp_name,
    ) -> None:
        self._artifacts = artifacts
        self._page_provider = page_provider
        self._name_factory = name_factory

    def invoke(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DriverError as exc:
            if exc.diagnostic is not None:
                raise
            raise self.diagnose(operation, exc) from exc
        except Exception as exc:
            raise self.diagnose(operation, exc) from exc

    def diagnose(self, operation: str, exc: Exception) -> DriverError:
        if isinstance(exc, DriverError):
            reason, kind, message = exc.reason, exc.kind, exc.message
        else:
            reason, kind = ErrorReason.ENGINE_FAILURE, FailureKind.ENGINE
            message = str(exc) or exc.__class__.__name__
        LOGGER.warning("Command %s failed (%s): %s", operation, kind.value, message)

        screenshot_path: Optional[Path] = None
        page = self._page_provider()
        if page is not None:
            name = self._name_factory()
            try:
                screenshot_path = capture_screenshot(page, self._artifacts, name)
            except DriverError as infra:
                LOGGER.error("Could not capture failure screenshot: %s", infra.message)
                reason, kind = infra.reason, infra.kind
                message = f"{message} (screenshot failed: {infra.message})"
            except Error as shot_error:
                LOGGER.warning("Page could not be captured after failure: %s", shot_error)

        escaped = html.escape(printable(message), quote=True)
        payload = f"<div>{escaped}</div>"
        if screenshot_path is not None:
            payload += f"<div>{screenshot_link(screenshot_path, screenshot_path.stem)}</div>"
        diagnostic = Diagnostic(
            kind=kind,
            operation=operation,
            message=message,
            escaped_message=escaped,
            screenshot_path=screenshot_path,
            html=payload,
        )
        return DriverError(reason, message, kind=kind, diagnostic=diagnostic)


def diagnosed(method: F) -> F:
    """Route a driver method through the instance's diagnostic boundary."""

    @functools.wraps(method)
    def wrapper(self, *args: Any, **kwargs: Any) -> Any:
        return self.diagnostics.invoke(method.__name__, method, self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
