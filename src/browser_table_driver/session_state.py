"""Cookie and storage-state persistence for browser contexts."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from playwright.sync_api import BrowserContext, Error, StorageState

from .artifacts import ArtifactLayout, ensure_parent
from .engine import ContextFactory
from .errors import ErrorReason, engine_error, infra_error, usage_error
from .models import CookieEntry

LOGGER = logging.getLogger(__name__)


class SessionStateStore:
    """Capture storage state from one context and seed new contexts with it.

    Snapshots are only ever applied when a context is created; a live context
    is never rewritten from a snapshot. Cookie operations, on the other hand,
    act on the live context immediately.
    """

    def __init__(self, factory: ContextFactory, artifacts: ArtifactLayout) -> None:
        self._factory = factory
        self._artifacts = artifacts
        self._snapshot: Optional[StorageState] = None

    @property
    def snapshot(self) -> Optional[StorageState]:
        return self._snapshot

    def save_snapshot(self, context: BrowserContext) -> StorageState:
        self._snapshot = context.storage_state()
        LOGGER.info(
            "Saved storage state snapshot with %s cookies",
            len(self._snapshot.get("cookies", [])),
        )
        return self._snapshot

    def save_snapshot_to_file(self, context: BrowserContext, name: str) -> None:
        path = self._artifacts.storage_state_path(name)
        try:
            ensure_parent(path)
        except OSError as exc:
            raise infra_error(f"Cannot create storage state directory for {path}: {exc}") from exc
        try:
            context.storage_state(path=path)
        except OSError as exc:
            raise infra_error(f"Cannot write storage state file {path}: {exc}") from exc
        LOGGER.info("Saved storage state to %s", path)

    def new_context_from_snapshot(
        self,
        snapshot: Optional[Mapping[str, Any]] = None,
    ) -> BrowserContext:
        state = snapshot if snapshot is not None else self._snapshot
        validated = _validate_snapshot(state)
        LOGGER.info("Opening browser context from in-memory storage state")
        try:
            return self._factory.new_context(storage_state=validated)
        except Error as exc:
            raise usage_error(
                ErrorReason.INVALID_SESSION_STATE,
                f"Storage state was rejected by the browser: {exc}",
            ) from exc

    def new_context_from_file(self, name: str) -> BrowserContext:
        path = self._artifacts.storage_state_path(name)
        if not path.is_file():
            raise usage_error(
                ErrorReason.SESSION_STATE_FILE_NOT_FOUND,
                f"Storage state file not found: {path}",
            )
        LOGGER.info("Opening browser context from storage state file %s", path)
        try:
            return self._factory.new_context(storage_state=str(path))
        except (Error, ValueError) as exc:
            # Playwright reads the file client side; malformed JSON is a ValueError.
            raise usage_error(
                ErrorReason.INVALID_SESSION_STATE,
                f"Storage state file {path} could not be loaded: {exc}",
            ) from exc

    def set_cookie(self, context: BrowserContext, cookie: Mapping[str, Any] | CookieEntry) -> None:
        self.set_cookies(context, [cookie])

    def set_cookies(
        self,
        context: BrowserContext,
        cookies: Iterable[Mapping[str, Any] | CookieEntry],
    ) -> None:
        entries = [_to_entry(cookie) for cookie in cookies]
        try:
            context.add_cookies([entry.to_playwright() for entry in entries])
        except Error as exc:
            raise engine_error(exc) from exc
        LOGGER.debug("Added %s cookies", len(entries))

    def get_cookies(self, context: BrowserContext) -> dict[str, CookieEntry]:
        return {
            cookie["name"]: CookieEntry.from_playwright(dict(cookie))
            for cookie in context.cookies()
        }

    def delete_cookies(self, context: BrowserContext) -> None:
        context.clear_cookies()
        LOGGER.debug("Cleared cookies of the active context")


def _to_entry(cookie: Mapping[str, Any] | CookieEntry) -> CookieEntry:
    if isinstance(cookie, CookieEntry):
        return cookie
    return CookieEntry.model_validate(dict(cookie))


def _validate_snapshot(state: Optional[Mapping[str, Any]]) -> StorageState:
    if state is None:
        raise usage_error(
            ErrorReason.INVALID_SESSION_STATE,
            "No storage state has been saved yet",
        )
    cookies = state.get("cookies") if isinstance(state, Mapping) else None
    origins = state.get("origins", []) if isinstance(state, Mapping) else None
    if not isinstance(cookies, list) or not isinstance(origins, list):
        raise usage_error(
            ErrorReason.INVALID_SESSION_STATE,
            "Storage state must contain 'cookies' and 'origins' lists",
        )
    return {"cookies": list(cookies), "origins": list(origins)}
