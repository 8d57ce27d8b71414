"""Playwright engine launcher and context factory."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Union

from playwright.sync_api import Browser, BrowserContext, Playwright, StorageState, sync_playwright

from .artifacts import ArtifactLayout, ensure_parent
from .config import ContextConfig, LaunchConfig

LOGGER = logging.getLogger(__name__)

StorageStateSeed = Union[StorageState, str, None]


class ContextFactory(Protocol):
    """Anything able to open a fresh browser context."""

    def new_context(self, storage_state: StorageStateSeed = None) -> BrowserContext:
        """Open a context, optionally seeded with a storage state dict or file path."""


class BrowserEngine:
    """Owns the Playwright driver and the launched browser."""

    def __init__(
        self,
        launch: Optional[LaunchConfig] = None,
        context: Optional[ContextConfig] = None,
        artifacts: Optional[ArtifactLayout] = None,
    ) -> None:
        self._launch = launch or LaunchConfig()
        self._context_config = context or ContextConfig()
        self._artifacts = artifacts
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts_opened = 0

    @property
    def browser(self) -> Browser:
        if not self._browser:
            raise RuntimeError("Browser engine is not started")
        return self._browser

    def start(self) -> None:
        LOGGER.debug("Starting Playwright with %s", self._launch.browser)
        self._playwright = sync_playwright().start()
        browser_type = getattr(self._playwright, self._launch.browser)
        self._browser = browser_type.launch(**self.launch_options())

    def stop(self) -> None:
        LOGGER.debug("Stopping Playwright engine")
        try:
            if self._browser:
                self._browser.close()
        finally:
            if self._playwright:
                self._playwright.stop()
        self._browser = None
        self._playwright = None

    def __enter__(self) -> "BrowserEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def launch_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"headless": self._launch.headless}
        if self._launch.args:
            options["args"] = list(self._launch.args)
        if self._launch.proxy_server:
            options["proxy"] = {"server": self._launch.proxy_server}
        return options

    def context_options(self, storage_state: StorageStateSeed = None) -> dict[str, Any]:
        """Translate the context configuration into ``Browser.new_context`` kwargs."""

        config = self._context_config
        options: dict[str, Any] = {
            "bypass_csp": config.bypass_csp,
            "accept_downloads": config.accept_downloads,
        }
        if config.base_url:
            options["base_url"] = config.base_url
        if config.extra_http_headers:
            options["extra_http_headers"] = dict(config.extra_http_headers)
        if config.color_scheme:
            options["color_scheme"] = config.color_scheme
        if config.viewport:
            options["viewport"] = {
                "width": config.viewport.width,
                "height": config.viewport.height,
            }
        if config.device_scale_factor is not None:
            options["device_scale_factor"] = config.device_scale_factor
        if config.har_name and self._artifacts:
            # Contexts stay open side by side, so each records its own archive.
            har_name = config.har_name
            if self._contexts_opened:
                har_name = f"{har_name}-{self._contexts_opened + 1}"
            har_path = ensure_parent(self._artifacts.har_path(har_name))
            options["record_har_path"] = str(har_path)
            options["record_har_omit_content"] = True
        if storage_state is not None:
            options["storage_state"] = storage_state
        return options

    def new_context(self, storage_state: StorageStateSeed = None) -> BrowserContext:
        LOGGER.debug("Opening new browser context")
        context = self.browser.new_context(**self.context_options(storage_state))
        self._contexts_opened += 1
        return context
