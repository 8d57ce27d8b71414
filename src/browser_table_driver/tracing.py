"""Trace recording for the active browser context."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from playwright.sync_api import BrowserContext, Error

from .artifacts import ArtifactLayout, ensure_parent
from .errors import ErrorReason, infra_error, usage_error

LOGGER = logging.getLogger(__name__)


class TraceRecorder:
    """Start and stop a single trace per browser context."""

    def __init__(self, artifacts: ArtifactLayout) -> None:
        self._artifacts = artifacts
        self._context: Optional[BrowserContext] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def bind(self, context: BrowserContext) -> None:
        """Follow a newly opened context; it starts without a trace."""

        self._context = context
        self._active = False

    def unbind(self) -> None:
        """Forget the context after it has been closed."""

        self._context = None
        self._active = False

    def start(self) -> None:
        context = self._require_context()
        if self._active:
            raise usage_error(
                ErrorReason.TRACE_ALREADY_ACTIVE,
                "A trace is already being recorded for this browser context",
            )
        context.tracing.start(screenshots=True, snapshots=True, sources=False)
        self._active = True
        LOGGER.info("Started trace recording")

    def stop(self, name: str) -> Path:
        context = self._require_context()
        if not self._active:
            raise usage_error(
                ErrorReason.NO_ACTIVE_TRACE,
                "No trace is being recorded; start a trace before saving it",
            )
        path = self._artifacts.trace_path(name)
        try:
            ensure_parent(path)
        except OSError as exc:
            raise infra_error(f"Cannot create trace directory for {path}: {exc}") from exc
        try:
            context.tracing.stop(path=path)
        except (OSError, Error) as exc:
            # The archive is zipped by the driver process; recording is still on.
            raise infra_error(f"Cannot write trace file {path}: {exc}") from exc
        self._active = False
        LOGGER.info("Saved trace to %s", path)
        return path

    def _require_context(self) -> BrowserContext:
        if self._context is None:
            raise usage_error(ErrorReason.NO_ACTIVE_CONTEXT, "No browser context is open")
        return self._context
