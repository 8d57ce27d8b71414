"""Failure taxonomy shared by every driver component."""

from __future__ import annotations

import enum
from typing import Optional

from .models import Diagnostic, FailureKind


class ErrorReason(str, enum.Enum):
    """Specific condition that caused a failure."""

    NO_SUCH_TAB = "no_such_tab"
    NO_OPEN_TAB = "no_open_tab"
    NO_ACTIVE_CONTEXT = "no_active_context"
    TRACE_ALREADY_ACTIVE = "trace_already_active"
    NO_ACTIVE_TRACE = "no_active_trace"
    SESSION_STATE_FILE_NOT_FOUND = "session_state_file_not_found"
    INVALID_SESSION_STATE = "invalid_session_state"
    UNKNOWN_COMMAND = "unknown_command"
    WAIT_TIMEOUT = "wait_timeout"
    URL_MISMATCH = "url_mismatch"
    ENGINE_FAILURE = "engine_failure"
    ARTIFACT_WRITE_FAILED = "artifact_write_failed"


_KIND_BY_REASON = {
    ErrorReason.NO_SUCH_TAB: FailureKind.USAGE,
    ErrorReason.NO_OPEN_TAB: FailureKind.USAGE,
    ErrorReason.NO_ACTIVE_CONTEXT: FailureKind.USAGE,
    ErrorReason.TRACE_ALREADY_ACTIVE: FailureKind.USAGE,
    ErrorReason.NO_ACTIVE_TRACE: FailureKind.USAGE,
    ErrorReason.SESSION_STATE_FILE_NOT_FOUND: FailureKind.USAGE,
    ErrorReason.INVALID_SESSION_STATE: FailureKind.USAGE,
    ErrorReason.UNKNOWN_COMMAND: FailureKind.USAGE,
    ErrorReason.WAIT_TIMEOUT: FailureKind.TIMEOUT,
    ErrorReason.URL_MISMATCH: FailureKind.TIMEOUT,
    ErrorReason.ENGINE_FAILURE: FailureKind.ENGINE,
    ErrorReason.ARTIFACT_WRITE_FAILED: FailureKind.INFRA,
}


class DriverError(RuntimeError):
    """Raised for every failure that crosses the driver boundary.

    The failure category lives in :attr:`kind` and the precise condition in
    :attr:`reason`; callers branch on those tags instead of on subclasses.
    Once the diagnostic boundary has handled the error, :attr:`diagnostic`
    holds the screenshot reference and the HTML-safe payload.
    """

    def __init__(
        self,
        reason: ErrorReason,
        message: str,
        *,
        kind: Optional[FailureKind] = None,
        diagnostic: Optional[Diagnostic] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.kind = kind or _KIND_BY_REASON[reason]
        self.message = message
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        if self.diagnostic and self.diagnostic.screenshot_path:
            return f"{self.message}\nScreenshot: {self.diagnostic.screenshot_path}"
        return self.message


def no_such_tab(message: str) -> DriverError:
    return DriverError(ErrorReason.NO_SUCH_TAB, message)


def usage_error(reason: ErrorReason, message: str) -> DriverError:
    return DriverError(reason, message)


def engine_error(exc: BaseException) -> DriverError:
    """Wrap an arbitrary engine exception, keeping its message intact."""

    return DriverError(ErrorReason.ENGINE_FAILURE, str(exc) or exc.__class__.__name__)


def infra_error(message: str) -> DriverError:
    return DriverError(ErrorReason.ARTIFACT_WRITE_FAILED, message)
