"""Table-driven Playwright browser driver."""

from .driver import BrowserDriver
from .errors import DriverError, ErrorReason, FailureKind

__all__ = ["BrowserDriver", "DriverError", "ErrorReason", "FailureKind"]
