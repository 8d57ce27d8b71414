"""Execute a table of driver commands one row at a time."""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from rich.console import Console

from .driver import BrowserDriver
from .errors import DriverError, ErrorReason, FailureKind, usage_error

LOGGER = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class TableRow(BaseModel):
    """One command of a table, e.g. ``{"command": "clickOn", "args": ["#ok"]}``."""

    command: str
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)
    expect: Optional[Any] = Field(
        default=None,
        description="Expected return value; a mismatch fails the row.",
    )


class CommandTable(BaseModel):
    """A named sequence of table rows."""

    name: str = "table"
    rows: list[TableRow] = Field(default_factory=list)


@dataclass
class RowResult:
    row: TableRow
    passed: bool
    value: Any = None
    error: Optional[DriverError] = None


@dataclass
class TableResult:
    name: str
    rows: list[RowResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.rows)

    def failures(self, kind: Optional[FailureKind] = None) -> list[RowResult]:
        return [
            result
            for result in self.rows
            if not result.passed
            and (kind is None or (result.error is not None and result.error.kind == kind))
        ]


def load_table(path: Path) -> CommandTable:
    """Load a table from YAML; a bare list is treated as the rows."""

    data = yaml.safe_load(path.read_text()) or []
    if isinstance(data, list):
        data = {"name": path.stem, "rows": data}
    return CommandTable.model_validate(data)


def command_name(name: str) -> str:
    """Map ``clickOnOpensTabWithUrl`` style names onto driver method names."""

    return _CAMEL_BOUNDARY.sub("_", name.strip()).replace(" ", "_").lower()


class TableRunner:
    """Dispatch table rows to a :class:`BrowserDriver` and report each result."""

    def __init__(
        self,
        driver: BrowserDriver,
        *,
        console: Optional[Console] = None,
        continue_on_failure: bool = True,
    ) -> None:
        self._driver = driver
        self._console = console or Console()
        self._continue_on_failure = continue_on_failure

    def resolve(self, command: str):
        name = command_name(command)
        method = None if name.startswith("_") else getattr(type(self._driver), name, None)
        # Only methods routed through the diagnostic boundary are table commands.
        if not inspect.isfunction(method) or not hasattr(method, "__wrapped__"):
            raise usage_error(ErrorReason.UNKNOWN_COMMAND, f"Unknown command: {command}")
        return getattr(self._driver, name)

    def run(self, table: CommandTable) -> TableResult:
        result = TableResult(name=table.name)
        LOGGER.info("Running table %s with %s rows", table.name, len(table.rows))
        for index, row in enumerate(table.rows, start=1):
            row_result = self.run_row(row)
            result.rows.append(row_result)
            self._report(index, row_result)
            if not row_result.passed and not self._continue_on_failure:
                LOGGER.info("Stopping table %s after failed row %s", table.name, index)
                break
        return result

    def run_row(self, row: TableRow) -> RowResult:
        try:
            method = self.resolve(row.command)
            value = method(*row.args, **row.kwargs)
        except DriverError as exc:
            return RowResult(row=row, passed=False, error=exc)
        if row.expect is not None and value != row.expect:
            return RowResult(row=row, passed=False, value=value)
        return RowResult(row=row, passed=True, value=value)

    def _report(self, index: int, result: RowResult) -> None:
        label = f"{index:>3} {result.row.command} {_format_args(result.row)}".rstrip()
        if result.passed:
            suffix = "" if result.value is None else f" -> {result.value!r}"
            self._console.print(f"[PASS] {label}{suffix}", style="green", markup=False)
            return
        if result.error is None:
            self._console.print(
                f"[FAIL] {label}: expected {result.row.expect!r}, got {result.value!r}",
                style="red",
                markup=False,
            )
            return
        error = result.error
        self._console.print(
            f"[FAIL] {label} ({error.kind.value}/{error.reason.value}): {error.message}",
            style="yellow" if error.kind == FailureKind.INFRA else "red",
            markup=False,
        )
        if error.diagnostic and error.diagnostic.screenshot_path:
            self._console.print(f"       screenshot: {error.diagnostic.screenshot_path}", style="dim")


def _format_args(row: TableRow) -> str:
    parts = [repr(arg) for arg in row.args]
    parts.extend(f"{key}={value!r}" for key, value in row.kwargs.items())
    return ", ".join(parts)
