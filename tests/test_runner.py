from pathlib import Path

import pytest
from rich.console import Console

from browser_table_driver.errors import DriverError, ErrorReason, FailureKind
from browser_table_driver.runner import CommandTable, TableRow, TableRunner, command_name, load_table


def _runner(driver, **kwargs) -> tuple[TableRunner, Console]:
    console = Console(record=True, width=200)
    return TableRunner(driver, console=console, **kwargs), console


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("clickOnOpensTabWithUrl", "click_on_opens_tab_with_url"),
        ("switchToPrecedingTab", "switch_to_preceding_tab"),
        ("navigate_to", "navigate_to"),
        ("open new tab", "open_new_tab"),
    ],
)
def test_command_name(raw: str, expected: str) -> None:
    assert command_name(raw) == expected


def test_runner_executes_rows_in_order(driver):
    table = CommandTable(
        name="navigation",
        rows=[
            TableRow(command="navigateTo", args=["https://example.test/"]),
            TableRow(command="openNewTab", args=["https://example.test/second"]),
            TableRow(command="currentTabIndex", expect=1),
            TableRow(command="switchToPrecedingTab"),
            TableRow(command="getUrl", expect="https://example.test/"),
        ],
    )
    runner, console = _runner(driver)

    result = runner.run(table)

    assert result.passed
    assert [row.value for row in result.rows][-1] == "https://example.test/"
    assert console.export_text().count("[PASS]") == 5


def test_runner_reports_failures_and_continues(driver):
    driver.page.fail("#missing", "No node found for selector: #missing")
    table = CommandTable(
        rows=[
            TableRow(command="click", args=["#missing"]),
            TableRow(command="switchToNextTab"),
            TableRow(command="getUrl", expect="https://nowhere.test/"),
            TableRow(command="getUrl"),
        ]
    )
    runner, console = _runner(driver)

    result = runner.run(table)

    assert not result.passed
    assert [row.passed for row in result.rows] == [False, False, False, True]
    assert len(result.failures(FailureKind.ENGINE)) == 1
    assert len(result.failures(FailureKind.USAGE)) == 1
    text = console.export_text()
    assert "No node found for selector: #missing" in text
    assert "screenshot:" in text
    assert "expected 'https://nowhere.test/'" in text


def test_runner_stops_on_failure_when_configured(driver):
    table = CommandTable(
        rows=[TableRow(command="switchToNextTab"), TableRow(command="getUrl")]
    )
    runner, _ = _runner(driver, continue_on_failure=False)

    result = runner.run(table)

    assert len(result.rows) == 1


@pytest.mark.parametrize("command", ["doesNotExist", "_activate", "fromConfig", "page"])
def test_unknown_commands_are_usage_errors(driver, command: str) -> None:
    runner, _ = _runner(driver)
    with pytest.raises(DriverError) as excinfo:
        runner.resolve(command)
    assert excinfo.value.reason == ErrorReason.UNKNOWN_COMMAND
    row = runner.run_row(TableRow(command=command))
    assert not row.passed
    assert row.error.kind == FailureKind.USAGE


def test_load_table_accepts_bare_list(tmp_path: Path) -> None:
    path = tmp_path / "login.yaml"
    path.write_text(
        "\n".join(
            [
                "- command: navigateTo",
                "  args: ['https://example.test/login']",
                "- command: enterInto",
                "  args: [secret, '#password']",
                "- command: clickAndWait",
                "  args: ['#submit']",
                "  kwargs:",
                "    condition: {kind: response, url_pattern: '**/session'}",
            ]
        )
    )

    table = load_table(path)

    assert table.name == "login"
    assert [row.command for row in table.rows] == ["navigateTo", "enterInto", "clickAndWait"]
    assert table.rows[2].kwargs["condition"]["kind"] == "response"


def test_yaml_condition_drives_act_and_wait(driver):
    driver.page.on("click", "#submit", lambda **_: driver.page.respond("https://example.test/session"))
    runner, _ = _runner(driver)

    row = runner.run_row(
        TableRow(
            command="clickAndWait",
            args=["#submit"],
            kwargs={"condition": {"kind": "response", "url_pattern": "**/session", "timeout": 300}},
        )
    )

    assert row.passed
    assert row.value.url == "https://example.test/session"
