"""Command line interface for browser-table-driver."""

from __future__ import annotations

import logging
import subprocess
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from .artifacts import ArtifactLayout
from .config import load_config
from .driver import BrowserDriver
from .engine import BrowserEngine
from .runner import TableRunner, load_table

app = typer.Typer(help="Browser Table Driver entry point")


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before executing any command."""

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def version() -> None:
    """Print the package version."""

    try:
        typer.echo(get_version("browser-table-driver"))
    except PackageNotFoundError:  # pragma: no cover - when running from source tree
        typer.echo("0.0.0")


@app.command()
def run(
    table_path: Annotated[
        Path,
        typer.Argument(help="YAML table of commands to execute."),
    ],
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
    env_file: Annotated[
        Optional[Path],
        typer.Option(
            "--env-file",
            help="Path to an .env file with default configuration values.",
        ),
    ] = None,
    browser: Annotated[
        Optional[str],
        typer.Option("--browser", help="chromium, firefox or webkit."),
    ] = None,
    headless: Annotated[
        Optional[bool],
        typer.Option("--headless/--headed", help="Run the browser in headless mode (or headed)."),
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Base URL for relative navigation."),
    ] = None,
    artifacts_dir: Annotated[
        Optional[Path],
        typer.Option("--artifacts-dir", help="Directory receiving screenshots, traces and state."),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Default timeout in milliseconds."),
    ] = None,
    stop_on_failure: Annotated[
        bool,
        typer.Option("--stop-on-failure", help="Stop at the first failed row."),
    ] = False,
) -> None:
    """Run a table of browser commands."""

    overrides: dict[str, Any] = {}
    if browser is not None or headless is not None:
        overrides.setdefault("launch", {})
        if browser is not None:
            overrides["launch"]["browser"] = browser.lower()
        if headless is not None:
            overrides["launch"]["headless"] = headless
    if base_url is not None or timeout is not None:
        overrides.setdefault("context", {})
        if base_url is not None:
            overrides["context"]["base_url"] = base_url
        if timeout is not None:
            overrides["context"]["default_timeout"] = timeout
    if artifacts_dir is not None:
        overrides["artifacts"] = {"base_dir": str(artifacts_dir)}
    if stop_on_failure:
        overrides["continue_on_failure"] = False

    config = load_config(config_path, env_file=env_file, **overrides)
    table = load_table(table_path)
    typer.echo(f"Loaded table {table.name} with {len(table.rows)} rows")

    artifacts = ArtifactLayout.from_config(config.artifacts)
    with BrowserEngine(config.launch, config.context, artifacts) as engine:
        driver = BrowserDriver.from_config(engine, config)
        runner = TableRunner(driver, continue_on_failure=config.continue_on_failure)
        result = runner.run(table)
    if not result.passed:
        typer.echo(f"{len(result.failures())} of {len(result.rows)} rows failed.")
        raise typer.Exit(code=1)
    typer.echo("All rows passed.")


@app.command("show-trace")
def show_trace(
    name: Annotated[str, typer.Argument(help="Trace name, without the .zip suffix.")],
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration."),
    ] = None,
) -> None:
    """Open a recorded trace in the Playwright trace viewer."""

    config = load_config(config_path)
    path = ArtifactLayout.from_config(config.artifacts).trace_path(name)
    if not path.is_file():
        typer.echo(f"Trace not found: {path}", err=True)
        raise typer.Exit(code=1)
    completed = subprocess.run(
        [sys.executable, "-m", "playwright", "show-trace", str(path)],
        check=False,
    )
    raise typer.Exit(code=completed.returncode)


if __name__ == "__main__":
    app()
