from __future__ import annotations

from pathlib import Path

import pytest

from browser_table_driver.artifacts import ArtifactLayout
from browser_table_driver.driver import BrowserDriver
from fakes import FakeEngine


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def artifacts(tmp_path: Path) -> ArtifactLayout:
    return ArtifactLayout(base_dir=tmp_path / "files")


@pytest.fixture
def driver(engine: FakeEngine, artifacts: ArtifactLayout) -> BrowserDriver:
    return BrowserDriver(engine, artifacts)
