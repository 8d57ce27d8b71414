"""Filesystem layout for artifacts produced during a run."""

from __future__ import annotations

import html
from dataclasses import dataclass
from pathlib import Path

from .config import ArtifactConfig

SCREENSHOT_PREVIEW_HEIGHT = 200


@dataclass(frozen=True)
class ArtifactLayout:
    """Resolve artifact paths below an injected base directory."""

    base_dir: Path
    screenshots_dir: str = "screenshots"
    traces_dir: str = "traces"
    storage_states_dir: str = "storage-states"
    har_dir: str = "har"

    @classmethod
    def from_config(cls, config: ArtifactConfig) -> "ArtifactLayout":
        return cls(
            base_dir=config.base_dir,
            screenshots_dir=config.screenshots_dir,
            traces_dir=config.traces_dir,
            storage_states_dir=config.storage_states_dir,
            har_dir=config.har_dir,
        )

    def screenshot_path(self, name: str) -> Path:
        return self._file(self.screenshots_dir, name, ".png")

    def trace_path(self, name: str) -> Path:
        return self._file(self.traces_dir, name, ".zip")

    def storage_state_path(self, name: str) -> Path:
        return self._file(self.storage_states_dir, name, ".json")

    def har_path(self, name: str) -> Path:
        return self._file(self.har_dir, name, ".har")

    def _file(self, folder: str, name: str, suffix: str) -> Path:
        return self.base_dir / folder / f"{name}{suffix}"


def ensure_parent(path: Path) -> Path:
    """Create the directory that will hold ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def screenshot_link(path: Path, title: str) -> str:
    """Render an HTML thumbnail linking to a screenshot file."""

    href = html.escape(path.resolve().as_uri(), quote=True)
    return (
        f'<a href="{href}" target="_blank">'
        f'<img src="{href}" title="{html.escape(title, quote=True)}" '
        f'height="{SCREENSHOT_PREVIEW_HEIGHT}"/></a>'
    )
