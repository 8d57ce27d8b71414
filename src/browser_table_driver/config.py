"""Configuration models for the browser table driver."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LaunchConfig(BaseModel):
    """Settings used when launching the browser."""

    browser: Literal["chromium", "firefox", "webkit"] = "chromium"
    headless: bool = True
    proxy_server: Optional[str] = None
    args: list[str] = Field(default_factory=list)


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class ContextConfig(BaseModel):
    """Options applied to every new browser context."""

    base_url: Optional[str] = None
    extra_http_headers: dict[str, str] = Field(default_factory=dict)
    bypass_csp: bool = False
    color_scheme: Optional[Literal["light", "dark", "no-preference"]] = None
    accept_downloads: bool = True
    viewport: Optional[ViewportConfig] = None
    device_scale_factor: Optional[float] = None
    har_name: Optional[str] = Field(
        default=None,
        description="Record a HAR (without content) to <har dir>/<har_name>.har.",
    )
    default_timeout: Optional[float] = Field(
        default=None,
        description="Default timeout in milliseconds for actions and waits.",
    )


class ArtifactConfig(BaseModel):
    """Where screenshots, traces, storage states and HAR files are written."""

    base_dir: Path = Path("artifacts")
    screenshots_dir: str = "screenshots"
    traces_dir: str = "traces"
    storage_states_dir: str = "storage-states"
    har_dir: str = "har"


class DriverConfig(BaseSettings):
    """Top-level configuration for a driver run."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSER_TABLE_DRIVER_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    launch: LaunchConfig = Field(default_factory=LaunchConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    artifacts: ArtifactConfig = Field(default_factory=ArtifactConfig)
    continue_on_failure: bool = Field(
        default=True,
        description="Keep executing table rows after a failed row.",
    )


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> DriverConfig:
    """Load configuration from an optional file and overrides."""

    data: dict[str, Any] = {}
    if path:
        import yaml

        data = yaml.safe_load(path.read_text()) or {}
    if overrides:
        _deep_update(data, overrides)
    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    config = DriverConfig(**data, **settings_kwargs)
    if not data:
        return config

    merged = config.model_dump(mode="python")
    _deep_update(merged, data)
    return DriverConfig.model_validate(merged)


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Recursively merge ``updates`` into ``target`` in-place."""

    for key, value in updates.items():
        if (
            isinstance(value, Mapping)
            and isinstance(existing := target.get(key), Mapping)
        ):
            nested: dict[str, Any]
            if isinstance(existing, dict):
                nested = existing
            else:
                nested = dict(existing)
            _deep_update(nested, value)
            target[key] = nested
        else:
            target[key] = value
