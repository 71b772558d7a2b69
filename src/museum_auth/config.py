"""Settings loaded from ``config/settings.yaml``.

Every key is optional; anything absent falls back to the defaults below.
"""

from __future__ import annotations

import dataclasses
import pathlib
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = pathlib.Path(__file__).resolve().parents[2] / "config" / "settings.yaml"


class ConfigError(Exception):
    """Raised when the settings file is missing or malformed."""


@dataclasses.dataclass(frozen=True)
class ApiSettings:
    base_url: str = "https://api.cynxio.com"
    login_path: str = "/auth0/login"
    logout_path: str = "/auth0/logout"
    refresh_path: str = "/auth0/refresh"
    timeout_seconds: float = 10.0


@dataclasses.dataclass(frozen=True)
class StorageSettings:
    path: str = "~/.museum_auth/credentials.json"


@dataclasses.dataclass(frozen=True)
class Settings:
    api: ApiSettings = dataclasses.field(default_factory=ApiSettings)
    storage: StorageSettings = dataclasses.field(default_factory=StorageSettings)
    redirect_uri: str = "museum://callback"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        api_block = _section(data, "api")
        storage_block = _section(data, "storage")
        auth_block = _section(data, "auth")
        try:
            api = ApiSettings(**api_block)
            storage = StorageSettings(**storage_block)
        except TypeError as exc:
            raise ConfigError(f"Unknown setting: {exc}") from exc
        return cls(
            api=api,
            storage=storage,
            redirect_uri=auth_block.get("redirect_uri", cls.redirect_uri),
        )


def load_settings(path: str | pathlib.Path | None = None) -> Settings:
    """Read settings from *path* (default ``config/settings.yaml``)."""
    config_path = pathlib.Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise ConfigError(f"Settings file not found: {config_path}")
    with open(config_path) as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ConfigError("Settings file must contain a mapping at the top level")
    return Settings.from_dict(data)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    block = data.get(name) or {}
    if not isinstance(block, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return block
