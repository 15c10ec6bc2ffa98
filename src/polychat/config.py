"""Configuration management for polychat."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from polychat.errors import ConfigError
from polychat.providers.catalog import CATALOG, get_provider
from polychat.providers.descriptor import ProviderDescriptor


class ProviderSettings(BaseModel):
    api_key: str = ""
    api_key_env: str = ""  # env var consulted when api_key is blank
    api_base: str = ""     # overrides the catalog base URL
    api_version: str = ""  # Azure
    proxy: str = ""
    session_token: str = ""  # 5ire relay
    default_model: str = ""

    def resolve_api_key(self) -> str:
        if self.api_key:
            return self.api_key.strip()
        if self.api_key_env:
            return os.environ.get(self.api_key_env, "").strip()
        return ""


class ChatConfig(BaseModel):
    provider: str = "OpenAI"
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    max_ctx_messages: int = 10
    max_tool_rounds: int = 8
    timeout: float = 120.0

    def settings_for(self, name: str) -> ProviderSettings:
        """Return settings for *name*, matching keys case-insensitively."""
        if name in self.providers:
            return self.providers[name]
        lowered = name.lower()
        for key, settings in self.providers.items():
            if key.lower() == lowered:
                return settings
        return ProviderSettings()

    def resolve_provider(self, name: str | None = None) -> ProviderDescriptor:
        """Catalog descriptor for *name* with configured overrides applied.

        Unknown names fall back to the configured default provider, and then
        to the first catalog entry.
        """
        descriptor = get_provider(name) if name else None
        if descriptor is None:
            descriptor = get_provider(self.provider)
        if descriptor is None:
            descriptor = next(iter(CATALOG.values()))
        settings = self.settings_for(descriptor.name)
        return descriptor.with_overrides(
            api_base=settings.api_base, api_version=settings.api_version,
        )


CONFIG_FILENAME = "polychat.yaml"


def _search_paths() -> list[Path]:
    return [
        Path.cwd() / CONFIG_FILENAME,
        Path.home() / ".config" / "polychat" / "config.yaml",
    ]


def load_config(
    config_path: str | Path | None = None,
) -> tuple[ChatConfig, Path | None]:
    """Load configuration from YAML file.

    Returns (config, resolved_path).  *resolved_path* is ``None`` when
    no file was found and built-in defaults are used.

    Search order (first match wins):
      1. Explicit ``--config`` path
      2. Current working directory: ``./polychat.yaml``
      3. User config dir: ``~/.config/polychat/config.yaml``
    """
    if config_path is not None:
        resolved = Path(config_path).expanduser()
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        resolved = next((p for p in _search_paths() if p.exists()), None)
        if resolved is None:
            return ChatConfig(), None

    try:
        with open(resolved, encoding="utf-8") as f:
            raw: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {resolved}: {e}",
            hint="Check indentation and quoting in the config file.",
        ) from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config root must be a mapping: {resolved}")

    try:
        config = ChatConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {resolved}: {e}") from e
    return config, resolved.resolve()
