"""Configuration management for reorg."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import (
    CacheSettings,
    ConversationSettings,
    LLMSettings,
    OrganizationOptions,
    ReorgConfig,
    ScanningOptions,
)
from .resolver import ENV_PREFIX, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.reorg/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # reorg configuration file
    # Manage with `reorg config set KEY --value VALUE` or `reorg config edit`.
    # Environment variables such as REORG__LLM__MODEL override values stored here.
    """
)


class ConfigManager:
    """Read, merge, and persist the YAML configuration file."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> ReorgConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides supplied by the caller.
            include_env: Whether `REORG__` environment variables participate.
            ensure_file: Create a default file when none exists yet.
            env_overrides: Explicit environment mapping used instead of `os.environ`.

        Returns:
            ReorgConfig: Configuration after applying precedence rules.

        Raises:
            ConfigError: If the file or any override is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_layer: dict[str, Any] | None = None
        if include_env:
            source = env_overrides if env_overrides is not None else self._env
            env_layer = self._extract_env(source) or None

        return resolve_with_precedence(
            defaults=ReorgConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_layer,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def set_value(self, dotted_key: str, value: Any) -> ReorgConfig:
        """Persist a single dotted-key value after validating the result.

        Args:
            dotted_key: Path such as ``llm.temperature``.
            value: Parsed value to store.

        Returns:
            ReorgConfig: Configuration validated with the new value applied.

        Raises:
            ConfigError: If the key is empty, collides with a scalar, or fails validation.
        """
        segments = [segment.strip() for segment in dotted_key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError("KEY must specify a dotted path such as 'llm.temperature'.")

        file_data = self._read_file()
        node = file_data
        for segment in segments[:-1]:
            child = node.get(segment)
            if child is None:
                child = {}
                node[segment] = child
            elif not isinstance(child, dict):
                raise ConfigError(
                    f"Cannot assign into '{segment}' because it is not a mapping in the config file."
                )
            node = child
        node[segments[-1]] = value

        config = resolve_with_precedence(defaults=ReorgConfig(), file_overrides=file_data)
        self.save(file_data)
        return config

    def save(self, config: ReorgConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, ReorgConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(ReorgConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, raw_value in env.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
            if not path:
                continue
            try:
                value: Any = yaml.safe_load(raw_value)
            except yaml.YAMLError:
                value = raw_value

            node = overrides
            for segment in path[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
            node[path[-1]] = value
        return overrides


__all__ = [
    "CacheSettings",
    "ConfigError",
    "ConfigManager",
    "ConversationSettings",
    "DEFAULT_CONFIG_PATH",
    "LLMSettings",
    "OrganizationOptions",
    "ReorgConfig",
    "ScanningOptions",
    "flatten_for_env",
    "resolve_with_precedence",
]
