"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from reorg.config import (
    ConfigError,
    ConfigManager,
    ReorgConfig,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".reorg" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "reorg configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, ReorgConfig)
    assert config.cache.directory == "~/.reorg/cache"


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"llm": {"model": "gpt-4o"}, "conversation": {"max_turns": 4}})

    env = {"REORG__LLM__TEMPERATURE": "0.7", "REORG__CONVERSATION__MAX_ATTEMPTS": "2"}
    cli = {"llm.temperature": 0.2}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.llm.model == "gpt-4o"
    assert config.conversation.max_turns == 4
    assert config.conversation.max_attempts == 2
    # CLI overrides take precedence over environment
    assert config.llm.temperature == pytest.approx(0.2)


def test_set_value_persists_nested_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    config = manager.set_value("organization.confidence_threshold", 0.55)

    assert config.organization.confidence_threshold == pytest.approx(0.55)
    reloaded = manager.load(include_env=False)
    assert reloaded.organization.confidence_threshold == pytest.approx(0.55)


def test_set_value_rejects_invalid_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()
    before = manager.read_text()

    with pytest.raises(ConfigError):
        manager.set_value("organization.confidence_threshold", 3)
    with pytest.raises(ConfigError):
        manager.set_value("llm.model.name", "x")
    with pytest.raises(ConfigError):
        manager.set_value("  ", 1)

    assert manager.read_text() == before


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(ReorgConfig())

    assert flat["REORG__LLM__PROVIDER"] == "openai"
    assert flat["REORG__CONVERSATION__MAX_TURNS"] == "10"
    assert flat["REORG__LLM__API_KEY"] == "null"


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=ReorgConfig(),
            file_overrides={"conversation": {"max_turns": "not-an-int"}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=ReorgConfig(), file_overrides={"llm": {"modle": "x"}})
