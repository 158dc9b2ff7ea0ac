"""CLI integration tests for `reorg organize` and `reorg cache`."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List

import pytest
from click.testing import CliRunner
from conftest import FakeProvider, categories_reply, make_descriptor, suggestions_reply

from reorg.cache import CacheRegistry
from reorg.cli import cli
from reorg.cli_support import pattern_hints, project_groups
from reorg.config import CacheSettings
from reorg.providers.errors import ProviderError


def _env_with_home(tmp_path: Path) -> dict[str, str]:
    """Return environment variables pointing HOME to a temp directory.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        dict[str, str]: Environment mapping with HOME set and retries made instant.
    """
    env = dict(os.environ)
    env["HOME"] = str(tmp_path / "home")
    env["REORG__CONVERSATION__BACKOFF_SECONDS"] = "0"
    return env


def _inbox(tmp_path: Path) -> Path:
    root = tmp_path / "inbox"
    root.mkdir()
    (root / "a.txt").write_text("alpha", encoding="utf-8")
    (root / "b.txt").write_text("bravo", encoding="utf-8")
    return root


def _install_provider(monkeypatch: pytest.MonkeyPatch, replies) -> List[FakeProvider]:
    built: List[FakeProvider] = []

    def _factory(settings):
        provider = FakeProvider(replies)
        built.append(provider)
        return provider

    monkeypatch.setattr("reorg.cli_support.build_provider", _factory)
    return built


def _happy_replies() -> list:
    return [
        categories_reply({"Text": ["a.txt", "b.txt"]}),
        suggestions_reply([("a.txt", "Text/a.txt"), ("b.txt", "Text/notes/b.txt")]),
    ]


def test_cli_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("organize", "cache", "config"):
        assert command in result.output


def test_organize_json_emits_plan_and_caches_result(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _inbox(tmp_path)
    built = _install_provider(monkeypatch, _happy_replies())
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["organize", str(root), "--json", "--intent", "by type"], env=env)

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    resolved = root.resolve()
    assert payload["context"] == {
        "directory": resolved.as_posix(),
        "intent": "by type",
        "from_cache": False,
    }
    assert payload["counts"]["files"] == 2
    assert payload["counts"]["moves"] == 2
    assert [item["suggested_path"] for item in payload["suggestions"]] == [
        "Text/a.txt",
        "Text/notes/b.txt",
    ]
    destinations = [move["destination"] for move in payload["plan"]["moves"]]
    assert destinations[1] == (resolved / "Text" / "notes" / "b.txt").as_posix()
    assert (root / "a.txt").exists()
    assert len(built) == 1

    second = runner.invoke(cli, ["organize", str(root), "--json"], env=env)

    assert second.exit_code == 0, second.output
    cached = json.loads(second.stdout)
    assert cached["context"]["from_cache"] is True
    assert cached["suggestions"] == payload["suggestions"]
    assert len(built) == 1


def test_organize_no_cache_negotiates_again(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = _inbox(tmp_path)
    built = _install_provider(monkeypatch, _happy_replies())
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    runner.invoke(cli, ["organize", str(root), "--json"], env=env)
    result = runner.invoke(cli, ["organize", str(root), "--json", "--no-cache"], env=env)

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["context"]["from_cache"] is False
    assert len(built) == 2


def test_organize_writes_output_file_and_summary(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _inbox(tmp_path)
    _install_provider(monkeypatch, _happy_replies())
    output = tmp_path / "plans" / "plan.json"

    result = CliRunner().invoke(
        cli,
        ["organize", str(root), "--yes", "--summary", "--output", str(output)],
        env=_env_with_home(tmp_path),
    )

    assert result.exit_code == 0, result.output
    assert "Organization summary for" in result.output
    assert "moves=2," in result.output
    written = json.loads(output.read_text(encoding="utf-8"))
    assert written["counts"]["suggestions"] == 2


def test_organize_reports_aborted_negotiation_as_json(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = _inbox(tmp_path)
    _install_provider(
        monkeypatch, [ProviderError("service unavailable", provider="fake") for _ in range(3)]
    )
    env = _env_with_home(tmp_path)
    env["REORG__CONVERSATION__MAX_ATTEMPTS"] = "3"

    result = CliRunner().invoke(cli, ["organize", str(root), "--json"], env=env)

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["error"]["code"] == "negotiation_aborted"
    assert payload["error"]["details"] == {"attempts": 3}


def test_organize_empty_directory_reports_no_suggestions(tmp_path: Path) -> None:
    root = tmp_path / "empty"
    root.mkdir()

    result = CliRunner().invoke(
        cli, ["organize", str(root), "--json"], env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload == {"context": {"directory": root.resolve().as_posix()}, "suggestions": []}


def test_organize_rejects_json_with_quiet(tmp_path: Path) -> None:
    root = _inbox(tmp_path)

    result = CliRunner().invoke(
        cli, ["organize", str(root), "--json", "--quiet"], env=_env_with_home(tmp_path)
    )

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "cli_error"


def test_cache_stats_json_lists_namespaces(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["cache", "stats", "--json"], env=_env_with_home(tmp_path))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["enabled"] is True
    names = [item["namespace"] for item in payload["namespaces"]]
    assert names == ["suggestions", "patterns", "projects"]
    assert all(item["persistedEntries"] == 0 for item in payload["namespaces"])
    assert payload["namespaces"][0]["ttlMs"] == 600_000


def test_cache_clear_and_clean(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = _inbox(tmp_path)
    _install_provider(monkeypatch, _happy_replies())
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    runner.invoke(cli, ["organize", str(root), "--json"], env=env)

    registry = CacheRegistry(CacheSettings(), root=tmp_path / "home" / ".reorg" / "cache")
    assert len(registry.suggestions.cached_keys()) == 1
    assert len(registry.patterns.cached_keys()) == 1
    assert len(registry.projects.cached_keys()) == 1

    clean = runner.invoke(cli, ["cache", "clean"], env=env)
    assert clean.exit_code == 0
    assert "No expired entries found." in clean.output

    cleared = runner.invoke(cli, ["cache", "clear", "--directory", str(root)], env=env)
    assert cleared.exit_code == 0
    assert "Cleared cached entries for" in cleared.output
    assert registry.suggestions.cached_keys() == []
    assert registry.patterns.cached_keys() == []
    assert registry.projects.cached_keys() == []

    everything = runner.invoke(cli, ["cache", "clear"], env=env)
    assert "Cleared all cached entries." in everything.output


def test_pattern_hints_reuse_cached_project_groups(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    directory = tmp_path / "work"
    files = [
        make_descriptor("package.json", directory=directory / "widget"),
        make_descriptor("README.md", directory=directory / "widget"),
    ]
    registry = CacheRegistry(CacheSettings(), root=tmp_path / "cache")

    assert project_groups(registry, directory, files) == {"widget": ["package.json", "README.md"]}

    def _fail(self, files):
        raise AssertionError("project detection should come from the cache")

    monkeypatch.setattr("reorg.cli_support.PatternAnalyzer.project_groups", _fail)
    registry.patterns.invalidate(directory)

    hints = pattern_hints(registry, directory, files)

    assert 'Project "widget" has 2 files' in hints
