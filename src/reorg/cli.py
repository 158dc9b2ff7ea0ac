"""Command line interface for the reorg project."""

from __future__ import annotations

import asyncio
import difflib
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from reorg.cache import CacheRegistry
from reorg.cli_support import (
    build_json_payload,
    build_scanner,
    compute_organize_counts,
    relative_to_root,
    run_organization,
)
from reorg.config import ConfigError, ConfigManager, ReorgConfig, resolve_with_precedence
from reorg.conversation import StateViolation
from reorg.negotiation import FinalSuggestions, NegotiationAborted, OrganizationFeedback
from reorg.organization import Suggestion
from reorg.providers import ProviderError
from reorg.recovery import ParseFailure

console = Console()

DEFAULT_INTENT = "Organize these files into a clear, consistent folder structure."


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    important_modes = {"summary", "warning", "error"}
    if summary_only and mode not in important_modes:
        return

    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _configure_logging(config: ReorgConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_config() -> tuple[ConfigManager, ReorgConfig]:
    manager = ConfigManager()
    manager.ensure_exists()
    return manager, manager.load()


# ---------------------------------------------------------------------- #
# Interactive callbacks                                                  #
# ---------------------------------------------------------------------- #


async def _prompt_clarifications(questions: List[str], reason: str) -> Optional[List[str]]:
    """Ask the user each question; blank answers skip that question."""
    console.print("[cyan]The assistant has some questions before continuing.[/cyan]")
    if reason:
        console.print(f"[dim]{reason}[/dim]")
    answers: List[str] = []
    for question in questions:
        answer = await asyncio.to_thread(
            click.prompt, question, default="", show_default=False
        )
        answers.append(answer)
    if not any(answer.strip() for answer in answers):
        return None
    return answers


async def _skip_clarifications(questions: List[str], reason: str) -> Optional[List[str]]:
    return None


def _suggestion_table(
    suggestions: List[Suggestion], root: Path, *, title: str, limit: int | None = None
) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("File", overflow="fold")
    table.add_column("Suggested path", overflow="fold")
    table.add_column("Category")
    table.add_column("Confidence", justify="right")
    shown = suggestions if limit is None else suggestions[:limit]
    for index, suggestion in enumerate(shown, start=1):
        source = (
            relative_to_root(suggestion.file.path, root) if suggestion.file else suggestion.file_name
        )
        confidence = f"{suggestion.confidence:.2f}"
        if suggestion.fallback:
            confidence += " (fallback)"
        table.add_row(
            str(index),
            source,
            suggestion.suggested_path,
            suggestion.category or "-",
            confidence,
        )
    return table


def _parse_selection(raw: str, total: int) -> List[int]:
    indexes: List[int] = []
    for token in raw.replace(" ", "").split(","):
        if not token:
            continue
        if not token.isdigit() or not 1 <= int(token) <= total:
            console.print(f"[yellow]Ignoring '{token}'; expected a number from 1 to {total}.[/yellow]")
            continue
        indexes.append(int(token) - 1)
    return indexes


def _build_review(root: Path, preview_limit: int):
    async def review(final: FinalSuggestions) -> OrganizationFeedback:
        suggestions = final.suggestions
        if final.reasoning:
            console.print(f"[dim]{final.reasoning}[/dim]")
        console.print(
            _suggestion_table(
                suggestions, root, title="Proposed organization", limit=preview_limit
            )
        )
        if len(suggestions) > preview_limit:
            console.print(f"[dim]... and {len(suggestions) - preview_limit} more.[/dim]")

        accepted = await asyncio.to_thread(
            click.confirm, "Accept these suggestions?", default=True
        )
        if accepted:
            return OrganizationFeedback(approved=True, selected_suggestions=list(suggestions))

        feedback = await asyncio.to_thread(
            click.prompt, "What should change?", default="", show_default=False
        )
        selection = await asyncio.to_thread(
            click.prompt,
            "Suggestion numbers to reject (comma-separated, blank for none)",
            default="",
            show_default=False,
        )
        shown = suggestions[:preview_limit]
        rejected = [shown[index] for index in _parse_selection(selection, len(shown))]
        return OrganizationFeedback(
            approved=False,
            feedback=feedback or None,
            selected_suggestions=rejected,
        )

    return review


# ---------------------------------------------------------------------- #
# Commands                                                               #
# ---------------------------------------------------------------------- #


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="reorg")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """reorg negotiates a folder structure for your files with a language model."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--intent", type=str, default=DEFAULT_INTENT, help="Describe how you want files organized.")
@click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the proposed moves.")
@click.option("--no-cache", is_flag=True, help="Ignore and do not store cached suggestions.")
@click.option("-y", "--yes", "auto_accept", is_flag=True, help="Accept suggestions without review.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=str),
    help="Write the JSON plan to FILE.",
)
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def organize(
    ctx: click.Context,
    path: str,
    intent: str,
    recursive: bool,
    json_output: bool,
    no_cache: bool,
    auto_accept: bool,
    output: str | None,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Negotiate organization suggestions for the files in PATH.

    Nothing is moved; the resulting plan is printed or written to ``--output``.

    Args:
        ctx: Click context used for parameter source inspection.
        path: Directory to organize.
        intent: Natural-language description of the desired organization.
        recursive: Whether to include subdirectories during scanning.
        json_output: If True, emit JSON instead of tables.
        no_cache: If True, bypass the suggestion cache.
        auto_accept: If True, skip clarification questions and review.
        output: Optional file that receives the JSON plan.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """

    json_enabled = json_output
    try:
        _, config = _load_config()
        _configure_logging(config, bool((ctx.obj or {}).get("verbose")))

        explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
        explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

        quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
        summary_only = summary_mode if explicit_summary else config.cli.summary_default

        if json_output:
            if explicit_quiet and quiet_enabled:
                raise click.ClickException("--json cannot be combined with --quiet.")
            if explicit_summary and summary_only:
                raise click.ClickException("--json cannot be combined with --summary.")
            quiet_enabled = False
            summary_only = False

        if quiet_enabled and summary_only:
            raise click.ClickException(
                "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
            )

        root = Path(path).expanduser().resolve()
        files = list(build_scanner(config, recursive=recursive).scan(root))
        if not files:
            if json_output:
                console.print_json(data={"context": {"directory": root.as_posix()}, "suggestions": []})
            else:
                _emit_message(
                    f"[yellow]No files to organize in {root}.[/yellow]",
                    mode="warning",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
            return

        interactive = not (json_output or auto_accept)
        outcome = asyncio.run(
            run_organization(
                config,
                root,
                files,
                intent,
                caches=CacheRegistry(config.cache),
                answer_clarifications=(
                    _prompt_clarifications if interactive else _skip_clarifications
                ),
                review=_build_review(root, config.cli.preview_limit) if interactive else None,
                use_cache=not no_cache,
            )
        )

        payload = build_json_payload(outcome, intent)
        if output:
            output_path = Path(output).expanduser()
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

        if json_output:
            console.print_json(data=payload)
            return

        if outcome.from_cache:
            _emit_message(
                "[cyan]Using cached suggestions; pass --no-cache to negotiate again.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_message(
            _suggestion_table(outcome.suggestions, root, title=f"Organization plan for {root}"),
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
        if outcome.fallback_count:
            _emit_message(
                f"[yellow]{outcome.fallback_count} file(s) received a fallback suggestion.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        if output:
            _emit_message(
                f"[green]Plan written to {output}.[/green]",
                mode="summary",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_message(
            _format_summary_line("Organization", root, compute_organize_counts(outcome)),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except ProviderError as exc:
        _handle_cli_error(
            f"Model provider failed: {exc}",
            code="provider_error",
            json_output=json_enabled,
            details={"provider": exc.provider},
            original=exc,
        )
    except ParseFailure as exc:
        _handle_cli_error(
            f"Could not understand the model reply: {exc}",
            code="parse_error",
            json_output=json_enabled,
            details={"excerpt": exc.excerpt},
            original=exc,
        )
    except NegotiationAborted as exc:
        _handle_cli_error(
            str(exc),
            code="negotiation_aborted",
            json_output=json_enabled,
            details={"attempts": exc.attempts},
            original=exc,
        )
    except StateViolation as exc:
        _handle_cli_error(str(exc), code="state_violation", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while organizing files: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )


@cli.group()
def cache() -> None:
    """Inspect and clear cached suggestions and pattern hints."""


@cache.command("stats")
@click.option("--json", "json_output", is_flag=True, help="Emit statistics as JSON.")
def cache_stats(json_output: bool) -> None:
    """Show per-namespace cache statistics."""
    try:
        _, config = _load_config()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    caches = CacheRegistry(config.cache)
    rows = []
    for name, store in caches.namespaces().items():
        record = store.stats().model_dump(by_alias=True)
        record["persistedEntries"] = len(store.cached_keys())
        rows.append(record)

    if json_output:
        console.print_json(data={"enabled": config.cache.enabled, "namespaces": rows})
        return

    table = Table(title="Cache statistics")
    table.add_column("Namespace")
    table.add_column("Persisted", justify="right")
    table.add_column("TTL (min)", justify="right")
    table.add_column("Location", overflow="fold")
    for record in rows:
        table.add_row(
            record["namespace"],
            str(record["persistedEntries"]),
            f"{record['ttlMs'] / 60_000:g}",
            record["persistedLocation"],
        )
    console.print(table)
    if not config.cache.enabled:
        console.print("[yellow]Caching is disabled in the configuration.[/yellow]")


@cache.command("clear")
@click.option(
    "-d",
    "--directory",
    type=click.Path(file_okay=False, path_type=str),
    help="Only clear entries for this directory.",
)
def cache_clear(directory: str | None) -> None:
    """Remove cached entries for one directory or for everything."""
    try:
        _, config = _load_config()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    caches = CacheRegistry(config.cache)
    if directory:
        target = Path(directory).expanduser().resolve()
        caches.invalidate(target)
        console.print(f"[green]Cleared cached entries for {target}.[/green]")
        return
    caches.invalidate()
    console.print("[green]Cleared all cached entries.[/green]")


@cache.command("clean")
def cache_clean() -> None:
    """Remove expired or unreadable cache entries."""
    try:
        _, config = _load_config()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    removed = CacheRegistry(config.cache).sweep_expired()
    total = sum(removed.values())
    if not total:
        console.print("[yellow]No expired entries found.[/yellow]")
        return
    details = ", ".join(f"{name}={count}" for name, count in removed.items())
    console.print(f"[green]Removed {total} expired entries ({details}).[/green]")


@cli.group()
def config() -> None:
    """Manage reorg configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()
    before = manager.read_text().splitlines()

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        manager.set_value(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    diff = list(
        difflib.unified_diff(
            [line for line in before if not line.startswith("# Last updated")],
            [line for line in after if not line.startswith("# Last updated")],
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key.strip()}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=ReorgConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
