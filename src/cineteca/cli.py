"""Command line interface for the Cineteca project."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from cineteca.archive import (
    Archive,
    ArchiveRepository,
    ArchiveSaveError,
    CorruptArchiveError,
    ItemNotFoundError,
)
from cineteca.browse import WatchFilter, compute_stats, describe_watched, format_info, visible_items
from cineteca.collector import Collector
from cineteca.config import CinetecaConfig, ConfigError, ConfigManager, resolve_with_precedence
from cineteca.player import PlayerError, launch
from cineteca.probe import ProbeUnavailableError
from cineteca.refresh import RefreshOutcome, RefreshService

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> NoReturn:
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
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format="%(levelname)s %(name)s: %(message)s")


def _load_config(json_output: bool) -> CinetecaConfig:
    """Load configuration and apply its logging settings."""

    try:
        config = ConfigManager().load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    _configure_logging(config.logging.level)
    return config


def _resolve_output_modes(
    ctx: click.Context,
    config: CinetecaConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine output flags with configured defaults.

    Returns:
        tuple[bool, bool]: Effective quiet and summary-only flags.

    Raises:
        click.ClickException: If the combination is contradictory.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _build_collector(config: CinetecaConfig) -> Collector:
    return Collector.from_config(config)


def _open_archive(root: Path, config: CinetecaConfig, *, json_output: bool) -> tuple[Archive, bool]:
    """Load or build the archive of ``root``.

    Returns:
        tuple[Archive, bool]: The archive and whether it was just built by a scan.
    """

    repository = ArchiveRepository(config.archive.filename)
    built = not repository.path_for(root).exists()
    try:
        archive = Archive.init(root, _build_collector(config), repository=repository)
    except CorruptArchiveError as exc:
        _handle_cli_error(
            f"{exc}. Fix or remove the file to rebuild the archive.",
            code="archive_corrupt",
            json_output=json_output,
            original=exc,
        )
    except ProbeUnavailableError as exc:
        _handle_cli_error(str(exc), code="probe_unavailable", json_output=json_output, original=exc)
    return archive, built


def _save_archive(archive: Archive, *, json_output: bool) -> Path:
    try:
        return archive.save()
    except ArchiveSaveError as exc:
        _handle_cli_error(
            str(exc), code="archive_save_error", json_output=json_output, original=exc
        )


def _lookup_failed(exc: ItemNotFoundError, *, json_output: bool) -> NoReturn:
    _handle_cli_error(
        str(exc),
        code="not_found",
        json_output=json_output,
        details={"name": exc.name},
        original=exc,
    )


def _outcome_payload(outcome: RefreshOutcome, root: Path) -> dict[str, Any]:
    return {
        "root": root.as_posix(),
        "changed": outcome.changed,
        "movies": outcome.total,
        "signature": outcome.signature,
        "scan_seconds": round(outcome.scan_seconds, 3),
        "saved_path": outcome.saved_path.as_posix() if outcome.saved_path else None,
        "errors": {
            "scan": str(outcome.scan_error) if outcome.scan_error else None,
            "save": str(outcome.save_error) if outcome.save_error else None,
        },
        "triggered_paths": [path.as_posix() for path in outcome.triggered_paths],
    }


_root_option = click.option(
    "--root",
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=str),
    default=".",
    show_default=True,
    help="Library directory to index.",
)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="cineteca")
def cli() -> None:
    """Cineteca indexes the movies in a directory tree and tracks what you watched."""


@cli.command()
@_root_option
@click.option("--json", "json_output", is_flag=True, help="Emit the scan outcome as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def scan(ctx: click.Context, root: str, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Rescan the library and reconcile it with the saved archive.

    Args:
        ctx: Click context for parameter source inspection.
        root: Library directory.
        json_output: When True, emit JSON instead of textual output.
        summary_mode: When True, restrict output to summary lines and warnings.
        quiet: When True, suppress non-error output entirely.
    """

    config = _load_config(json_output)
    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    root_path = Path(root).expanduser().resolve()
    archive, built = _open_archive(root_path, config, json_output=json_output)
    before = {item.name for item in archive.items}

    if built:
        outcome = RefreshOutcome(changed=True, total=len(archive), signature=archive.signature)
    else:
        service = RefreshService(archive, _build_collector(config), autosave=False)
        outcome = service.refresh()
        if outcome.scan_error is not None:
            _handle_cli_error(
                f"Scan failed: {outcome.scan_error}",
                code="scan_error",
                json_output=json_output,
                original=outcome.scan_error,
            )

    outcome.saved_path = _save_archive(archive, json_output=json_output)
    after = {item.name for item in archive.items}
    counts = {
        "movies": len(after),
        "added": len(after - before) if not built else len(after),
        "removed": len(before - after),
        "changed": outcome.changed,
    }

    if json_output:
        payload = _outcome_payload(outcome, root_path)
        payload["counts"] = counts
        console.print_json(data=payload)
        return

    _emit_message(
        _format_summary_line("Scan", root_path, counts),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command("list")
@_root_option
@click.option(
    "--filter",
    "watch_filter",
    type=click.Choice([choice.value for choice in WatchFilter]),
    default=WatchFilter.ALL.value,
    show_default=True,
    help="Limit the listing by watched state.",
)
@click.option("--refresh", is_flag=True, help="Rescan the library before listing.")
@click.option("--json", "json_output", is_flag=True, help="Emit the listing as JSON.")
def list_movies(root: str, watch_filter: str, refresh: bool, json_output: bool) -> None:
    """List movies, unwatched first, then most recently watched."""

    config = _load_config(json_output)
    root_path = Path(root).expanduser().resolve()
    archive, built = _open_archive(root_path, config, json_output=json_output)

    if refresh and not built:
        outcome = RefreshService(archive, _build_collector(config)).refresh()
        if outcome.save_error is not None and not json_output:
            console.print(f"[yellow]{outcome.save_error}[/yellow]")

    selected = WatchFilter(watch_filter)
    items = visible_items(archive.items, selected)

    if json_output:
        console.print_json(
            data={
                "root": root_path.as_posix(),
                "filter": selected.value,
                "movies": [
                    {**item.model_dump(mode="json"), "watched": item.watched} for item in items
                ],
            }
        )
        return

    if not items:
        console.print(f"[yellow]No movies match filter '{selected.label}'.[/yellow]")
        return

    table = Table(title=f"Movies in {root_path} (filter: {selected.label})")
    table.add_column("Name")
    table.add_column("Watched")
    table.add_column("Length", justify="right")
    for item in items:
        table.add_row(escape(item.name), describe_watched(item), f"{item.duration // 60} min")
    console.print(table)


@cli.command()
@click.argument("name")
@_root_option
@click.option("--json", "json_output", is_flag=True, help="Emit the new state as JSON.")
def toggle(name: str, root: str, json_output: bool) -> None:
    """Flip the watched marker of movie NAME and save the archive."""

    config = _load_config(json_output)
    root_path = Path(root).expanduser().resolve()
    archive, _ = _open_archive(root_path, config, json_output=json_output)

    try:
        item = archive.toggle_watched(name)
    except ItemNotFoundError as exc:
        _lookup_failed(exc, json_output=json_output)
    _save_archive(archive, json_output=json_output)

    if json_output:
        console.print_json(data={"name": item.name, "watched": item.watched})
        return
    state = "watched" if item.watched else "not watched"
    console.print(f"[green]{escape(item.name)} marked {state}.[/green]")


@cli.command()
@click.argument("name")
@_root_option
def play(name: str, root: str) -> None:
    """Open movie NAME in the configured player and mark it watched."""

    config = _load_config(False)
    root_path = Path(root).expanduser().resolve()
    archive, _ = _open_archive(root_path, config, json_output=False)

    try:
        path = archive.get_path(name)
    except ItemNotFoundError as exc:
        _lookup_failed(exc, json_output=False)

    try:
        launch(path, config.player.command)
    except PlayerError as exc:
        raise click.ClickException(str(exc)) from exc

    archive.set_watched(name)
    _save_archive(archive, json_output=False)
    console.print(f"[green]Playing {escape(name)}.[/green]")


@cli.command()
@click.argument("name")
@_root_option
@click.option("--json", "json_output", is_flag=True, help="Emit movie details as JSON.")
def info(name: str, root: str, json_output: bool) -> None:
    """Show watched state and length of movie NAME."""

    config = _load_config(json_output)
    root_path = Path(root).expanduser().resolve()
    archive, _ = _open_archive(root_path, config, json_output=json_output)

    try:
        item = archive.get(name)
    except ItemNotFoundError as exc:
        _lookup_failed(exc, json_output=json_output)

    if json_output:
        payload = item.model_dump(mode="json")
        payload["watched"] = item.watched
        payload["watched_description"] = describe_watched(item)
        console.print_json(data=payload)
        return

    console.print(f"[bold]{escape(item.name)}[/bold]")
    console.print(format_info(item), highlight=False)


@cli.command()
@_root_option
@click.option("--json", "json_output", is_flag=True, help="Emit statistics as JSON.")
def stats(root: str, json_output: bool) -> None:
    """Summarize how much of the library has been watched."""

    config = _load_config(json_output)
    root_path = Path(root).expanduser().resolve()
    archive, _ = _open_archive(root_path, config, json_output=json_output)
    summary = compute_stats(archive.items)

    if json_output:
        console.print_json(
            data={
                "total": summary.total,
                "watched": summary.watched,
                "recent": summary.recent,
                "remaining": summary.remaining,
            }
        )
        return

    console.print(
        f"MOVIES TOTAL: {summary.total}\n"
        "WATCHED:\n"
        f"├ last 14d: {summary.recent}\n"
        f"└ total: {summary.watched}\n"
        f"REMAINING: {summary.remaining}",
        highlight=False,
    )


@cli.command()
@_root_option
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--json", "json_output", is_flag=True, help="Emit one JSON document per refresh.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    root: str,
    debounce: float | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Keep the archive in sync with the library until interrupted."""

    config = _load_config(json_output)
    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    root_path = Path(root).expanduser().resolve()
    archive, _ = _open_archive(root_path, config, json_output=json_output)
    service = RefreshService(
        archive,
        _build_collector(config),
        debounce_seconds=debounce if debounce is not None else config.watch.debounce_seconds,
    )

    def _report(outcome: RefreshOutcome) -> None:
        if json_output:
            console.print_json(data=_outcome_payload(outcome, root_path))
            return
        if outcome.scan_error is not None:
            _emit_message(
                f"[red]Scan failed: {outcome.scan_error}[/red]",
                mode="error",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return
        if outcome.save_error is not None:
            _emit_message(
                f"[yellow]{outcome.save_error}[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_message(
            _format_summary_line(
                "Refresh",
                root_path,
                {"movies": outcome.total, "changed": outcome.changed},
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    if not json_output:
        _emit_message(
            f"[cyan]Watching {root_path}. Press Ctrl+C to stop.[/cyan]",
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    try:
        service.watch(_report)
    except KeyboardInterrupt:
        service.stop()
        if not json_output:
            _emit_message(
                "[yellow]Watch stopped by user request.[/yellow]",
                mode="summary",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )


@cli.group()
def config() -> None:
    """Manage Cineteca configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
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
    try:
        manager.ensure_exists()
        file_data = manager.load_file_overrides()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'scan.workers'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    node = file_data
    for segment in segments[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise click.ClickException(f"Cannot assign into non-mapping key '{segment}'.")
        node = child
    node[segments[-1]] = parsed_value

    try:
        resolve_with_precedence(defaults=CinetecaConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    diff = list(
        difflib.unified_diff(
            before,
            manager.read_text().splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    if diff:
        console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
