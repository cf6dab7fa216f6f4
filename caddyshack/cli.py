"""CLI entry point for caddyshack."""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
import json

import click
from rich.console import Console
from rich.table import Table

from . import config
from .admin_api import AdminClient, AdminError, AdminUnreachableError
from .caddyfile_parser import parse_caddyfile
from .document import Directive, ParseResult
from .drift import compare_caddyfile, summarise_drift
from .exporter import ValidationFailedError, apply_document, render_file_text
from .history import get_config_history, list_config_history
from .logging import setup_logging_from_args
from .reader import CaddyfileNotFoundError, CaddyfilePermissionError, find_caddyfile, read_caddyfile
from .validator import AdminValidator, CaddyValidator, ValidatorUnavailableError
from .writer import DocumentError, ensure_unique_names

_PATH_ARG = click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
_VIA_OPTION = click.option(
    "--via",
    type=click.Choice(["binary", "admin"]),
    default="binary",
    show_default=True,
    help="Validate with the local caddy binary or the admin API's /adapt endpoint.",
)


def _echo_json(payload: dict) -> None:
    click.echo(json.dumps(payload, default=str))


def _target(path: Path | None) -> Path:
    if path is not None:
        return path
    try:
        return find_caddyfile(config.CADDYFILE_PATH)
    except CaddyfileNotFoundError:
        return config.CADDYFILE_PATH


def _read(target: Path) -> str:
    try:
        return read_caddyfile(target)
    except CaddyfilePermissionError as exc:
        raise click.ClickException(f"{exc}\nTry: {exc.suggested_command}")
    except OSError as exc:
        raise click.ClickException(str(exc))


def _load(path: Path | None):
    target = _target(path)
    return target, parse_caddyfile(_read(target))


def _refuse_skipped(result: ParseResult) -> None:
    if result.skipped:
        raise click.ClickException(
            f"{len(result.skipped)} range(s) could not be parsed; run 'caddyshack diff' to inspect them"
        )


def _validator(via: str):
    if via == "admin":
        return AdminValidator(AdminClient(config.CADDY_ADMIN_API, timeout=config.ADMIN_TIMEOUT))
    return CaddyValidator(config.CADDY_BIN, timeout=config.VALIDATE_TIMEOUT)


def _directive_summary(directives: list[Directive]) -> str:
    return ", ".join(directive.name for directive in directives)


@click.group()
@click.version_option(package_name="caddyshack")
@click.option("-v", "--verbose", is_flag=True, help="Log progress at INFO level.")
@click.option("--debug", is_flag=True, help="Log everything, including parser decisions.")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=config.LOG_FILE)
def main(verbose: bool, debug: bool, log_file: Path | None) -> None:
    """Parse, format, validate and apply Caddyfiles."""
    setup_logging_from_args(
        verbose=verbose,
        debug=debug,
        log_file=log_file,
        default_level=config.LOG_LEVEL,
    )


@main.command()
@_PATH_ARG
def parse(path: Path | None) -> None:
    """Print the parsed document as JSON."""
    target, result = _load(path)
    _echo_json(
        {
            "status": "ok",
            "source": str(target),
            "document": asdict(result.document),
            "skipped": [asdict(skipped) for skipped in result.skipped],
            "unresolved_imports": result.document.unresolved_imports(),
        }
    )


@main.command()
@_PATH_ARG
def sites(path: Path | None) -> None:
    """List site blocks."""
    _, result = _load(path)
    table = Table(title="Sites", show_lines=True)
    table.add_column("Addresses", style="bold cyan", overflow="fold")
    table.add_column("Directives", overflow="fold")
    table.add_column("Imports", overflow="fold")
    for site in result.document.sites:
        table.add_row(site.label, _directive_summary(site.directives), ", ".join(site.imports))
    Console().print(table)


@main.command()
@_PATH_ARG
def snippets(path: Path | None) -> None:
    """List snippet definitions."""
    _, result = _load(path)
    table = Table(title="Snippets", show_lines=True)
    table.add_column("Name", style="bold cyan")
    table.add_column("Directives", overflow="fold")
    for snippet in result.document.snippets:
        table.add_row(snippet.name, _directive_summary(snippet.directives))
    Console().print(table)


@main.command(name="format")
@_PATH_ARG
@click.option("--write", "write_back", is_flag=True, help="Validate, then replace the file instead of printing.")
@_VIA_OPTION
def format_cmd(path: Path | None, write_back: bool, via: str) -> None:
    """Rewrite a Caddyfile in canonical form."""
    target, result = _load(path)
    for skipped in result.skipped:
        click.echo(f"warning: line {skipped.line}: dropped {skipped.reason}", err=True)
    if not write_back:
        try:
            ensure_unique_names(result.document)
            click.echo(render_file_text(result.document), nl=False)
        except DocumentError as exc:
            raise click.ClickException(str(exc))
        return
    _refuse_skipped(result)
    try:
        applied = apply_document(
            result.document,
            target,
            validator=_validator(via),
            client=None,
            history_limit=config.HISTORY_LIMIT,
            comment="caddyshack format",
        )
    except (DocumentError, ValidationFailedError, ValidatorUnavailableError, OSError) as exc:
        raise click.ClickException(str(exc))
    _echo_json(
        {
            "status": "ok",
            "output": str(applied.target),
            "validation": applied.validation.state.value,
            "history_id": applied.history_id,
        }
    )


@main.command()
@_PATH_ARG
@_VIA_OPTION
@click.pass_context
def validate(ctx: click.Context, path: Path | None, via: str) -> None:
    """Check a Caddyfile with Caddy without applying it."""
    target = _target(path)
    text = _read(target)
    try:
        result = _validator(via).validate(text)
    except ValidatorUnavailableError as exc:
        raise click.ClickException(str(exc))
    _echo_json(
        {
            "status": "ok" if result.valid else "invalid",
            "source": str(target),
            "state": result.state.value,
            "errors": [asdict(error) for error in result.errors],
        }
    )
    if not result.valid:
        ctx.exit(1)


@main.command()
@_PATH_ARG
@_VIA_OPTION
@click.option("--reload/--no-reload", default=True, help="Load the result into the running Caddy.")
@click.option("--comment", help="Note stored with the replaced version in history.")
def apply(path: Path | None, via: str, reload: bool, comment: str | None) -> None:
    """Validate, archive, write and reload a Caddyfile."""
    target, result = _load(path)
    _refuse_skipped(result)
    client = AdminClient(config.CADDY_ADMIN_API, timeout=config.RELOAD_TIMEOUT) if reload else None
    try:
        applied = apply_document(
            result.document,
            target,
            validator=_validator(via),
            client=client,
            history_limit=config.HISTORY_LIMIT,
            comment=comment,
        )
    except (
        DocumentError,
        ValidationFailedError,
        ValidatorUnavailableError,
        AdminError,
        AdminUnreachableError,
        OSError,
    ) as exc:
        raise click.ClickException(str(exc))
    _echo_json(
        {
            "status": "ok",
            "output": str(applied.target),
            "validation": applied.validation.state.value,
            "history_id": applied.history_id,
            "reloaded": applied.reloaded,
        }
    )


@main.command()
@_PATH_ARG
def diff(path: Path | None) -> None:
    """Show what canonical formatting would change."""
    report = compare_caddyfile(_target(path))
    click.echo(summarise_drift(report))
    if report.diff:
        click.echo(report.diff)
    if report.error:
        raise click.ClickException(report.error)


@main.command()
def status() -> None:
    """Report whether the Caddy admin API answers."""
    try:
        client = AdminClient(config.CADDY_ADMIN_API, timeout=config.ADMIN_TIMEOUT)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    caddy = client.status()
    _echo_json(
        {
            "status": "ok",
            "admin_api": config.CADDY_ADMIN_API,
            "running": caddy.running,
            "version": caddy.version,
        }
    )


@main.command()
@click.option("--limit", type=int, default=20, show_default=True)
def history(limit: int) -> None:
    """List replaced Caddyfile versions, newest first."""
    entries = list_config_history(limit)
    table = Table(title="Caddyfile history", show_lines=False)
    table.add_column("ID", style="bold cyan", justify="right")
    table.add_column("Saved at")
    table.add_column("Size", justify="right")
    table.add_column("Source", overflow="fold")
    table.add_column("Comment", overflow="fold")
    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.created_at.isoformat(timespec="seconds"),
            str(entry.size),
            entry.source_path or "",
            entry.comment or "",
        )
    Console().print(table)


@main.command("history-show")
@click.argument("entry_id", type=int)
def history_show(entry_id: int) -> None:
    """Print one stored Caddyfile version."""
    entry = get_config_history(entry_id)
    if entry is None:
        raise click.ClickException(f"No history entry with id {entry_id}")
    click.echo(entry.content, nl=False)
