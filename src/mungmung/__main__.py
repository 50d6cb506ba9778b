"""CLI entry point for mungmung."""

from __future__ import annotations

import json
import logging
import sys
from typing import NoReturn

import click

from . import __version__
from .alerts.models import Alert, AlertQuery
from .config import MungConfig, load_config
from .exceptions import MungError
from .service import MungService, build_service


# ── Helpers ──────────────────────────────────────────────

_LOG_FORMAT = "%(name)s: %(message)s"


def _configure_logging(config: MungConfig) -> None:
    """Diagnostics go to stderr; the debug toggles open up individual loggers."""
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(_LOG_FORMAT))

    root = logging.getLogger("mung")
    root.handlers[:] = [console]
    root.setLevel(logging.WARNING)

    lifecycle_level = logging.DEBUG if config.debug.lifecycle else logging.NOTSET
    actions_level = logging.DEBUG if config.debug.actions else logging.NOTSET
    for name in ("mung.lifecycle", "mung.store"):
        logging.getLogger(name).setLevel(lifecycle_level)
    for name in ("mung.action", "mung.notify"):
        logging.getLogger(name).setLevel(actions_level)


def _fail(error: Exception) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    raise SystemExit(1)


def _filter_options(func):
    """Repeatable metadata filters shared by list/count/clear (OR within, AND across)."""
    options = [
        click.option("--dedupe-key", "dedupe_keys", multiple=True, help="Filter by dedupe key (repeatable)"),
        click.option("--kind", "kinds", multiple=True, help="Filter by kind (repeatable)"),
        click.option("--session", "sessions", multiple=True, help="Filter by session (repeatable)"),
        click.option("--source", "sources", multiple=True, help="Filter by source (repeatable)"),
        click.option("--tag", "tags", multiple=True, help="Filter by tag (repeatable)"),
    ]
    for option in options:
        func = option(func)
    return func


def _query(
    tags: tuple[str, ...],
    sources: tuple[str, ...],
    sessions: tuple[str, ...],
    kinds: tuple[str, ...],
    dedupe_keys: tuple[str, ...],
) -> AlertQuery:
    return AlertQuery.build(
        tags=tags,
        sources=sources,
        sessions=sessions,
        kinds=kinds,
        dedupe_keys=dedupe_keys,
    )


def _cell(text: str, width: int) -> str:
    return f"{text[:width]:<{width}}"


def _format_table(alerts: list[Alert]) -> list[str]:
    lines = [f"{_cell('ID', 26)}{_cell('TAGS', 14)}{_cell('ICON', 5)}{_cell('TITLE', 20)}AGE"]
    for alert in alerts:
        tags = ",".join(alert.tags) or "-"
        lines.append(
            f"{_cell(alert.id, 26)}{_cell(tags, 14)}{_cell(alert.icon or '-', 5)}"
            f"{_cell(alert.title, 20)}{alert.age()}"
        )
    return lines


# ── CLI Commands ─────────────────────────────────────────


@click.group()
@click.version_option(version=__version__, prog_name="mung")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option(
    "--state-dir", default=None, help="Override state directory (default: $MUNG_DIR)"
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None, state_dir: str | None) -> None:
    """mung: pending alerts mirrored to desktop notifications."""
    if ctx.obj is not None:
        return  # service injected by the caller

    try:
        config = load_config(config_path)
    except MungError as e:
        _fail(e)
    if state_dir:
        config.storage.state_dir = state_dir

    _configure_logging(config)
    ctx.obj = build_service(config)


@main.command()
@click.option("--title", required=True, help="Alert title")
@click.option("--message", required=True, help="Alert message")
@click.option("--on-click", "on_click", default=None, help="Command to run on notification click")
@click.option("--icon", default=None, help="Icon (emoji, SF Symbol name, or image path)")
@click.option("--tag", "tags", multiple=True, help="Custom label (repeatable)")
@click.option("--source", default=None, help="Alert source (e.g. pi-agent, claude)")
@click.option("--session", default=None, help="Session id; narrows dedupe scope")
@click.option("--kind", default=None, help="Alert kind (e.g. update, action)")
@click.option("--dedupe-key", default=None, help="Replace previous matching alerts")
@click.option("--sound", default=None, help='Notification sound ("default" or a name)')
@click.pass_obj
def add(
    service: MungService,
    title: str,
    message: str,
    on_click: str | None,
    icon: str | None,
    tags: tuple[str, ...],
    source: str | None,
    session: str | None,
    kind: str | None,
    dedupe_key: str | None,
    sound: str | None,
) -> None:
    """Create an alert and send a notification. Prints the alert id."""
    candidate = Alert(
        title=title,
        message=message,
        on_click=on_click,
        icon=icon,
        tags=list(tags),
        source=source,
        session=session,
        kind=kind,
        dedupe_key=dedupe_key,
        sound=sound,
    )
    try:
        alert = service.add(candidate)
    except MungError as e:
        _fail(e)
    click.echo(alert.id)


@main.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_filter_options
@click.pass_obj
def list_alerts(service: MungService, as_json: bool, **filters: tuple[str, ...]) -> None:
    """List pending alerts, oldest first."""
    try:
        alerts = service.list(_query(**filters))
    except MungError as e:
        _fail(e)

    if as_json:
        click.echo(
            json.dumps(
                [a.to_record() for a in alerts], indent=2, sort_keys=True, ensure_ascii=False
            )
        )
        return
    if not alerts:
        click.echo("No pending alerts.")
        return
    for line in _format_table(alerts):
        click.echo(line)


@main.command()
@click.argument("alert_id")
@click.option("--run", is_flag=True, help="Execute the alert's on_click command")
@click.pass_obj
def done(service: MungService, alert_id: str, run: bool) -> None:
    """Dismiss an alert by id."""
    try:
        service.done(alert_id, run=run)
    except MungError as e:
        _fail(e)


@main.command()
@_filter_options
@click.pass_obj
def count(service: MungService, **filters: tuple[str, ...]) -> None:
    """Print the number of pending alerts."""
    try:
        click.echo(str(service.count(_query(**filters))))
    except MungError as e:
        _fail(e)


@main.command()
@_filter_options
@click.pass_obj
def clear(service: MungService, **filters: tuple[str, ...]) -> None:
    """Dismiss every matching alert (all alerts without filters)."""
    try:
        removed = service.clear(_query(**filters))
    except MungError as e:
        _fail(e)
    n = len(removed)
    click.echo(f"Cleared {n} alert{'' if n == 1 else 's'}.")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output diagnostics as JSON")
@click.pass_obj
def doctor(service: MungService, as_json: bool) -> None:
    """Print runtime diagnostics."""
    report = service.doctor()
    if as_json:
        click.echo(report.model_dump_json(indent=2))
        return

    def yes(flag: bool) -> str:
        return "yes" if flag else "no"

    def on(flag: bool) -> str:
        return "on" if flag else "off"

    click.echo("mung doctor")
    click.echo("=" * 40)
    click.echo(f"version: {report.version}")
    click.echo(f"executable: {report.executable or '-'}")
    click.echo(f"python: {report.python}")
    click.echo(f"mung_dir: {report.state_dir}")
    click.echo(f"alerts_dir: {report.alerts_dir}")
    click.echo(f"alerts_dir_exists: {yes(report.alerts_dir_exists)}")
    if report.storage_error:
        click.echo(f"alert_count: - ({report.storage_error})")
    else:
        click.echo(f"alert_count: {report.alert_count}")
    click.echo(f"notifications_available: {yes(report.notifications_available)}")
    click.echo(f"on_click_shell: {report.on_click_shell}")
    click.echo(f"on_click_shell_args: {' '.join(report.on_click_shell_args)}")
    click.echo(f"on_click_cwd: {report.on_click_cwd or '-'}")
    click.echo(f"debug_actions: {on(report.debug_actions)}")
    click.echo(f"debug_lifecycle: {on(report.debug_lifecycle)}")
    click.echo(
        f"signal: {report.signal_event if report.signal_enabled else 'disabled'}"
    )


if __name__ == "__main__":
    main()
