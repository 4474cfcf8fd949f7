"""CLI entry point for alertbeat."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from alertbeat import __version__
from alertbeat.config import (
    build_settings, default_config_path, load_config, validate_config,
)

_SETTING_OPTIONS = [
    click.option("--check-uuid", "-u", envvar="ALERTBEAT_CHECK_UUID", default=None,
                 help="Healthchecks check UUID."),
    click.option("--healthchecks-url", "-b", envvar="ALERTBEAT_HEALTHCHECKS_URL",
                 default=None, help="Healthchecks ping base URL [default: https://hc-ping.com]."),
    click.option("--prometheus-url", "-p", envvar="ALERTBEAT_PROMETHEUS_URL",
                 default=None, help="Prometheus base URL."),
    click.option("--timeout", "-t", envvar="ALERTBEAT_TIMEOUT", default=None,
                 help="Per-request timeout, e.g. 30s [default: 30s]."),
    click.option("--interval", "-i", envvar="ALERTBEAT_INTERVAL", default=None,
                 help="Check interval, e.g. 5m [default: 5m]."),
]


def setting_options(func):
    """Attach the settings flags shared by the commands."""
    for option in reversed(_SETTING_OPTIONS):
        func = option(func)
    return func


def _get_console(ctx) -> Console:
    return Console(no_color=ctx.obj.get("no_color", False))


def _get_config(ctx, overrides: dict) -> dict:
    """Load the config file (or defaults) and apply CLI/env overrides."""
    path = ctx.obj.get("config_path")
    try:
        cfg = load_config(Path(path) if path else None)
    except (OSError, ValueError) as e:
        _get_console(ctx).print(f"[red]Cannot load config: {escape(str(e))}[/red]")
        raise SystemExit(2)
    for key, value in overrides.items():
        if value is not None:
            cfg[key] = value
    return cfg


def _get_settings(ctx, overrides: dict):
    """Resolve settings, exiting with status 2 on invalid config."""
    cfg = _get_config(ctx, overrides)
    errors = validate_config(cfg)
    if errors:
        console = _get_console(ctx)
        for error in errors:
            console.print(f"[red]\u2718[/red] {escape(error)}")
        raise SystemExit(2)
    return build_settings(cfg)


@click.group()
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="Path to config file.")
@click.option("--log-file", type=click.Path(), default=None,
              help="Also log to this file (rotated at 512 KB).")
@click.option("--no-color", is_flag=True, help="Disable colored output.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, config_path, log_file, no_color, verbose):
    """alertbeat - ping Healthchecks while Prometheus has no active alerts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_file"] = log_file
    ctx.obj["no_color"] = no_color
    ctx.obj["verbose"] = verbose


def _setup_logging(ctx) -> logging.Logger:
    from alertbeat.logging_setup import setup_logging

    log_file = ctx.obj.get("log_file")
    level = logging.DEBUG if ctx.obj.get("verbose") else logging.INFO
    return setup_logging(level, Path(log_file) if log_file else None)


@cli.command()
def version():
    """Show alertbeat version."""
    click.echo(f"alertbeat {__version__}")


@cli.command("run")
@setting_options
@click.pass_context
def run_cmd(ctx, **overrides):
    """Check Prometheus now and then every interval, forever."""
    from alertbeat.runner import Runner

    settings = _get_settings(ctx, overrides)
    logger = _setup_logging(ctx)

    if settings.timeout > settings.interval:
        logger.warning("timeout (%ss) is longer than interval (%ss); "
                       "checks may overlap", settings.timeout, settings.interval)
    logger.info("alertbeat %s started: prometheus=%s check=%s interval=%ss timeout=%ss",
                __version__, settings.prometheus_url, settings.check_uuid,
                settings.interval, settings.timeout)

    try:
        Runner(settings).run_forever()
    except KeyboardInterrupt:
        logger.info("alertbeat stopped")


@cli.command("check")
@setting_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-ping", is_flag=True, help="Query Prometheus without pinging Healthchecks.")
@click.pass_context
def check_cmd(ctx, as_json, no_ping, **overrides):
    """Run a single check cycle and show its outcome."""
    from alertbeat.runner import Runner

    settings = _get_settings(ctx, overrides)
    _setup_logging(ctx)

    outcome = Runner(settings).check(ping=not no_ping)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        table = Table(title=f"alertbeat \u2014 {settings.prometheus_url}")
        table.add_column("Status")
        table.add_column("Message")
        table.add_column("Context")
        context = "\n".join(f"{key}={value}" for key, value in outcome.context)
        table.add_row(outcome.status.icon, escape(outcome.message or "no active alerts"),
                      escape(context))
        _get_console(ctx).print(table)

    # Exit code: 0 = no active alerts, 1 = failure
    if not outcome.ok:
        raise SystemExit(1)


@cli.command("validate")
@setting_options
@click.pass_context
def validate_cmd(ctx, **overrides):
    """Check the configuration and report problems."""
    from alertbeat.config import parse_duration

    console = _get_console(ctx)
    cfg = _get_config(ctx, overrides)
    errors = validate_config(cfg)
    if errors:
        for error in errors:
            console.print(f"[red]\u2718[/red] {escape(error)}")
        raise SystemExit(1)

    if parse_duration(cfg["timeout"]) > parse_duration(cfg["interval"]):
        console.print("[yellow]\u26a0[/yellow] timeout is longer than interval; "
                      "checks may overlap")
    path = ctx.obj.get("config_path") or default_config_path()
    console.print(f"[green]\u2714[/green] Config OK ({path})")
