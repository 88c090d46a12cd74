"""CLI entry point for brickatlas."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from . import __version__
from .exceptions import BrickatlasError
from .rules.templates import list_templates

logger = logging.getLogger("brickatlas")


# ── Helpers ──────────────────────────────────────────────


def _configure_logging(verbose: bool = False, log_file: str = "") -> None:
    """Console logging on stderr, plus a rotating file when configured."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    level = logging.DEBUG if verbose else logging.INFO

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    handlers: list[logging.Handler] = [console]

    if log_file:
        from logging.handlers import RotatingFileHandler

        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=5 * 1024 * 1024,
            backupCount=2,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for noisy in ("watchdog", "aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _fail(error: Exception) -> NoReturn:
    """Print a friendly explanation of a fatal error and exit non-zero."""
    from .friendly_errors import format_friendly_error, friendly_error

    click.echo(format_friendly_error(friendly_error(error)), err=True)
    sys.exit(1)


def _rule_options(func):
    """Options shared by every command that builds a WatchConfig."""
    func = click.option(
        "--preset",
        "presets",
        multiple=True,
        type=click.Choice([t.id for t in list_templates()]),
        help="Add a built-in capture rule (repeatable)",
    )(func)
    func = click.option(
        "--pattern",
        "patterns",
        multiple=True,
        help="Add a capture rule: regex with named groups (repeatable)",
    )(func)
    func = click.option("--config", "config_path", default=None, help="Config file path")(func)
    func = click.argument("labels", nargs=-1)(func)
    func = click.argument("watch_file", required=False)(func)
    return func


# ── CLI Commands ─────────────────────────────────────────


@click.group()
@click.version_option(version=__version__, prog_name="brickatlas")
def main() -> None:
    """brickatlas — get alerted when lines appear in a live game log.

    \b
    Example:
      brickatlas watch ~/PathOfExile/logs/Client.txt "Lioneye's Watch"
    """


@main.command()
@_rule_options
@click.option(
    "--window",
    "coalesce_seconds",
    default=None,
    type=float,
    help="Coalescing window for change events, in seconds",
)
@click.option(
    "--polling/--no-polling",
    default=None,
    help="Poll the file instead of using OS change events",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def watch(
    watch_file: str | None,
    labels: tuple[str, ...],
    config_path: str | None,
    patterns: tuple[str, ...],
    presets: tuple[str, ...],
    coalesce_seconds: float | None,
    polling: bool | None,
    verbose: bool,
) -> None:
    """Watch WATCH_FILE and alert when a line matches a rule.

    Each LABEL becomes a literal rule matching "You have entered LABEL"
    (or the configured literal_template).
    """
    from .config import build_config
    from .notifications import NotificationDispatcher
    from .watch.loop import WatchLoop

    try:
        config = build_config(
            config_path=config_path,
            watch_file=watch_file,
            labels=labels,
            patterns=patterns,
            presets=presets,
            coalesce_seconds=coalesce_seconds,
            use_polling=polling,
        )
    except BrickatlasError as e:
        _fail(e)

    _configure_logging(verbose, config.log_file)
    dispatcher = NotificationDispatcher(config.notifications)
    if dispatcher.sinks:
        logger.info(f"Notifications: {', '.join(dispatcher.sinks)}")
    else:
        logger.info("Notifications: none (matches are only logged)")
    loop = WatchLoop(config, dispatcher)

    async def _run() -> None:
        try:
            await loop.run()
        finally:
            await dispatcher.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("\nStopped.", err=True)
    except BrickatlasError as e:
        _fail(e)
    finally:
        summary = loop.stats.summary()
        logger.info(
            "Session: "
            + ", ".join(f"{key}={value}" for key, value in summary.items())
        )


@main.command()
@_rule_options
@click.option(
    "--line",
    "lines",
    multiple=True,
    help="Sample log line to evaluate against the rules (repeatable)",
)
def check(
    watch_file: str | None,
    labels: tuple[str, ...],
    config_path: str | None,
    patterns: tuple[str, ...],
    presets: tuple[str, ...],
    lines: tuple[str, ...],
) -> None:
    """Validate the configuration and try rules on sample lines."""
    from .config import build_config
    from .notifications import render_alert
    from .notifications.desktop import strip_markup
    from .rules.engine import LiteralRule, PatternSet

    try:
        config = build_config(
            config_path=config_path,
            watch_file=watch_file,
            labels=labels,
            patterns=patterns,
            presets=presets,
        )
        pattern_set = PatternSet.from_config(config)
    except BrickatlasError as e:
        _fail(e)

    status = "ok" if config.path.is_file() else "NOT FOUND"
    click.echo(f"Watch file: {config.path} ({status})")
    click.echo(f"Rules ({len(pattern_set)}):")
    for rule in pattern_set.rules:
        if isinstance(rule, LiteralRule):
            click.echo(f"  {rule.alert.name}: line == {rule.expected!r}")
        else:
            fields = ", ".join(rule.fields) or "-"
            click.echo(f"  {rule.alert.name}: {rule.regex.pattern!r} [{fields}]")

    for line in lines:
        events = pattern_set.evaluate(line)
        if not events:
            click.echo(f"No match: {line!r}")
            continue
        for event in events:
            alert = render_alert(event)
            click.echo(f"Match [{event.rule.name}]: {alert.title} | {strip_markup(alert.body)}")


@main.command()
def presets() -> None:
    """List built-in capture rules usable with --preset."""
    for template in list_templates():
        click.echo(f"{template.id}: {template.description}")
        click.echo(f"    {template.expression}")


if __name__ == "__main__":
    main()
