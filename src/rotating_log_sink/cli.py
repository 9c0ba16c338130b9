"""Click CLI for the rotating log sink.

Entry point registered in ``pyproject.toml`` as ``rotating-log-sink``.

Subcommands::

    rotating-log-sink -c sinks.json     # read NDJSON events from stdin into sinks
    rotating-log-sink path -c sinks.json # print each sink's active file
    rotating-log-sink sanitize           # stdin → stdout with ill-formed UTF-8 replaced
"""

from __future__ import annotations

import logging
import os
import signal
import sys
from typing import IO, Iterable, Optional

import click
import orjson

from rotating_log_sink import __version__
from rotating_log_sink.actor import SinkRegistry
from rotating_log_sink.config import AppConfig, load_config
from rotating_log_sink.decoder import MalformedLine, decode_event
from rotating_log_sink.sanitize import sanitize

logger = logging.getLogger("rotating_log_sink")

CONFIG_ENV = "ROTATING_LOG_SINK_CONFIG"


# ── structured JSON log formatter ───────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON to stderr."""

    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj).decode()


def _setup_logging(level: str, fmt: str = "json") -> None:
    """Configure the root logger with JSON (or plain text) output on stderr."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    stderr_handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        stderr_handler.setFormatter(_JsonFormatter())
    else:
        stderr_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    root.addHandler(stderr_handler)


def _parse_overrides(values: Iterable[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint="--set")
        overrides[name] = value
    return overrides


def _load(config_path: Optional[str], overrides: dict[str, str]) -> AppConfig:
    cfg_path = config_path or os.environ.get(CONFIG_ENV)
    if not cfg_path:
        return AppConfig()
    try:
        return load_config(cfg_path, overrides=overrides)
    except Exception as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(1) from exc


# ── main CLI group ──────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.option("-c", "--config", "config_path", default=None,
              help=f"Config file path (default: ${CONFIG_ENV}, else built-in defaults).")
@click.option("-d", "--directory", default=None, help="Override the default sink's directory.")
@click.option("-s", "--sink", "sink_name", default=None,
              help="Sink for events that do not name one (default: config default_sink).")
@click.option("--set", "set_vars", multiple=True, metavar="NAME=VALUE",
              help="Value for a ${NAME} placeholder in the config file.")
@click.option("--log-level", default=None,
              type=click.Choice(["debug", "info", "warn", "error"]),
              help="Diagnostic log verbosity.")
@click.option("--validate-config", "validate_only", is_flag=True,
              help="Validate config and exit.")
@click.version_option(__version__)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    directory: Optional[str],
    sink_name: Optional[str],
    set_vars: tuple[str, ...],
    log_level: Optional[str],
    validate_only: bool,
) -> None:
    """Rotating log sink: NDJSON log events on stdin to rotating daily files."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = _parse_overrides(set_vars)
    if ctx.invoked_subcommand is not None:
        return  # defer to subcommand

    cfg = _load(config_path, ctx.obj["overrides"])

    default_sink = sink_name or cfg.default_sink
    if default_sink not in cfg.sinks:
        click.echo(f"Config error: no sink named {default_sink!r}", err=True)
        raise SystemExit(1)
    if directory:
        cfg.sinks[default_sink] = cfg.sinks[default_sink].merge(directory=directory)

    _setup_logging(log_level or cfg.logging.level, cfg.logging.format)

    if validate_only:
        click.echo("Configuration is valid.", err=True)
        raise SystemExit(0)

    logger.info(
        "Starting rotating-log-sink %s (sinks=%s, default=%s)",
        __version__,
        ",".join(cfg.sinks),
        default_sink,
    )
    _run_pipeline(cfg, sys.stdin.buffer, default_sink)


# ── pipeline ────────────────────────────────────────────────────────


def _run_pipeline(cfg: AppConfig, stream: IO[bytes], default_sink: str) -> int:
    """Read events from *stream* until EOF: decode → route → sink."""
    registry = SinkRegistry()
    for name, sink_cfg in cfg.sinks.items():
        registry.add(name, sink_cfg)

    def _handle_signal(signum: int, _frame: object) -> None:
        logger.info("Received shutdown signal %d", signum)
        raise SystemExit(0)

    try:
        previous = signal.signal(signal.SIGTERM, _handle_signal)
    except ValueError:
        previous = None  # not on the main thread

    event_count = 0
    malformed_count = 0
    try:
        for line in stream:
            result = decode_event(line)
            if result is None:
                continue

            if isinstance(result, MalformedLine):
                malformed_count += 1
                logger.warning("Skipping malformed line (%s): %s", result.code, result.message)
                continue

            name = result.sink or default_sink
            if name not in registry:
                logger.warning("Unknown sink %r, routing to %r", name, default_sink)
                name = default_sink

            registry.log(name, result.event)
            event_count += 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)
        registry.stop_all()
        logger.info(
            "Pipeline shut down (processed %d events, %d malformed)",
            event_count,
            malformed_count,
        )
    return event_count


# ── subcommands ─────────────────────────────────────────────────────


@main.command("path")
@click.pass_context
def path_cmd(ctx: click.Context) -> None:
    """Print the file each configured sink would write to next."""
    cfg = _load(ctx.obj["config_path"], ctx.obj["overrides"])
    registry = SinkRegistry()
    try:
        for name, sink_cfg in cfg.sinks.items():
            actor = registry.add(name, sink_cfg)
            click.echo(f"{name}\t{actor.path() or '-'}")
    finally:
        registry.stop_all()


@main.command("sanitize")
def sanitize_cmd() -> None:
    """Copy stdin to stdout, replacing ill-formed UTF-8 with U+FFFD."""
    out = sys.stdout.buffer
    for line in sys.stdin.buffer:
        out.write(sanitize(line))
    out.flush()
