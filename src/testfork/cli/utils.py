# src/testfork/cli/utils.py

import logging

import click
import structlog

from testfork.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging._nameToLevel.keys()), case_sensitive=False)

# Applied bottom-up, so --help lists them in this order.
_LOGGING_OPTIONS = (
    click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="TESTFORK_JSON_LOGS",
        help="Output console logs as JSON.",
    ),
    click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="TESTFORK_LOG_FILE",
        help="Also write logs (JSON) to this file.",
    ),
    click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="TESTFORK_LOG_LEVEL",
        help="Logging level of testfork itself (default WARNING).",
    ),
)


def logging_options(f):
    """Adds --log-level, --log-file and --json-logs to a command."""
    for option in _LOGGING_OPTIONS:
        f = option(f)
    return f


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "WARNING",
) -> None:
    """
    Configures logging for a command. Options given on the command win over
    the ones given to the `testfork` group.
    """
    ctx.ensure_object(dict)
    level_name = (local_log_level or ctx.obj.get("LOG_LEVEL") or default_log_level).upper()
    log_file = local_log_file or ctx.obj.get("LOG_FILE")
    json_logs = bool(local_json_logs if local_json_logs is not None else ctx.obj.get("JSON_LOGS"))

    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level, level_name = logging.WARNING, "WARNING"

    core_setup_logging(level=level, json_logs=json_logs, log_file=log_file)
    log.debug("Logging configured", level=level_name, file=log_file or "console", json=json_logs)

# ⚙️🛠️
