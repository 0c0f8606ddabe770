# src/testfork/cli/main.py

"""
Main CLI entry point for testfork using Click.

    testfork run tests/test_calc.py --code src/calc.py --coverage
    testfork config show -c testfork.toml --resolved
"""

import click
import structlog

from testfork import __version__
from testfork.cli.config_cmds import config_cli
from testfork.cli.run_cmds import run_cli
from testfork.cli.utils import logging_options, setup_logging_from_context
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", prog_name="testfork")
@logging_options
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    Testfork: run test files in isolated worker processes.

    Every test file gets its own worker; results, statistics and coverage
    are gathered into a single report. Logging options given here apply to
    every subcommand unless it sets its own.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(LOG_LEVEL=log_level, LOG_FILE=log_file, JSON_LOGS=bool(json_logs))

    setup_logging_from_context(ctx)
    log.debug("CLI group initialized", subcommand=ctx.invoked_subcommand, **ctx.obj)


cli.add_command(config_cli)
cli.add_command(run_cli)

if __name__ == "__main__":
    cli()

# 🖥️⚙️
