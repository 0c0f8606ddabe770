# src/testfork/cli/config_cmds.py

from pathlib import Path

import click
import structlog
from rich.pretty import pretty_repr

from testfork.cli.utils import logging_options, setup_logging_from_context
from testfork.config import load_config, resolve_all
from testfork.exceptions import ConfigurationError
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.config")


# Create a command group for config-related commands
@click.group(name="config")
def config_cli():
    """Commands for inspecting and validating configuration."""
    pass


@config_cli.command(name="show")
@click.option(
    "-c",
    "--config-path",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
    default=Path("testfork.toml"),
    show_default=True,
    envvar="TESTFORK_CONF",
    help="Path to the testfork project file (env var TESTFORK_CONF).",
    show_envvar=True,
)
@click.option("--resolved", is_flag=True, help="Show each file as the worker will receive it.")
@logging_options
@click.pass_context
def show_config(ctx: click.Context, config_path: Path, resolved: bool, **kwargs):
    """Load, validate, and display the configuration."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    log.info("Executing 'config show' command", config_path=str(config_path))

    try:
        config = load_config(config_path)
        log.debug("Configuration loaded successfully by 'show' command.")

        # Echo a rich-formatted string for testability.
        target = resolve_all(config.defaults, config.files) if resolved else config
        click.echo(pretty_repr(target, expand_all=True))

        if not config.files:
            log.warning("Configuration defines no [[files]] entries.")

    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)

# 🔼⚙️
