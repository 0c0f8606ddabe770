# src/testfork/cli/run_cmds.py

import asyncio
import logging
from pathlib import Path
from typing import Any

import click
import structlog

from testfork.cli.utils import logging_options, setup_logging_from_context
from testfork.config import FileDescriptor, ProjectConfig, load_config
from testfork.exceptions import ConfigurationError, TestforkError
from testfork.runtime.orchestrator import RunOrchestrator, RunOutcome
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")

DEFAULT_CONFIG_NAME = "testfork.toml"


def _run_orchestrator(orchestrator: RunOrchestrator, files: list[FileDescriptor]) -> int:
    """
    Runs the batch with asyncio.run(), which cancels the run (and so kills
    every worker) on CTRL-C.
    """

    def report_file_error(index: int, error: TestforkError) -> None:
        click.echo(f"\nError in file #{index}: {error}", err=True)

    try:
        outcome: RunOutcome = asyncio.run(orchestrator.run(files, on_file_error=report_file_error))
        return 0 if outcome.ok else 1
    except KeyboardInterrupt:
        log.warning("Run interrupted by KeyboardInterrupt (CTRL-C).")
        return 130
    except Exception:
        log.critical("Run failed with an unhandled exception.", exc_info=True)
        return 1
    finally:
        logging.shutdown()


def _load_project(config_path: Path | None) -> ProjectConfig:
    if config_path is not None:
        return load_config(config_path)
    default_path = Path(DEFAULT_CONFIG_NAME)
    if default_path.is_file():
        return load_config(default_path)
    return ProjectConfig()


@click.command(name="run")
@click.argument("tests", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-c",
    "--config-path",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
    default=None,
    envvar="TESTFORK_CONF",
    help=f"Path to the testfork project file (defaults to ./{DEFAULT_CONFIG_NAME} if present).",
    show_envvar=True,
)
@click.option("--code", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Code file under test.")
@click.option("--dep", "deps", multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="File to load before the code (repeatable).")
@click.option("--module-dep", "module_deps", multiple=True, help="Module to import before the code (repeatable).")
@click.option("--namespace", default=None, help="Expose the code's names under this single name.")
@click.option("--coverage/--no-coverage", default=None, help="Measure coverage of the code under test.")
@click.option("--coverage-report", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write the cumulative coverage report (JSON) here.")
@click.option("--debug-port", type=int, default=None, help="Start workers under debugpy, listening from this port upwards.")
@click.option("-q", "--quiet", is_flag=True, help="Only print the global summary.")
@logging_options
@click.pass_context
def run_cli(
    ctx: click.Context,
    tests: tuple[Path, ...],
    config_path: Path | None,
    code: Path | None,
    deps: tuple[Path, ...],
    module_deps: tuple[str, ...],
    namespace: str | None,
    coverage: bool | None,
    coverage_report: Path | None,
    debug_port: int | None,
    quiet: bool,
    **kwargs: Any,
):
    """Run test files, each in its own worker process."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )

    try:
        project = _load_project(config_path)
    except ConfigurationError as e:
        log.error("Failed to load configuration", error=str(e))
        click.echo(f"Error: {e}", err=True)
        ctx.exit(2)

    orchestrator = RunOrchestrator(config=project.defaults)

    overrides: dict[str, Any] = {}
    if coverage is not None:
        overrides["coverage"] = coverage
    if coverage_report is not None:
        overrides["coverage_report"] = coverage_report
    if quiet:
        overrides["log"] = {"global_summary": True}
    if debug_port is not None:
        overrides["worker_args"] = ["-m", "debugpy", "--listen", f"127.0.0.1:{debug_port}", "--wait-for-client"]
    orchestrator.setup(overrides)

    files = list(project.files)
    if tests:
        files.append(
            FileDescriptor(
                code=code,
                tests=list(tests),
                deps=list(deps) or None,
                module_deps=list(module_deps) or None,
                namespace=namespace,
            )
        )
    elif code is not None:
        click.echo("Error: --code given without any test files.", err=True)
        ctx.exit(2)

    if not files:
        click.echo("Error: nothing to run. Pass test files or a project file with [[files]].", err=True)
        ctx.exit(2)

    log.info("Starting run", files=len(files))
    exit_code = _run_orchestrator(orchestrator, files)
    log.info("'run' command finished.", exit_code=exit_code)
    ctx.exit(exit_code)

# 🔼⚙️
