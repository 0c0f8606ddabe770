# src/testfork/telemetry/logger/base.py

"""
structlog setup shared by the CLI and library users.

Everything is routed through stdlib `logging`; stdout is left alone because
run reports are printed there.
"""

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger

from testfork.telemetry.logger.processors import (
    add_emoji_processor,
    remove_extra_keys_processor,
)

BASE_LOGGER_NAME = "testfork"

# Libraries whose debug output drowns ours.
QUIET_LOGGERS = ("asyncio",)

SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    add_emoji_processor,
    remove_extra_keys_processor,
]


def _renderer(json_logs: bool) -> structlog.types.Processor:
    if json_logs:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _reset_root(level: int) -> logging.Logger:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return root_logger


def _file_handler(log_file: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=structlog.processors.JSONRenderer(sort_keys=True))
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    level: int = logging.WARNING,
    json_logs: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Configures structlog for the whole process.

    Console logs go to stderr, rendered for humans or as JSON lines. With
    `log_file`, every record is also written there as JSON.
    """
    structlog.configure(
        processors=[*SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    root_logger = _reset_root(level)
    slog = structlog.get_logger(BASE_LOGGER_NAME)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=_renderer(json_logs)))
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            root_logger.addHandler(_file_handler(log_file, level))
        except OSError as e:
            slog.error("Could not open log file", log_file=log_file, error=str(e))
        else:
            slog.info("File logging enabled", log_file=log_file)

    slog.debug(
        "Logging initialized",
        log_level=logging.getLevelName(level),
        json_console_format=json_logs,
        log_file=log_file or "None",
    )


StructLogger = FilteringBoundLogger

# 🔼⚙️
