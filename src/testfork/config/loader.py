#
# src/testfork/config/loader.py
#
"""
Loads a testfork project file (TOML) into a ProjectConfig.
"""

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import attrs
import structlog

from testfork.config.models import KEY_ALIASES, FileDescriptor, ProjectConfig, RunConfiguration
from testfork.exceptions import ConfigurationError

log = structlog.get_logger("config.loader")

_TOP_LEVEL_KEYS = {"defaults", "files"}


def _check_keys(table: Mapping[str, Any], allowed: set[str], where: str, path: Path) -> None:
    unknown = sorted(key for key in table if KEY_ALIASES.get(key, key) not in allowed)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in {where}: {', '.join(unknown)}", str(path))


def load_config(config_path: Path) -> ProjectConfig:
    """
    Reads `[defaults]` and `[[files]]` from the project file.

    Raises:
        ConfigurationError: if the file is missing, is not valid TOML, or
            contains keys testfork does not know.
    """
    load_log = log.bind(path=str(config_path))
    load_log.debug("Loading configuration file")

    try:
        with config_path.open("rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError as e:
        raise ConfigurationError("Configuration file not found", str(config_path)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML: {e}", str(config_path)) from e

    _check_keys(raw, _TOP_LEVEL_KEYS, "the top level", config_path)

    defaults = RunConfiguration()
    defaults_table = raw.get("defaults", {})
    if not isinstance(defaults_table, Mapping):
        raise ConfigurationError("'defaults' must be a table", str(config_path))
    _check_keys(defaults_table, {a.name for a in attrs.fields(RunConfiguration)}, "[defaults]", config_path)
    defaults.update(defaults_table)

    files_table = raw.get("files", [])
    if not isinstance(files_table, list):
        raise ConfigurationError("'files' must be an array of tables", str(config_path))
    descriptor_keys = {a.name for a in attrs.fields(FileDescriptor)}
    files: list[FileDescriptor] = []
    for index, entry in enumerate(files_table):
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"files[{index}] must be a table", str(config_path))
        _check_keys(entry, descriptor_keys, f"files[{index}]", config_path)
        files.append(FileDescriptor.coerce(entry))

    load_log.info("Configuration loaded", files=len(files), coverage=defaults.coverage)
    return ProjectConfig(defaults=defaults, files=files, source=config_path)

# 🔼⚙️
