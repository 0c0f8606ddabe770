#
# src/testfork/config/resolver.py
#
"""
Merges the run configuration with per-file overrides into worker-ready configurations.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from testfork.config.models import FileDescriptor, LogFlags, ResolvedConfig, RunConfiguration
from testfork.config.paths import abs_path, abs_paths

log = structlog.get_logger("config.resolver")

_DESCRIPTOR_KEYS = ("code", "tests", "deps", "module_deps", "namespace", "log", "coverage")


def _module_list(module_deps: Any) -> list[str]:
    if not module_deps:
        return []
    if isinstance(module_deps, str):
        return [module_deps]
    return [str(mod) for mod in module_deps]


def resolve(
    defaults: RunConfiguration,
    override: FileDescriptor | Mapping[str, Any] | str,
) -> ResolvedConfig:
    """
    Produces the configuration for one file.

    The override wins per key over the defaults (a shallow merge). Path-bearing
    fields are made absolute; module dependencies are appended to `deps`
    as-is, since they are importable names rather than files.
    """
    # The run defaults carry no code or tests of their own.
    merged: dict[str, Any] = {key: getattr(defaults, key, None) for key in _DESCRIPTOR_KEYS}
    merged.update(FileDescriptor.coerce(override).overrides())

    flags = merged["log"]
    flags = LogFlags.from_mapping(flags) if flags else LogFlags.none()

    module_deps = _module_list(merged["module_deps"])
    deps: list[Any] = abs_paths(merged["deps"])
    deps.extend(module_deps)

    resolved = ResolvedConfig(
        code=abs_path(merged["code"]),
        tests=abs_paths(merged["tests"]),
        deps=deps,
        module_deps=module_deps,
        namespace=merged["namespace"],
        log=flags,
        coverage=bool(merged["coverage"]),
    )
    log.debug(
        "Resolved file configuration",
        code=resolved.code_label,
        tests=len(resolved.tests),
        deps=len(resolved.deps),
        coverage=resolved.coverage,
    )
    return resolved


def resolve_all(
    defaults: RunConfiguration,
    descriptors: Iterable[FileDescriptor | Mapping[str, Any] | str],
) -> list[ResolvedConfig]:
    return [resolve(defaults, descriptor) for descriptor in descriptors]

# 🔼⚙️
