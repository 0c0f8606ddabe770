#
# src/testfork/config/models.py
#
"""
Attrs-based data models for testfork run configuration and file descriptors.
"""

import json
import os
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, TypeAlias

import attrs
import structlog
from attrs import define, field, mutable

from testfork.config.paths import PathDescriptor, PathLike
from testfork.exceptions import ConfigurationError

log = structlog.get_logger("config.models")

# Label attached to results of descriptors that have no code file.
NO_CODE_LABEL = "<none>"

# camelCase spellings accepted from descriptors written for the JS-era runner.
KEY_ALIASES: dict[str, str] = {
    "moduleDeps": "module_deps",
    "globalSummary": "global_summary",
    "globalCoverage": "global_coverage",
    "coverageReport": "coverage_report",
    "workerArgs": "worker_args",
}


def _canonical_key(key: str) -> str:
    return KEY_ALIASES.get(key, key)


ModuleDeps: TypeAlias = str | Sequence[str]


# --- Logging flags ---
@define(frozen=True, slots=True)
class LogFlags:
    """Per-category switches for what gets printed once a run finishes."""

    assertions: bool = field(default=True)  # assertions overview
    errors: bool = field(default=True)  # expected/actual values of failed assertions
    tests: bool = field(default=True)  # tests overview
    summary: bool = field(default=True)  # per-file summary
    global_summary: bool = field(default=True)  # summary over all files
    coverage: bool = field(default=True)  # per-file coverage
    global_coverage: bool = field(default=True)  # coverage over all files
    testing: bool = field(default=True)  # live "Testing <path> ... done" trace

    @classmethod
    def none(cls) -> "LogFlags":
        return cls(**{a.name: False for a in attrs.fields(cls)})

    @classmethod
    def from_mapping(cls, flags: "Mapping[str, Any] | LogFlags | None") -> "LogFlags":
        """
        Builds flags from a possibly partial mapping.

        Flags the mapping does not mention are off: an override's log map
        replaces the defaults wholesale rather than being merged into them.
        """
        if isinstance(flags, LogFlags):
            return flags
        if not flags:
            return cls.none()

        known = {a.name for a in attrs.fields(cls)}
        values: dict[str, bool] = {}
        for key, value in flags.items():
            name = _canonical_key(key)
            if name not in known:
                log.warning("Ignoring unknown log flag", flag=key)
                continue
            values[name] = bool(value)
        return cls(**{name: values.get(name, False) for name in known})

    def items(self) -> Iterator[tuple[str, bool]]:
        for a in attrs.fields(type(self)):
            yield a.name, getattr(self, a.name)

    def to_dict(self) -> dict[str, bool]:
        return dict(self.items())


# --- Per-file descriptor ---
@define(slots=True)
class FileDescriptor:
    """
    One unit of test work. Fields left as None inherit the run configuration.
    """

    code: PathLike | None = field(default=None)
    tests: PathLike | Sequence[PathLike] | None = field(default=None)
    deps: PathLike | Sequence[PathLike] | None = field(default=None)
    module_deps: ModuleDeps | None = field(default=None)
    namespace: str | None = field(default=None)
    log: Mapping[str, Any] | LogFlags | None = field(default=None)
    coverage: bool | None = field(default=None)

    @classmethod
    def coerce(cls, obj: "FileDescriptor | Mapping[str, Any] | str | os.PathLike") -> "FileDescriptor":
        """Accepts a descriptor, a mapping of descriptor keys, or a bare test path."""
        if isinstance(obj, FileDescriptor):
            return obj
        if isinstance(obj, (str, os.PathLike)):
            return cls(tests=obj)
        if not isinstance(obj, Mapping):
            raise TypeError(f"Cannot build a file descriptor from {type(obj).__name__}")

        known = {a.name for a in attrs.fields(cls)}
        values: dict[str, Any] = {}
        for key, value in obj.items():
            name = _canonical_key(key)
            if name not in known:
                log.warning("Ignoring unknown file descriptor key", key=key)
                continue
            values[name] = value
        return cls(**values)

    def overrides(self) -> dict[str, Any]:
        """Returns only the keys this descriptor actually sets."""
        return {a.name: getattr(self, a.name) for a in attrs.fields(type(self)) if getattr(self, a.name) is not None}


# --- Process-wide defaults ---
@mutable(slots=True)
class RunConfiguration:
    """
    Default options merged into every file descriptor before resolution.

    Mutable so `setup()` can change the defaults for all subsequent runs.
    """

    log: LogFlags | None = field(factory=LogFlags)
    coverage: bool = field(default=False)
    deps: PathLike | Sequence[PathLike] | None = field(default=None)
    module_deps: ModuleDeps | None = field(default=None)
    namespace: str | None = field(default=None)
    coverage_report: Path | None = field(default=None)
    worker_args: list[str] = field(factory=list)

    def update(self, overrides: "Mapping[str, Any] | FileDescriptor") -> None:
        """Shallow-merges overrides into the defaults, key by key."""
        if isinstance(overrides, FileDescriptor):
            overrides = overrides.overrides()

        known = {a.name for a in attrs.fields(type(self))}
        for key, value in overrides.items():
            name = _canonical_key(key)
            if name not in known:
                raise ConfigurationError(f"Unknown option '{key}'. Available options: {sorted(known)}")
            if name == "log" and value is not None:
                value = LogFlags.from_mapping(value)
            elif name == "coverage_report" and value is not None:
                value = Path(value)
            elif name == "worker_args":
                value = list(value or [])
            setattr(self, name, value)
        log.debug("Run configuration updated", keys=sorted(overrides))

    def snapshot(self) -> "RunConfiguration":
        """An independent copy, so a running batch is isolated from later setup() calls."""
        return attrs.evolve(self, worker_args=list(self.worker_args))

    def to_dict(self) -> dict[str, Any]:
        return {a.name: getattr(self, a.name) for a in attrs.fields(type(self))}


# --- Fully resolved, worker-ready configuration ---
@define(frozen=True, slots=True)
class ResolvedConfig:
    """A file descriptor after merging defaults and normalizing paths."""

    code: PathDescriptor | None = field(default=None)
    tests: tuple[PathDescriptor, ...] = field(default=(), converter=tuple)
    deps: tuple[PathDescriptor | str, ...] = field(default=(), converter=tuple)
    module_deps: tuple[str, ...] = field(default=(), converter=tuple)
    namespace: str | None = field(default=None)
    log: LogFlags = field(factory=LogFlags.none)
    coverage: bool = field(default=False)

    @property
    def code_label(self) -> str:
        return self.code.path if self.code else NO_CODE_LABEL

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.to_dict() if self.code else None,
            "tests": [t.to_dict() for t in self.tests],
            "deps": [d.to_dict() if isinstance(d, PathDescriptor) else d for d in self.deps],
            "module_deps": list(self.module_deps),
            "namespace": self.namespace,
            "log": self.log.to_dict(),
            "coverage": self.coverage,
        }

    def to_json(self) -> str:
        """The serialized form passed as the worker's only argument."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResolvedConfig":
        def descriptor(item: Mapping[str, Any]) -> PathDescriptor:
            return PathDescriptor(item["path"], namespace=item.get("namespace"))

        code = data.get("code")
        return cls(
            code=descriptor(code) if code else None,
            tests=[descriptor(t) for t in data.get("tests") or ()],
            deps=[descriptor(d) if isinstance(d, Mapping) else str(d) for d in data.get("deps") or ()],
            module_deps=data.get("module_deps") or (),
            namespace=data.get("namespace"),
            log=LogFlags.from_mapping(data.get("log")),
            coverage=bool(data.get("coverage")),
        )

    @classmethod
    def from_json(cls, payload: str) -> "ResolvedConfig":
        return cls.from_dict(json.loads(payload))


# --- Project file model ---
@define(frozen=True, slots=True)
class ProjectConfig:
    """Root object of a testfork project file."""

    defaults: RunConfiguration = field(factory=RunConfiguration)
    files: tuple[FileDescriptor, ...] = field(default=(), converter=tuple)
    source: Path | None = field(default=None)


# 🔼⚙️
