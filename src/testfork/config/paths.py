#
# src/testfork/config/paths.py
#
"""
Conversion of relative test, dependency and code paths into absolute path descriptors.
"""

import os
from collections.abc import Iterable, Mapping
from typing import Any, TypeAlias

from attrs import define, field


@define(frozen=True, slots=True)
class PathDescriptor:
    """A file handed to a worker, optionally attached to a global namespace."""

    path: str = field()
    namespace: str | None = field(default=None, kw_only=True)

    @property
    def is_absolute(self) -> bool:
        return os.path.isabs(self.path)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path}
        if self.namespace is not None:
            data["namespace"] = self.namespace
        return data


PathLike: TypeAlias = str | os.PathLike | PathDescriptor | Mapping[str, Any]


def abs_path(file: PathLike | None) -> PathDescriptor | None:
    """
    Make an absolute path descriptor from a path string or a descriptor.

    Returns None for absent input. Relative paths are resolved against the
    current working directory; absolute ones are kept as given.
    """
    if not file:
        return None

    if isinstance(file, PathDescriptor):
        descriptor = file
    elif isinstance(file, Mapping):
        descriptor = PathDescriptor(os.fspath(file["path"]), namespace=file.get("namespace"))
    else:
        descriptor = PathDescriptor(os.fspath(file))

    if descriptor.is_absolute:
        return descriptor
    return PathDescriptor(
        os.path.normpath(os.path.join(os.getcwd(), descriptor.path)),
        namespace=descriptor.namespace,
    )


def abs_paths(files: PathLike | Iterable[PathLike] | None) -> list[PathDescriptor]:
    """Convert a path or a sequence of paths to a list of absolute path descriptors."""
    if not files:
        return []
    if isinstance(files, (str, os.PathLike, PathDescriptor, Mapping)):
        files = [files]
    return [descriptor for descriptor in map(abs_path, files) if descriptor is not None]

# 🔼⚙️
