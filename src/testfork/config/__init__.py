#
# config/__init__.py
#
"""
Configuration handling sub-package for testfork.

Exports the loading function, the resolver and the core configuration models.
"""

from .loader import load_config
from .models import (
    NO_CODE_LABEL,
    FileDescriptor,
    LogFlags,
    ProjectConfig,
    ResolvedConfig,
    RunConfiguration,
)
from .paths import PathDescriptor, abs_path, abs_paths
from .resolver import resolve, resolve_all

__all__ = [
    "NO_CODE_LABEL",
    "FileDescriptor",
    "LogFlags",
    "PathDescriptor",
    "ProjectConfig",
    "ResolvedConfig",
    "RunConfiguration",
    "abs_path",
    "abs_paths",
    "load_config",
    "resolve",
    "resolve_all",
]

# 🔼⚙️
