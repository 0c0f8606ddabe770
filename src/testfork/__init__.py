#
# src/testfork/__init__.py
#
"""
testfork: runs test files in isolated worker processes and aggregates their results.
"""
from importlib.metadata import PackageNotFoundError, version

from testfork.config import FileDescriptor, LogFlags, RunConfiguration
from testfork.reporting import RunStats
from testfork.runtime import RunOrchestrator, RunOutcome, run, setup

try:
    __version__ = version("testfork")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "FileDescriptor",
    "LogFlags",
    "RunConfiguration",
    "RunOrchestrator",
    "RunOutcome",
    "RunStats",
    "__version__",
    "run",
    "setup",
]
