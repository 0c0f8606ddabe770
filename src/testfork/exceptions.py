#
# src/testfork/exceptions.py
#
"""
Custom exceptions for testfork.
"""

from collections.abc import Mapping
from typing import Any


class TestforkError(Exception):
    """Base class for all testfork errors."""

    __test__ = False


class ConfigurationError(TestforkError):
    """Raised when a project configuration file cannot be loaded or validated."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        full_message = message
        if path:
            full_message += f" (Config: '{path}')"
        super().__init__(full_message)


class ProtocolError(TestforkError):
    """A worker wrote something on its message channel that is not a valid message."""

    def __init__(self, message: str, line: str | None = None):
        self.line = line
        super().__init__(message)


class WorkerError(TestforkError):
    """Base class for failures of a single worker process."""

    def __init__(
        self,
        message: str,
        file_index: int | None = None,
        code: str | None = None,
    ):
        self.file_index = file_index
        self.code = code
        full_message = f"[Worker] {message}"
        if code:
            full_message += f" (Code: '{code}')"
        super().__init__(full_message)


class WorkerSpawnError(WorkerError):
    """The worker process could not be started."""

    pass


class WorkerCrashedError(WorkerError):
    """The worker closed its channel without sending a terminal message."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        file_index: int | None = None,
        code: str | None = None,
    ):
        self.exit_code = exit_code
        super().__init__(message, file_index=file_index, code=code)


class WorkerUncaughtError(WorkerError):
    """An exception escaped the test run inside the worker."""

    def __init__(
        self,
        message: str,
        remote_name: str | None = None,
        remote_stack: str | None = None,
        payload: Mapping[str, Any] | None = None,
        file_index: int | None = None,
        code: str | None = None,
    ):
        self.remote_name = remote_name
        self.remote_stack = remote_stack
        self.payload = dict(payload or {})
        super().__init__(message, file_index=file_index, code=code)
        if remote_stack and hasattr(self, "add_note"):
            self.add_note(f"Worker traceback:\n{remote_stack}")

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any] | None,
        file_index: int | None = None,
        code: str | None = None,
    ) -> "WorkerUncaughtError":
        """Builds the error from the error-like record of an uncaughtException message."""
        payload = payload or {}
        name = payload.get("name")
        message = str(payload.get("message") or "Uncaught exception in worker")
        if name:
            message = f"{name}: {message}"
        return cls(
            message,
            remote_name=name,
            remote_stack=payload.get("stack"),
            payload=payload,
            file_index=file_index,
            code=code,
        )


class DuplicateCompletionError(TestforkError):
    """A descriptor reported completion more than once in the same run."""

    def __init__(self, file_index: int):
        self.file_index = file_index
        super().__init__(f"File descriptor #{file_index} completed more than once.")


# 🔼⚙️
