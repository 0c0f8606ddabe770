# src/testfork/state.py
#
"""
Defines the lifecycle state of supervised worker processes.
"""

import atexit
from enum import Enum, auto
from typing import Any

import structlog
from attrs import field, mutable

log: structlog.stdlib.BoundLogger = structlog.get_logger("state")


class WorkerStatus(Enum):
    """Enumeration of the states a worker process moves through."""

    STARTING = auto()  # Spawn requested, process not yet running.
    RUNNING = auto()  # Process alive, messages streaming.
    DONE = auto()  # Sent its `done` message.
    FAILED = auto()  # Uncaught exception, crash or protocol violation.
    KILLED = auto()  # Kill signal sent; terminal.


STATUS_EMOJI_MAP = {
    WorkerStatus.STARTING: "⏳",
    WorkerStatus.RUNNING: "🔄",
    WorkerStatus.DONE: "✅",
    WorkerStatus.FAILED: "❌",
    WorkerStatus.KILLED: "⏹️",
}


@mutable(slots=True, eq=False)
class WorkerHandle:
    """
    Owns one live worker process from spawn until it is killed.

    The process is killed on the first of: a terminal message, the end of
    its message channel, cancellation of the supervising task, or exit of
    the supervising interpreter. `kill()` unregisters the exit handler
    before signalling, so the process is signalled exactly once whichever
    trigger fires first.
    """

    file_index: int = field()
    code_label: str = field()
    process: Any = field(default=None, repr=False)  # asyncio.subprocess.Process
    status: WorkerStatus = field(default=WorkerStatus.STARTING)
    kill_count: int = field(default=0)
    _armed: bool = field(default=False, init=False, repr=False)

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    @property
    def is_killed(self) -> bool:
        return self.kill_count > 0

    def attach(self, process: Any) -> None:
        """Takes ownership of a freshly spawned process and arms the exit handler."""
        self.process = process
        self.update_status(WorkerStatus.RUNNING)
        atexit.register(self.kill)
        self._armed = True

    def update_status(self, new_status: WorkerStatus) -> None:
        old_status = self.status
        if old_status == new_status or old_status == WorkerStatus.KILLED:
            return
        self.status = new_status
        log.debug(
            "Worker status changed",
            file_index=self.file_index,
            code=self.code_label,
            old_status=old_status.name,
            new_status=new_status.name,
            emoji=STATUS_EMOJI_MAP[new_status],
        )

    def kill(self) -> None:
        """Sends the one and only kill signal to the worker. Later calls do nothing."""
        if self.is_killed or self.process is None:
            return
        if self._armed:
            atexit.unregister(self.kill)
            self._armed = False

        self.kill_count += 1
        try:
            self.process.kill()
        except ProcessLookupError:
            # Already exited on its own; nothing left to signal.
            log.debug("Worker already exited before kill", file_index=self.file_index, pid=self.pid)
        self.update_status(WorkerStatus.KILLED)
        log.debug("Worker killed", file_index=self.file_index, code=self.code_label, pid=self.pid)

# 🔼⚙️
