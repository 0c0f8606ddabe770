# src/testfork/runtime/supervisor.py

"""
Spawns one worker process per resolved configuration and routes its messages.
"""

import asyncio
import itertools
import os
import re
import sys
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any, TypeAlias

import structlog
from rich.console import Console
from rich.markup import escape

from testfork.config.models import ResolvedConfig
from testfork.exceptions import (
    ProtocolError,
    TestforkError,
    WorkerCrashedError,
    WorkerSpawnError,
    WorkerUncaughtError,
)
from testfork.protocol import MessageKind, ProtocolMessage
from testfork.reporting import CoverageAggregator, LogSink
from testfork.state import WorkerHandle, WorkerStatus
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.supervisor")

OnComplete: TypeAlias = Callable[[TestforkError | None, dict[str, Any] | None], None]

DEFAULT_WORKER_MODULE = "testfork.worker"
# Coverage snapshots travel as single lines; the asyncio default of 64 KiB is too small.
CHANNEL_LINE_LIMIT = 16 * 1024 * 1024

# Flags that carry a debugger port: `--debug-brk=9229`, `--listen 5678`, `--listen=localhost:5678`.
DEBUG_PORT_FLAGS = ("--debug-brk", "--listen")
_INLINE_PORT_RE = re.compile(r"^(?P<flag>--debug-brk|--listen)=(?P<address>\S+)$")


def _shift_port(address: str, offset: int) -> str:
    host, sep, port = address.rpartition(":")
    if not port.isdigit():
        return address
    return f"{host}{sep}{int(port) + offset}"


def offset_debug_ports(args: Sequence[str], offset: int) -> list[str]:
    """Returns a new argument list with every debugger port moved up by `offset`."""
    shifted: list[str] = []
    expects_port = False
    for arg in args:
        if expects_port:
            shifted.append(_shift_port(arg, offset))
            expects_port = False
            continue
        match = _INLINE_PORT_RE.match(arg)
        if match:
            shifted.append(f"{match['flag']}={_shift_port(match['address'], offset)}")
        else:
            shifted.append(arg)
            expects_port = arg in DEBUG_PORT_FLAGS
    return shifted


class ProcessSupervisor:
    """Owns the worker processes of a run, from spawn until they are killed."""

    def __init__(
        self,
        sink: LogSink,
        coverage: CoverageAggregator,
        console: Console | None = None,
        launch_args: Iterable[str] = (),
        worker_module: str = DEFAULT_WORKER_MODULE,
        spawn_counter: Iterator[int] | None = None,
    ):
        self.sink = sink
        self.coverage = coverage
        self.console = console or sink.console
        self.launch_args: tuple[str, ...] = tuple(launch_args)
        self.worker_module = worker_module
        self.handles: dict[int, WorkerHandle] = {}
        self._spawn_counter = spawn_counter if spawn_counter is not None else itertools.count(1)

    def next_launch_args(self) -> list[str]:
        """
        Interpreter arguments for the next spawn.

        Every spawn gets its own debugger port so that workers inheriting a
        debug flag do not collide: the first spawn gets base port + 1, the
        second + 2, and so on. Supervisors sharing a `spawn_counter` never hand
        out the same port twice. The base arguments are never modified.
        """
        return offset_debug_ports(self.launch_args, next(self._spawn_counter))

    async def run_one(self, config: ResolvedConfig, index: int, on_complete: OnComplete) -> None:
        """
        Runs one worker to completion.

        `on_complete` is called at most once: `(None, payload)` after `done`,
        or `(error, None)` for an uncaught exception, a crash, a protocol
        violation or a failed spawn.
        """
        code = config.code_label
        worker_log = log.bind(file_index=index, code=code)
        handle = WorkerHandle(file_index=index, code_label=code)
        self.handles[index] = handle

        if config.log.testing and config.code:
            self.console.print(f"\nTesting {escape(config.code.path)} ... ", end="")

        launch_args = self.next_launch_args()
        command = [sys.executable, *launch_args, "-m", self.worker_module, config.to_json()]
        worker_log.debug("Spawning worker", launch_args=launch_args)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
                limit=CHANNEL_LINE_LIMIT,
            )
        except OSError as e:
            worker_log.error("Failed to spawn worker", error=str(e))
            handle.update_status(WorkerStatus.FAILED)
            on_complete(WorkerSpawnError(f"Could not start worker: {e}", file_index=index, code=code), None)
            return

        handle.attach(process)
        worker_log.info("Worker started", pid=process.pid)

        try:
            terminated = await self._consume(process, config, handle, on_complete, worker_log)
            if not terminated:
                exit_code = await process.wait()
                handle.update_status(WorkerStatus.FAILED)
                worker_log.error("Worker exited without reporting a result", exit_code=exit_code)
                on_complete(
                    WorkerCrashedError(
                        f"Worker exited with code {exit_code} before sending 'done'",
                        exit_code=exit_code,
                        file_index=index,
                        code=code,
                    ),
                    None,
                )
        except asyncio.CancelledError:
            worker_log.warning("Worker supervision cancelled")
            raise
        finally:
            handle.kill()
            await process.wait()
            worker_log.debug("Worker reaped", exit_code=process.returncode)

    async def _consume(
        self,
        process: asyncio.subprocess.Process,
        config: ResolvedConfig,
        handle: WorkerHandle,
        on_complete: OnComplete,
        worker_log: Any,
    ) -> bool:
        """Reads the channel until a terminal message; False if it ended without one."""
        assert process.stdout is not None
        while True:
            try:
                line = await process.stdout.readline()
            except ValueError:
                error = ProtocolError(f"Worker message exceeds the {CHANNEL_LINE_LIMIT} byte line limit")
                self._reject(error, handle, on_complete, worker_log)
                return True
            if not line:
                return False

            try:
                message = ProtocolMessage.decode(line)
            except ProtocolError as e:
                self._reject(e, handle, on_complete, worker_log)
                return True

            if message is None:
                worker_log.debug("Ignoring non-protocol output", line=line.decode("utf-8", errors="replace").rstrip())
                continue

            self._route(message, config, handle, on_complete, worker_log)
            if message.is_terminal:
                handle.kill()
                return True

    def _reject(
        self,
        error: ProtocolError,
        handle: WorkerHandle,
        on_complete: OnComplete,
        worker_log: Any,
    ) -> None:
        worker_log.error("Worker violated the message protocol", error=str(error), line=error.line)
        handle.update_status(WorkerStatus.FAILED)
        on_complete(error, None)
        handle.kill()

    def _route(
        self,
        message: ProtocolMessage,
        config: ResolvedConfig,
        handle: WorkerHandle,
        on_complete: OnComplete,
        worker_log: Any,
    ) -> None:
        if message.kind is MessageKind.ASSERTION_DONE:
            self.sink.add("assertions", message.data)
        elif message.kind is MessageKind.TEST_DONE:
            self.sink.add("tests", message.data)
        elif message.kind is MessageKind.DONE:
            self._on_done(message, config, handle, on_complete, worker_log)
        elif message.kind is MessageKind.UNCAUGHT_EXCEPTION:
            handle.update_status(WorkerStatus.FAILED)
            error = WorkerUncaughtError.from_payload(message.data, file_index=handle.file_index, code=handle.code_label)
            worker_log.error("Uncaught exception in worker", error=str(error))
            on_complete(error, None)

    def _on_done(
        self,
        message: ProtocolMessage,
        config: ResolvedConfig,
        handle: WorkerHandle,
        on_complete: OnComplete,
        worker_log: Any,
    ) -> None:
        payload = dict(message.data)
        payload["code"] = config.code_label

        # Coverage is merged first: a malformed snapshot leaves no partial records behind.
        if config.coverage:
            try:
                self.coverage.add(payload.get("coverage"))
            except (TypeError, ValueError) as e:
                error = ProtocolError(f"Malformed coverage in 'done': {e}", line=message.encode().rstrip("\n"))
                self._reject(error, handle, on_complete, worker_log)
                return
            merged = self.coverage.get()
            merged["code"] = payload["code"]
            payload["coverage"] = merged

        self.sink.add("summaries", payload)
        if config.coverage:
            self.sink.add("coverages", payload["coverage"])

        if config.log.testing:
            self.console.print("done")

        handle.update_status(WorkerStatus.DONE)
        worker_log.info(
            "Worker finished",
            tests=payload.get("tests"),
            failed=payload.get("failed"),
            emoji="🎉",
        )
        on_complete(None, payload)

# 🔼⚙️
