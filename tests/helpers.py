# tests/helpers.py

"""Test doubles and helpers shared by the unit tests."""

import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

from testfork.protocol import MessageKind, ProtocolMessage


class FakeProcess:
    """Stands in for asyncio.subprocess.Process; messages are fed by the test."""

    def __init__(self, pid: int = 4242, exit_code: int = 0):
        self.pid = pid
        self.returncode: int | None = None
        self.stdout = asyncio.StreamReader()
        self.kill = MagicMock(side_effect=self._on_kill)
        self._exit_code = exit_code

    def _on_kill(self) -> None:
        if self.returncode is None:
            self.returncode = -9

    async def wait(self) -> int:
        if self.returncode is None:
            self.returncode = self._exit_code
        return self.returncode

    def send(self, kind: MessageKind, data: dict[str, Any] | None = None) -> None:
        self.stdout.feed_data(ProtocolMessage(kind, data or {}).encode().encode("utf-8"))

    def write_raw(self, line: str) -> None:
        self.stdout.feed_data(line.encode("utf-8"))

    def close(self) -> None:
        self.stdout.feed_eof()

    def finish(self, data: dict[str, Any] | None = None) -> None:
        self.send(MessageKind.DONE, data if data is not None else done_payload())
        self.close()


def done_payload(tests: int = 1, failed: int = 0, runtime: int = 5, coverage: dict | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "files": 1,
        "tests": tests,
        "assertions": tests,
        "passed": tests - failed,
        "failed": failed,
        "runtime": runtime,
    }
    if coverage is not None:
        payload["coverage"] = coverage
    return payload


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yields to the event loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached before timeout")
        await asyncio.sleep(0.01)
