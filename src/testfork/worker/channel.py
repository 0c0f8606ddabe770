# src/testfork/worker/channel.py
"""
The worker's end of the message channel.
"""

import os
import sys
from typing import Any, TextIO

from testfork.protocol import MessageKind, ProtocolMessage


class MessageChannel:
    """Writes protocol messages, one JSON line each, to the supervisor."""

    def __init__(self, stream: TextIO):
        self._stream = stream

    @classmethod
    def claim_stdout(cls) -> "MessageChannel":
        """
        Takes the process's stdout for messages and points fd 1 at stderr.

        Output from the code under test (print, C extensions) then lands on
        stderr and can never interleave with protocol lines.
        """
        sys.stdout.flush()
        channel_fd = os.dup(1)
        os.dup2(2, 1)
        stream = os.fdopen(channel_fd, "w", encoding="utf-8", buffering=1)
        return cls(stream)

    def send(self, kind: MessageKind, data: dict[str, Any] | None = None) -> None:
        self._stream.write(ProtocolMessage(kind, data or {}).encode())
        self._stream.flush()

    def close(self) -> None:
        self._stream.close()
