#
# src/testfork/protocol.py
#
"""
Tagged messages exchanged between a worker process and its supervisor.

A worker writes one JSON object per line on its message channel:
`{"event": "<kind>", "data": {...}}`.
"""

import json
from enum import Enum
from typing import Any

from attrs import define, field

from testfork.exceptions import ProtocolError


class MessageKind(str, Enum):
    """The four kinds of message a worker can send."""

    ASSERTION_DONE = "assertionDone"
    TEST_DONE = "testDone"
    DONE = "done"
    UNCAUGHT_EXCEPTION = "uncaughtException"

    @property
    def is_terminal(self) -> bool:
        return self in (MessageKind.DONE, MessageKind.UNCAUGHT_EXCEPTION)


@define(frozen=True, slots=True)
class ProtocolMessage:
    kind: MessageKind = field(converter=MessageKind)
    data: dict[str, Any] = field(factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.kind.is_terminal

    def encode(self) -> str:
        """One line of the channel, newline included."""
        return json.dumps({"event": self.kind.value, "data": self.data}, default=str) + "\n"

    @classmethod
    def decode(cls, line: str | bytes) -> "ProtocolMessage | None":
        """
        Parses one channel line.

        Returns None for blank lines and for lines that are not JSON objects
        at all (stray output). Raises ProtocolError for objects that look like
        messages but are malformed.
        """
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.strip()
        if not line or not line.startswith("{"):
            return None

        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Malformed message: {e}", line=line) from e

        if not isinstance(raw, dict) or "event" not in raw:
            raise ProtocolError("Message has no 'event' field", line=line)
        try:
            kind = MessageKind(raw["event"])
        except ValueError as e:
            raise ProtocolError(f"Unknown event '{raw['event']}'", line=line) from e

        data = raw.get("data")
        if data is None:
            data = {}
        elif not isinstance(data, dict):
            raise ProtocolError(f"Payload of '{kind.value}' must be an object", line=line)
        return cls(kind, data)


# 🔼⚙️
