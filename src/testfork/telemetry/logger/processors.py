# src/testfork/telemetry/logger/processors.py

"""
Custom structlog processors used by the testfork logging pipeline.
"""

import logging

from structlog.typing import EventDict, WrappedLogger

LEVEL_EMOJIS: dict[str, str] = {
    "debug": "🐛",
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "❌",
    "critical": "💥",
}

# Keys that callers may set to steer rendering but that should not be printed.
_INTERNAL_KEYS = ("emoji", "emoji_key")


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event with an emoji for its level, or the one passed as `emoji=`."""
    emoji = event_dict.get("emoji")
    if emoji is None:
        level = event_dict.get("level", method_name)
        if isinstance(level, int):
            level = logging.getLevelName(level)
        emoji = LEVEL_EMOJIS.get(str(level).lower(), "➡️")
    event = event_dict.get("event")
    if isinstance(event, str):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drops rendering hints so they never reach the output."""
    for key in _INTERNAL_KEYS:
        event_dict.pop(key, None)
    return event_dict


__all__ = ["add_emoji_processor", "remove_extra_keys_processor"]

# 🔼⚙️
