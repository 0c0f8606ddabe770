#
# src/testfork/telemetry/__init__.py
#
"""
Logging setup for testfork, built on structlog.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
