#
# src/testfork/worker/__init__.py
#
"""
The worker process: `python -m testfork.worker '<resolved config as JSON>'`.
"""
from .channel import MessageChannel
from .executor import TestExecutor

__all__ = ["MessageChannel", "TestExecutor"]

# 🔼⚙️
