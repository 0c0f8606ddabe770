#
# src/testfork/runtime/__init__.py
#
"""
Runtime sub-package: worker supervision and run orchestration.
"""
from .completion import CompletionTracker
from .orchestrator import RunOrchestrator, RunOutcome, get_default_orchestrator, run, setup
from .supervisor import ProcessSupervisor, offset_debug_ports

__all__ = [
    "CompletionTracker",
    "ProcessSupervisor",
    "RunOrchestrator",
    "RunOutcome",
    "get_default_orchestrator",
    "offset_debug_ports",
    "run",
    "setup",
]

# 🔼⚙️
