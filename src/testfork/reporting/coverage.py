#
# src/testfork/reporting/coverage.py
#
"""
Cumulative coverage across the workers of one run.

A snapshot maps measured files to the line numbers that executed:
`{"files": {"/abs/code.py": [1, 2, 5]}}`.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger("reporting.coverage")


class CoverageAggregator:
    """Merges per-file coverage snapshots and writes the final report."""

    def __init__(self, report_path: Path | None = None):
        self.enabled = False
        self.report_path = report_path
        self._lines: dict[str, set[int]] = {}

    def setup(self, enabled: bool, report_path: Path | None = None) -> None:
        """Starts a new cumulative measurement."""
        self.enabled = bool(enabled)
        if report_path is not None:
            self.report_path = report_path
        self._lines = {}
        log.debug("Coverage aggregation set up", enabled=self.enabled, report_path=str(self.report_path))

    def add(self, snapshot: Mapping[str, Any] | None) -> None:
        """
        Unions the executed lines of a snapshot into the cumulative state.

        Raises:
            TypeError, ValueError: if the snapshot does not have the snapshot
                shape. Nothing is merged in that case.
        """
        if not snapshot:
            return
        if not isinstance(snapshot, Mapping):
            raise TypeError(f"Coverage snapshot must be an object, got {type(snapshot).__name__}")
        files = snapshot.get("files") or {}
        if not isinstance(files, Mapping):
            raise TypeError(f"Coverage 'files' must be an object, got {type(files).__name__}")

        incoming = {str(path): {int(line) for line in lines} for path, lines in files.items()}
        for path, lines in incoming.items():
            self._lines.setdefault(path, set()).update(lines)
        log.debug("Coverage snapshot merged", files=len(incoming), total_files=len(self._lines))

    def get(self) -> dict[str, Any]:
        """An independent copy of the cumulative snapshot."""
        files = {path: sorted(lines) for path, lines in sorted(self._lines.items())}
        return {
            "files": files,
            "lines": sum(len(lines) for lines in files.values()),
        }

    def report(self) -> dict[str, Any]:
        """Emits the final report and returns the cumulative snapshot it describes."""
        snapshot = self.get()
        log.info("Coverage report", files=len(snapshot["files"]), lines=snapshot["lines"])

        if self.report_path is not None:
            self.report_path.parent.mkdir(parents=True, exist_ok=True)
            self.report_path.write_text(json.dumps(snapshot, indent=2, sort_keys=True), encoding="utf-8")
            log.info("Coverage report written", path=str(self.report_path))
        return snapshot

# 🔼⚙️
