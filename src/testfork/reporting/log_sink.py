#
# src/testfork/reporting/log_sink.py
#
"""
Collects the records workers report and renders them once a run finishes.
"""

from collections.abc import Callable, Mapping
from typing import Any

import structlog
from attrs import define, field
from rich.console import Console
from rich.markup import escape
from rich.table import Table

log = structlog.get_logger("reporting.log_sink")

CATEGORIES = ("assertions", "tests", "summaries", "coverages")


@define(frozen=True, slots=True)
class RunStats:
    """Aggregate statistics over every file of a run."""

    files: int = field(default=0)
    tests: int = field(default=0)
    assertions: int = field(default=0)
    passed: int = field(default=0)
    failed: int = field(default=0)
    runtime: int = field(default=0)  # milliseconds, summed over workers

    @property
    def ok(self) -> bool:
        return self.failed == 0


def _count(record: Mapping[str, Any], key: str) -> int:
    value = record.get(key, 0)
    return value if isinstance(value, int) else 0


def _cell(record: Mapping[str, Any], key: str) -> str:
    # Worker text is shown literally, never parsed as rich markup.
    return escape(str(record.get(key, "")))


class LogSink:
    """Per-category record store with one printer per log flag."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.records: dict[str, list[dict[str, Any]]] = {name: [] for name in CATEGORIES}
        self._printers: dict[str, Callable[[], None]] = {
            "assertions": self.print_assertions,
            "tests": self.print_tests,
            "summary": self.print_summary,
            "global_summary": self.print_global_summary,
            "coverage": self.print_coverage,
            "global_coverage": self.print_global_coverage,
        }
        self.show_errors = True

    def reset(self) -> None:
        for records in self.records.values():
            records.clear()

    def add(self, category: str, record: Mapping[str, Any]) -> None:
        if category not in self.records:
            raise ValueError(f"Unknown log category '{category}'. Available categories: {list(CATEGORIES)}")
        self.records[category].append(dict(record))

    def stats(self) -> RunStats:
        summaries = self.records["summaries"]
        if not summaries:
            # Nothing finished yet; count what has streamed in so far.
            assertions = self.records["assertions"]
            failed = sum(1 for record in assertions if not record.get("result"))
            return RunStats(
                files=0,
                tests=len(self.records["tests"]),
                assertions=len(assertions),
                passed=len(assertions) - failed,
                failed=failed,
            )
        return RunStats(
            files=len(summaries),
            tests=sum(_count(s, "tests") for s in summaries),
            assertions=sum(_count(s, "assertions") for s in summaries),
            passed=sum(_count(s, "passed") for s in summaries),
            failed=sum(_count(s, "failed") for s in summaries),
            runtime=sum(_count(s, "runtime") for s in summaries),
        )

    # --- Printers ---

    def can_print(self, flag: str) -> bool:
        return flag in self._printers

    def print(self, flag: str) -> None:
        printer = self._printers.get(flag)
        if printer is None:
            log.debug("No printer for log flag", flag=flag)
            return
        printer()

    def print_assertions(self) -> None:
        table = Table(title="Assertions", show_lines=False)
        table.add_column("Module")
        table.add_column("Test")
        table.add_column("Result")
        table.add_column("Message", overflow="fold")
        for record in self.records["assertions"]:
            passed = bool(record.get("result"))
            message = escape(str(record.get("message") or ""))
            if not passed and self.show_errors and ("expected" in record or "actual" in record):
                message += escape(f"\nexpected: {record.get('expected')!r}\nactual: {record.get('actual')!r}")
            table.add_row(
                _cell(record, "module"),
                _cell(record, "test"),
                "[green]ok[/]" if passed else "[bold red]failed[/]",
                message,
            )
        self.console.print(table)

    def print_tests(self) -> None:
        table = Table(title="Tests")
        table.add_column("Module")
        table.add_column("Test")
        table.add_column("Passed", justify="right")
        table.add_column("Failed", justify="right")
        for record in self.records["tests"]:
            failed = _count(record, "failed")
            table.add_row(
                _cell(record, "module"),
                _cell(record, "name"),
                str(_count(record, "passed")),
                f"[bold red]{failed}[/]" if failed else "0",
            )
        self.console.print(table)

    def print_summary(self) -> None:
        table = Table(title="Summary")
        table.add_column("Code", overflow="fold")
        table.add_column("Tests", justify="right")
        table.add_column("Assertions", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Runtime (ms)", justify="right")
        for record in self.records["summaries"]:
            table.add_row(
                _cell(record, "code"),
                str(_count(record, "tests")),
                str(_count(record, "assertions")),
                str(_count(record, "failed")),
                str(_count(record, "runtime")),
            )
        self.console.print(table)

    def print_global_summary(self) -> None:
        stats = self.stats()
        style = "bold green" if stats.ok else "bold red"
        self.console.print(
            f"[{style}]Files: {stats.files}, Tests: {stats.tests}, Assertions: {stats.assertions}, "
            f"Passed: {stats.passed}, Failed: {stats.failed}[/] ({stats.runtime} ms)"
        )

    def print_coverage(self) -> None:
        table = Table(title="Coverage")
        table.add_column("Code", overflow="fold")
        table.add_column("Files", justify="right")
        table.add_column("Lines executed", justify="right")
        for record in self.records["coverages"]:
            table.add_row(
                _cell(record, "code"),
                str(len(record.get("files") or {})),
                str(_count(record, "lines")),
            )
        self.console.print(table)

    def print_global_coverage(self) -> None:
        coverages = self.records["coverages"]
        if not coverages:
            return
        # Each record carries the cumulative snapshot up to that point.
        cumulative = coverages[-1]
        table = Table(title="Global coverage")
        table.add_column("File", overflow="fold")
        table.add_column("Lines executed", justify="right")
        for path, lines in (cumulative.get("files") or {}).items():
            table.add_row(escape(str(path)), str(len(lines)))
        self.console.print(table)

# 🔼⚙️
