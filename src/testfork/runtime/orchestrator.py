# src/testfork/runtime/orchestrator.py

"""
High-level coordinator for a testfork run.
Resolves every file descriptor, supervises one worker per file and decides
when the batch is done.
"""

import asyncio
import itertools
import os
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeAlias

import structlog
from attrs import define, field
from rich.console import Console

from testfork.config import FileDescriptor, ResolvedConfig, RunConfiguration, resolve
from testfork.exceptions import DuplicateCompletionError, TestforkError
from testfork.reporting import CoverageAggregator, LogSink, RunStats
from testfork.runtime.completion import CompletionTracker
from testfork.runtime.supervisor import ProcessSupervisor
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.orchestrator")

Descriptor: TypeAlias = FileDescriptor | Mapping[str, Any] | str | os.PathLike
RunCallback: TypeAlias = Callable[[TestforkError | None, RunStats], None]
FileErrorCallback: TypeAlias = Callable[[int, TestforkError], None]


@define(frozen=True, slots=True)
class RunOutcome:
    """What a finished run produced."""

    stats: RunStats = field()
    error: TestforkError | None = field(default=None)
    errors: tuple[TestforkError, ...] = field(default=(), converter=tuple)
    completed: int = field(default=0)

    @property
    def ok(self) -> bool:
        return self.error is None and self.stats.ok


class _SingleFire:
    """Latches the first result of a batch; later results are logged and dropped."""

    def __init__(self, callback: RunCallback | None):
        self._callback = callback
        self.fired = False
        self.result: tuple[TestforkError | None, RunStats] | None = None

    def __call__(self, error: TestforkError | None, stats: RunStats) -> None:
        if self.fired:
            log.warning("Batch already reported; ignoring later result", error=str(error) if error else None)
            return
        self.fired = True
        self.result = (error, stats)
        if self._callback is not None:
            self._callback(error, stats)


def _as_descriptor_list(files: Descriptor | Iterable[Descriptor] | None) -> list[Descriptor]:
    if files is None:
        return []
    if isinstance(files, (FileDescriptor, Mapping, str, os.PathLike)):
        return [files]
    return list(files)


class RunOrchestrator:
    """Instantiates and coordinates the supervisor and collectors for test runs."""

    def __init__(
        self,
        config: RunConfiguration | None = None,
        sink: LogSink | None = None,
        coverage: CoverageAggregator | None = None,
        console: Console | None = None,
    ):
        self.config = config or RunConfiguration()
        self.console = console or (sink.console if sink else Console())
        self.sink = sink or LogSink(console=self.console)
        self.coverage = coverage or CoverageAggregator()
        # Shared by every run so concurrent runs never reuse a debugger port.
        self._spawn_counter = itertools.count(1)

    def setup(self, overrides: Mapping[str, Any] | FileDescriptor | None = None, **kwargs: Any) -> None:
        """Merges overrides into the defaults used by every subsequent run."""
        merged = dict(overrides.overrides() if isinstance(overrides, FileDescriptor) else overrides or {})
        merged.update(kwargs)
        self.config.update(merged)

    async def run(
        self,
        files: Descriptor | Iterable[Descriptor] | None,
        callback: RunCallback | None = None,
        on_file_error: FileErrorCallback | None = None,
    ) -> RunOutcome:
        """
        Runs every file in its own worker, all at once.

        `callback(error, stats)` fires exactly once: immediately on the first
        worker error, or after the last file completes. Every worker error is
        also passed to `on_file_error(index, error)`. Returns once all
        workers have terminated.
        """
        descriptors = [FileDescriptor.coerce(d) for d in _as_descriptor_list(files)]
        defaults = self.config.snapshot()
        finish = _SingleFire(callback)
        self.sink.reset()

        if not descriptors:
            log.info("Nothing to run.")
            finish(None, self.sink.stats())
            return RunOutcome(stats=self.sink.stats())

        wants_coverage = defaults.coverage or bool(descriptors[0].coverage)
        if wants_coverage:
            self.coverage.setup(True, report_path=defaults.coverage_report)

        resolved = [resolve(defaults, descriptor) for descriptor in descriptors]
        tracker = CompletionTracker(total=len(resolved))
        errors: list[TestforkError] = []
        supervisor = ProcessSupervisor(
            self.sink,
            self.coverage,
            console=self.console,
            launch_args=defaults.worker_args,
            spawn_counter=self._spawn_counter,
        )
        run_log = log.bind(files=len(resolved))
        run_log.info("Starting run", coverage=wants_coverage)

        def make_on_complete(index: int, config: ResolvedConfig):
            def on_complete(error: TestforkError | None, payload: dict[str, Any] | None) -> None:
                if error is not None:
                    errors.append(error)
                    if on_file_error is not None:
                        on_file_error(index, error)
                    finish(error, self.sink.stats())
                    return

                try:
                    all_done = tracker.mark(index)
                except DuplicateCompletionError:
                    run_log.error("Ignoring duplicate completion", file_index=index)
                    return

                run_log.debug("File completed", file_index=index, completed=tracker.completed_count)
                if all_done:
                    self._finalize(config)
                    finish(None, self.sink.stats())

            return on_complete

        await asyncio.gather(
            *(
                supervisor.run_one(config, index, make_on_complete(index, config))
                for index, config in enumerate(resolved)
            )
        )

        outcome = RunOutcome(
            stats=self.sink.stats(),
            error=errors[0] if errors else None,
            errors=errors,
            completed=tracker.completed_count,
        )
        run_log.info(
            "Run finished",
            completed=outcome.completed,
            errors=len(outcome.errors),
            failed=outcome.stats.failed,
            emoji="🎉" if outcome.ok else "🚫",
        )
        return outcome

    def _finalize(self, config: ResolvedConfig) -> None:
        """Prints every enabled log category and writes the coverage report."""
        self.sink.show_errors = config.log.errors
        for name, enabled in config.log.items():
            if enabled and self.sink.can_print(name):
                self.sink.print(name)

        if config.coverage:
            self.coverage.report()


_default_orchestrator: RunOrchestrator | None = None


def get_default_orchestrator() -> RunOrchestrator:
    """The shared orchestrator behind the module-level run() and setup()."""
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = RunOrchestrator()
    return _default_orchestrator


async def run(
    files: Descriptor | Iterable[Descriptor] | None,
    callback: RunCallback | None = None,
    on_file_error: FileErrorCallback | None = None,
) -> RunOutcome:
    return await get_default_orchestrator().run(files, callback, on_file_error)


def setup(overrides: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
    get_default_orchestrator().setup(overrides, **kwargs)

# 🔼⚙️
