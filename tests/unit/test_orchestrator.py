# tests/unit/test_orchestrator.py

"""Unit tests for the RunOrchestrator component."""

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from helpers import FakeProcess, done_payload, wait_until
from rich.console import Console

from testfork.config import LogFlags, RunConfiguration
from testfork.exceptions import ProtocolError, WorkerUncaughtError
from testfork.protocol import MessageKind
from testfork.reporting import CoverageAggregator, LogSink, RunStats
from testfork.runtime import orchestrator as orchestrator_module
from testfork.runtime.orchestrator import RunOrchestrator

SPAWN = "testfork.runtime.supervisor.asyncio.create_subprocess_exec"


@pytest.fixture
def orchestrator(quiet_config: RunConfiguration, console: Console) -> RunOrchestrator:
    return RunOrchestrator(config=quiet_config, console=console)


def finished_processes(count: int, **payload) -> list[FakeProcess]:
    processes = [FakeProcess(pid=100 + i) for i in range(count)]
    for process in processes:
        process.finish(done_payload(**payload))
    return processes


@pytest.mark.asyncio
class TestRun:
    async def test_callback_fires_once_after_all_files(self, orchestrator: RunOrchestrator):
        processes = finished_processes(3, tests=2)
        callback = MagicMock()

        with patch(SPAWN, AsyncMock(side_effect=processes)) as mock_spawn:
            outcome = await orchestrator.run([{"tests": "/t1.py"}, {"tests": "/t2.py"}, {"tests": "/t3.py"}], callback)

        assert mock_spawn.await_count == 3
        callback.assert_called_once()
        error, stats = callback.call_args.args
        assert error is None
        assert stats == RunStats(files=3, tests=6, assertions=6, passed=6, failed=0, runtime=15)
        assert outcome.ok
        assert outcome.completed == 3
        for process in processes:
            process.kill.assert_called_once()

    async def test_single_descriptor_is_accepted(self, orchestrator: RunOrchestrator):
        with patch(SPAWN, AsyncMock(side_effect=finished_processes(1))):
            outcome = await orchestrator.run({"tests": "/t.py"})
        assert outcome.stats.files == 1

    async def test_callback_waits_for_the_last_file(self, orchestrator: RunOrchestrator):
        first, second = FakeProcess(), FakeProcess()
        callback = MagicMock()

        with patch(SPAWN, AsyncMock(side_effect=[first, second])) as mock_spawn:
            task = asyncio.create_task(orchestrator.run(["/t1.py", "/t2.py"], callback))
            await wait_until(lambda: mock_spawn.await_count == 2)
            first.finish()
            await wait_until(lambda: first.kill.called)
            callback.assert_not_called()
            second.finish()
            await task

        callback.assert_called_once()

    async def test_error_short_circuits_without_stopping_siblings(self, orchestrator: RunOrchestrator):
        processes = [FakeProcess(pid=1), FakeProcess(pid=2), FakeProcess(pid=3)]
        calls: list[tuple] = []
        file_errors: list[tuple] = []

        with patch(SPAWN, AsyncMock(side_effect=processes)) as mock_spawn:
            task = asyncio.create_task(
                orchestrator.run(
                    ["/t1.py", "/t2.py", "/t3.py"],
                    lambda error, stats: calls.append((error, stats)),
                    on_file_error=lambda index, error: file_errors.append((index, error)),
                )
            )
            await wait_until(lambda: mock_spawn.await_count == 3)
            processes[0].finish()
            processes[1].send(MessageKind.UNCAUGHT_EXCEPTION, {"name": "RuntimeError", "message": "boom"})

            await wait_until(lambda: bool(calls))
            assert isinstance(calls[0][0], WorkerUncaughtError)
            assert not task.done()

            processes[2].finish()
            outcome = await task

        assert len(calls) == 1
        assert [index for index, _ in file_errors] == [1]
        assert outcome.completed == 2
        assert outcome.error is calls[0][0]
        assert outcome.stats.files == 2
        for process in processes:
            process.kill.assert_called_once()

    async def test_later_errors_do_not_refire_callback(self, orchestrator: RunOrchestrator):
        processes = [FakeProcess(), FakeProcess()]
        for process in processes:
            process.send(MessageKind.UNCAUGHT_EXCEPTION, {"message": "boom"})
        callback = MagicMock()
        on_file_error = MagicMock()

        with patch(SPAWN, AsyncMock(side_effect=processes)):
            outcome = await orchestrator.run(["/t1.py", "/t2.py"], callback, on_file_error)

        callback.assert_called_once()
        assert on_file_error.call_count == 2
        assert len(outcome.errors) == 2
        assert not outcome.ok

    async def test_empty_batch_completes_immediately(self, orchestrator: RunOrchestrator):
        callback = MagicMock()
        with patch(SPAWN, AsyncMock()) as mock_spawn:
            outcome = await orchestrator.run([], callback)

        mock_spawn.assert_not_called()
        callback.assert_called_once_with(None, RunStats())
        assert outcome.completed == 0

    async def test_aggregate_state_is_per_run(self, orchestrator: RunOrchestrator):
        with patch(SPAWN, AsyncMock(side_effect=finished_processes(2))):
            await orchestrator.run(["/t1.py", "/t2.py"])
        with patch(SPAWN, AsyncMock(side_effect=finished_processes(1))):
            outcome = await orchestrator.run(["/t1.py"])

        assert outcome.stats.files == 1

    async def test_final_report_prints_enabled_categories(self, console: Console, console_output: io.StringIO):
        sink = LogSink(console=console)
        sink.print_summary = MagicMock()
        sink.print_global_summary = MagicMock()
        sink._printers["summary"] = sink.print_summary
        sink._printers["global_summary"] = sink.print_global_summary
        config = RunConfiguration(log=LogFlags.from_mapping({"global_summary": True, "testing": False}))
        orchestrator = RunOrchestrator(config=config, sink=sink)

        with patch(SPAWN, AsyncMock(side_effect=finished_processes(2))):
            await orchestrator.run(["/t1.py", "/t2.py"])

        sink.print_global_summary.assert_called_once()
        sink.print_summary.assert_not_called()

    async def test_coverage_is_set_up_merged_and_reported(self, quiet_config: RunConfiguration, console: Console):
        coverage = CoverageAggregator()
        coverage.report = MagicMock(wraps=coverage.report)
        quiet_config.update({"coverage": True})
        orchestrator = RunOrchestrator(config=quiet_config, coverage=coverage, console=console)
        processes = [FakeProcess(), FakeProcess()]
        processes[0].finish(done_payload(coverage={"files": {"/a.py": [1, 2, 3, 4, 5]}}))
        processes[1].finish(done_payload(coverage={"files": {"/a.py": [5, 6, 7]}}))

        with patch(SPAWN, AsyncMock(side_effect=processes)):
            await orchestrator.run([{"code": "/a.py", "tests": "/t1.py"}, {"code": "/a.py", "tests": "/t2.py"}])

        coverage.report.assert_called_once()
        assert coverage.get() == {"files": {"/a.py": [1, 2, 3, 4, 5, 6, 7]}, "lines": 7}
        assert [record["code"] for record in orchestrator.sink.records["coverages"]] == ["/a.py", "/a.py"]

    async def test_bracketed_worker_text_does_not_break_the_report(
        self, quiet_config: RunConfiguration, console: Console, console_output: io.StringIO
    ):
        quiet_config.update({"log": {"assertions": True, "summary": True}})
        orchestrator = RunOrchestrator(config=quiet_config, console=console)
        process = FakeProcess()
        process.send(MessageKind.ASSERTION_DONE, {"module": "m", "test": "t", "result": False, "message": "missing dir [/tmp]"})
        process.finish(done_payload(failed=1))
        callback = MagicMock()

        with patch(SPAWN, AsyncMock(return_value=process)):
            outcome = await orchestrator.run([{"code": "/x/[red]/calc.py", "tests": "/t.py"}], callback)

        callback.assert_called_once()
        assert outcome.error is None
        output = console_output.getvalue()
        assert "missing dir [/tmp]" in output
        assert "/x/[red]/calc.py" in output

    async def test_malformed_done_still_completes_the_batch(self, quiet_config: RunConfiguration, console: Console):
        quiet_config.update({"coverage": True})
        orchestrator = RunOrchestrator(config=quiet_config, console=console)
        bad, good = FakeProcess(pid=1), FakeProcess(pid=2)
        bad.finish(done_payload(coverage={"files": {"/x/a.py": ["n/a"]}}))
        good.finish(done_payload(coverage={"files": {"/x/a.py": [1]}}))
        callback = MagicMock()

        with patch(SPAWN, AsyncMock(side_effect=[bad, good])):
            outcome = await orchestrator.run(
                [{"code": "/x/a.py", "tests": "/t1.py"}, {"code": "/x/a.py", "tests": "/t2.py"}], callback
            )

        callback.assert_called_once()
        assert isinstance(callback.call_args.args[0], ProtocolError)
        assert outcome.completed == 1
        assert orchestrator.coverage.get()["files"] == {"/x/a.py": [1]}
        bad.kill.assert_called_once()
        good.kill.assert_called_once()

    async def test_debug_ports_keep_increasing_across_runs(self, quiet_config: RunConfiguration, console: Console):
        quiet_config.update({"worker_args": ["--debug-brk=5858"]})
        orchestrator = RunOrchestrator(config=quiet_config, console=console)

        with patch(SPAWN, AsyncMock(side_effect=finished_processes(2))) as first_spawn:
            await orchestrator.run(["/t1.py", "/t2.py"])
        with patch(SPAWN, AsyncMock(side_effect=finished_processes(1))) as second_spawn:
            await orchestrator.run(["/t3.py"])

        ports = [c.args[1] for c in first_spawn.call_args_list + second_spawn.call_args_list]
        assert ports == ["--debug-brk=5859", "--debug-brk=5860", "--debug-brk=5861"]

    async def test_configuration_is_snapshotted_per_run(self, orchestrator: RunOrchestrator):
        first = FakeProcess()

        with patch(SPAWN, AsyncMock(side_effect=[first])) as mock_spawn:
            task = asyncio.create_task(orchestrator.run(["/t1.py"]))
            await wait_until(lambda: mock_spawn.await_count == 1)
            orchestrator.setup({"coverage": True})
            first.finish(done_payload(coverage={"files": {"/a.py": [1]}}))
            await task

        assert orchestrator.sink.records["coverages"] == []
        assert orchestrator.config.coverage is True


class TestSetup:
    def test_setup_merges_into_defaults(self, orchestrator: RunOrchestrator):
        orchestrator.setup({"coverage": True}, namespace="app")
        assert orchestrator.config.coverage is True
        assert orchestrator.config.namespace == "app"

    def test_module_level_setup_uses_default_orchestrator(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(orchestrator_module, "_default_orchestrator", None)
        orchestrator_module.setup(moduleDeps="json")
        assert orchestrator_module.get_default_orchestrator().config.module_deps == "json"
