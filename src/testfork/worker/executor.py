#
# src/testfork/worker/executor.py
#
"""
Loads dependencies, the code under test and the test files inside a worker,
then runs every test function and reports each result on the channel.
"""

import importlib
import inspect
import os
import runpy
import sys
import time
import traceback
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import coverage

from testfork.config.models import ResolvedConfig
from testfork.config.paths import PathDescriptor
from testfork.protocol import MessageKind
from testfork.worker.channel import MessageChannel


def _public(names: dict[str, Any]) -> dict[str, Any]:
    return {name: value for name, value in names.items() if not name.startswith("_")}


class TestExecutor:
    """Runs the tests of one resolved configuration."""

    __test__ = False

    def __init__(self, config: ResolvedConfig, channel: MessageChannel):
        self.config = config
        self.channel = channel
        # Globals shared by every test file: deps and the code under test land here.
        self.namespace: dict[str, Any] = {}
        self.tests = 0
        self.passed = 0
        self.failed = 0
        self._coverage: coverage.Coverage | None = None

    def run(self) -> dict[str, Any]:
        """Runs everything and returns the `done` payload (already sent)."""
        started = time.perf_counter()
        self._extend_sys_path()
        self._load_deps()

        if self.config.coverage and self.config.code:
            self._coverage = coverage.Coverage(
                data_file=None,
                include=[self.config.code.path],
                config_file=False,
            )
            self._coverage.start()
        try:
            self._load_code()
            for test_file in self.config.tests:
                self._run_test_file(test_file)
        finally:
            if self._coverage is not None:
                self._coverage.stop()

        summary: dict[str, Any] = {
            "files": 1,
            "tests": self.tests,
            "assertions": self.passed + self.failed,
            "passed": self.passed,
            "failed": self.failed,
            "runtime": int((time.perf_counter() - started) * 1000),
        }
        if self._coverage is not None:
            summary["coverage"] = self._coverage_snapshot()
        self.channel.send(MessageKind.DONE, summary)
        return summary

    def _extend_sys_path(self) -> None:
        paths = [self.config.code, *self.config.tests]
        for descriptor in paths:
            if descriptor is None:
                continue
            directory = os.path.dirname(descriptor.path)
            if directory not in sys.path:
                sys.path.insert(0, directory)

    def _load_deps(self) -> None:
        for dep in self.config.deps:
            if isinstance(dep, PathDescriptor):
                self.namespace.update(_public(runpy.run_path(dep.path, init_globals=self.namespace)))
            else:
                module = importlib.import_module(dep)
                self.namespace[dep.rpartition(".")[2]] = module

    def _load_code(self) -> None:
        code = self.config.code
        if code is None:
            return
        exported = _public(runpy.run_path(code.path, init_globals=self.namespace))
        namespace = code.namespace or self.config.namespace
        if namespace:
            self.namespace[namespace] = SimpleNamespace(**exported)
        else:
            self.namespace.update(exported)

    def _run_test_file(self, test_file: PathDescriptor) -> None:
        module_name = Path(test_file.path).stem
        module_globals = runpy.run_path(test_file.path, init_globals=self.namespace, run_name=module_name)
        tests = [
            (name, func)
            for name, func in module_globals.items()
            if name.startswith("test_") and inspect.isfunction(func) and func.__module__ == module_name
        ]
        for name, func in tests:
            self._run_test(module_name, name, func)

    def _run_test(self, module_name: str, name: str, func: Any) -> None:
        assertion: dict[str, Any] = {"module": module_name, "test": name, "result": True, "message": ""}
        try:
            func()
        except AssertionError as e:
            assertion.update(result=False, message=str(e) or "assertion failed")
            for key in ("expected", "actual"):
                if hasattr(e, key):
                    assertion[key] = repr(getattr(e, key))
        except Exception as e:
            assertion.update(
                result=False,
                message=f"Died on test: {type(e).__name__}: {e}",
                source=traceback.format_exc(),
            )

        passed = assertion["result"]
        self.tests += 1
        if passed:
            self.passed += 1
        else:
            self.failed += 1

        self.channel.send(MessageKind.ASSERTION_DONE, assertion)
        self.channel.send(
            MessageKind.TEST_DONE,
            {
                "name": name,
                "module": module_name,
                "failed": 0 if passed else 1,
                "passed": 1 if passed else 0,
                "total": 1,
            },
        )

    def _coverage_snapshot(self) -> dict[str, Any]:
        assert self._coverage is not None
        data = self._coverage.get_data()
        return {"files": {path: sorted(data.lines(path) or []) for path in sorted(data.measured_files())}}
