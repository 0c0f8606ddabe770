# tests/unit/test_resolver.py

"""Unit tests for configuration models and per-file resolution."""

from pathlib import Path

import pytest

from testfork.config import (
    FileDescriptor,
    LogFlags,
    PathDescriptor,
    ResolvedConfig,
    RunConfiguration,
    resolve,
    resolve_all,
)
from testfork.exceptions import ConfigurationError


class TestModuleDeps:
    def test_single_module_is_appended(self):
        resolved = resolve(RunConfiguration(), {"deps": ["/a"], "moduleDeps": "m1"})
        assert resolved.deps == (PathDescriptor("/a"), "m1")

    def test_module_list_is_appended_in_order(self):
        resolved = resolve(RunConfiguration(), {"deps": ["/a"], "module_deps": ["m1", "m2"]})
        assert resolved.deps == (PathDescriptor("/a"), "m1", "m2")

    def test_module_names_are_not_path_resolved(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        resolved = resolve(RunConfiguration(), {"module_deps": "pkg.sub"})
        assert resolved.deps == ("pkg.sub",)


class TestMerge:
    def test_override_wins_per_key(self):
        defaults = RunConfiguration(coverage=False, namespace="app")
        resolved = resolve(defaults, FileDescriptor(coverage=True, tests="/t.py"))
        assert resolved.coverage is True
        assert resolved.namespace == "app"
        assert resolved.tests == (PathDescriptor("/t.py"),)

    def test_file_paths_come_only_from_the_descriptor(self):
        defaults = RunConfiguration(coverage=True, namespace="app")
        assert not hasattr(defaults, "code")

        resolved = resolve(defaults, {"tests": "/t.py"})

        assert resolved.code is None
        assert resolved.tests == (PathDescriptor("/t.py"),)
        assert resolved.coverage is True

    def test_defaults_are_inherited(self):
        defaults = RunConfiguration(deps=["/shared.py"], module_deps="json")
        resolved = resolve(defaults, {"code": "/code.py"})
        assert resolved.deps == (PathDescriptor("/shared.py"), "json")
        assert resolved.code == PathDescriptor("/code.py")

    def test_log_map_is_replaced_not_merged(self):
        resolved = resolve(RunConfiguration(), {"log": {"testing": True}})
        assert resolved.log.testing is True
        assert resolved.log.summary is False

    def test_falsy_log_becomes_all_off(self):
        resolved = resolve(RunConfiguration(log=None), {})
        assert resolved.log == LogFlags.none()

    def test_absent_fields_degrade_to_empty(self):
        resolved = resolve(RunConfiguration(), {})
        assert resolved.code is None
        assert resolved.tests == ()
        assert resolved.deps == ()
        assert resolved.code_label == "<none>"

    def test_bare_path_is_a_test_file(self):
        resolved = resolve(RunConfiguration(), "/tests/test_x.py")
        assert resolved.tests == (PathDescriptor("/tests/test_x.py"),)

    def test_resolve_all_keeps_order(self):
        resolved = resolve_all(RunConfiguration(), [{"code": "/a.py"}, {"code": "/b.py"}])
        assert [r.code_label for r in resolved] == ["/a.py", "/b.py"]


class TestRunConfiguration:
    def test_update_is_shallow(self):
        config = RunConfiguration()
        config.update({"log": {"globalSummary": True}, "coverage": True})
        assert config.coverage is True
        assert config.log == LogFlags.from_mapping({"global_summary": True})
        assert config.log.assertions is False

    def test_update_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError, match="Unknown option 'colour'"):
            RunConfiguration().update({"colour": True})

    def test_snapshot_is_independent(self):
        config = RunConfiguration(worker_args=["-X", "dev"])
        snapshot = config.snapshot()
        config.update({"coverage": True, "worker_args": []})
        assert snapshot.coverage is False
        assert snapshot.worker_args == ["-X", "dev"]

    def test_default_log_flags_are_all_on(self):
        assert all(enabled for _, enabled in RunConfiguration().log.items())


class TestResolvedConfigWireForm:
    def test_json_round_trip_keeps_module_deps_as_strings(self):
        resolved = resolve(
            RunConfiguration(),
            {"code": {"path": "/c.py", "namespace": "lib"}, "deps": "/d.py", "module_deps": ["json"]},
        )
        restored = ResolvedConfig.from_json(resolved.to_json())
        assert restored == resolved
        assert restored.deps[1] == "json"
        assert restored.code.namespace == "lib"
