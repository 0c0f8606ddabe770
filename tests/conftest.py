import io
import os
from pathlib import Path

import pytest
from rich.console import Console

from testfork.config import LogFlags, RunConfiguration

SRC_DIR = Path(__file__).resolve().parent.parent / "src"


@pytest.fixture
def quiet_config() -> RunConfiguration:
    """A run configuration that prints nothing."""
    return RunConfiguration(log=LogFlags.none())


@pytest.fixture
def console_output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(console_output: io.StringIO) -> Console:
    return Console(file=console_output, width=200, color_system=None)


@pytest.fixture
def worker_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Makes the source tree importable by spawned workers."""
    existing = os.environ.get("PYTHONPATH")
    paths = [str(SRC_DIR)] + ([existing] if existing else [])
    monkeypatch.setenv("PYTHONPATH", os.pathsep.join(paths))


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A code file with one passing and one failing test."""
    (tmp_path / "calc.py").write_text(
        "def add(a, b):\n"
        "    return a + b\n"
        "\n"
        "\n"
        "def unused(x):\n"
        "    return x * 2\n"
    )
    (tmp_path / "test_calc.py").write_text(
        "def test_add():\n"
        "    assert add(1, 2) == 3\n"
        "\n"
        "\n"
        "def test_add_wrong():\n"
        "    assert add(1, 1) == 3, 'bad sum'\n"
    )
    return tmp_path
