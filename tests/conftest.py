"""Shared test fixtures for plugwire.

Provides in-memory compiler doubles, isolated project directories,
helpers for writing content modules with real task files, output state
management, and the CLI runner. These fixtures are discovered by pytest
and available to every test module without explicit imports.
"""

from __future__ import annotations

import json
import textwrap
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import pytest

from plugwire.models import ProjectConfig, TaskSignature
from plugwire.output import OutputFormat, OutputManager, reset_output, set_output
from plugwire.plugins.context import ExecutionContext
from plugwire.tasks.compiler import Compiler, Pal


# ---------------------------------------------------------------------------
# Compiler doubles
# ---------------------------------------------------------------------------


class FakeCompiler(Compiler):
    """Compiler session answering from a dict of signatures."""

    def __init__(self, signatures: dict[str, TaskSignature]) -> None:
        self.signatures = signatures
        self.closed = False
        self.lookups: list[str] = []

    def task_signature(self, task_name: str) -> Optional[TaskSignature]:
        self.lookups.append(task_name)
        return self.signatures.get(task_name)


class FakePal(Pal):
    """PAL that records every temporary session it opens and closes.

    Set :attr:`active` to simulate a session already open around the
    caller.
    """

    def __init__(self) -> None:
        self.signatures: dict[str, TaskSignature] = {}
        self.opened: list[FakeCompiler] = []
        self.closed: list[FakeCompiler] = []
        self.active: Optional[FakeCompiler] = None

    @contextmanager
    def in_compiler(self) -> Iterator[FakeCompiler]:
        compiler = FakeCompiler(self.signatures)
        self.opened.append(compiler)
        try:
            yield compiler
        finally:
            compiler.closed = True
            self.closed.append(compiler)

    def active_compiler(self) -> Optional[FakeCompiler]:
        return self.active


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner swaps those streams the cached
    references go stale, so every test starts from a fresh manager.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A temporary project directory used as the working directory.

    Points XDG_DATA_HOME into tmp_path, clears PLUGWIRE_PROJECT, and
    creates an empty ``modules`` directory.

    Returns:
        The project directory.
    """
    project = tmp_path / "project"
    (project / "modules").mkdir(parents=True)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("PLUGWIRE_PROJECT", raising=False)
    monkeypatch.chdir(project)
    return project


@pytest.fixture
def project_config(tmp_path: Path) -> ProjectConfig:
    """A default project config rooted at tmp_path."""
    return ProjectConfig(project_dir=tmp_path)


@pytest.fixture
def fake_pal() -> FakePal:
    return FakePal()


@pytest.fixture
def fake_compiler(fake_pal: FakePal) -> FakeCompiler:
    """A standalone session sharing *fake_pal*'s signatures."""
    return FakeCompiler(fake_pal.signatures)


@pytest.fixture
def context(project_config: ProjectConfig, fake_pal: FakePal) -> ExecutionContext:
    """An execution context over :class:`FakePal`."""
    return ExecutionContext(project_config, fake_pal)


# ---------------------------------------------------------------------------
# Content module helpers
# ---------------------------------------------------------------------------


WriteTask = Callable[..., Path]


@pytest.fixture
def write_task() -> WriteTask:
    """Return a helper that writes a Python task into a content module.

    Usage::

        write_task(modules_dir, "mymod", "lookup", body, parameters={...})

    *body* is Python source; it is dedented and written to
    ``<modules_dir>/<module>/tasks/<task>.py``. When *parameters* is given
    a metadata file declaring them is written beside it.
    """

    def _write(
        modules_dir: Path,
        module: str,
        task: str,
        body: str,
        parameters: Optional[dict[str, Any]] = None,
        **metadata: Any,
    ) -> Path:
        tasks_dir = modules_dir / module / "tasks"
        tasks_dir.mkdir(parents=True, exist_ok=True)
        path = tasks_dir / f"{task}.py"
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        if parameters is not None or metadata:
            meta = dict(metadata)
            if parameters is not None:
                meta["parameters"] = parameters
            (tasks_dir / f"{task}.json").write_text(json.dumps(meta), encoding="utf-8")
        return path

    return _write


ECHO_VALUE_TASK = """
import json, sys
params = json.load(sys.stdin)
print(json.dumps({"value": params.get("key", "").upper()}))
"""
"""Task body resolving to the upper-cased ``key`` parameter."""


@pytest.fixture
def echo_value_task() -> str:
    return ECHO_VALUE_TASK


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
