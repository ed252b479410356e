"""Tests for plugwire.plugins.context -- compiler bridging and serial local runs."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Callable

import pytest

from plugwire.exceptions import PluginError, RunFailure, TaskParameterError, UnknownTaskError
from plugwire.models import (
    ProjectConfig,
    Target,
    Task,
    TaskFile,
    TaskMetadata,
    TaskParameter,
    TaskResult,
    TaskSignature,
)
from plugwire.plugins.context import ExecutionContext
from plugwire.tasks.compiler import LocalPal
from plugwire.tasks.executor import Executor, Transport
from plugwire.tasks.inventory import Inventory
from plugwire.tasks.params import Sensitive


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _signature(name: str, parameters: dict[str, TaskParameter] | None = None) -> TaskSignature:
    return TaskSignature(
        name=name,
        metadata=TaskMetadata(parameters=parameters or {}),
        files=[TaskFile(name=f"{name}.py", path=Path(f"/tasks/{name}.py"))],
    )


class RecordingTransport(Transport):
    """Records calls and the peak number of overlapping runs."""

    def __init__(self, delay: float = 0.0, status: str = "success") -> None:
        self.delay = delay
        self.status = status
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def run_task(
        self, target: Target, task: Task, params: dict[str, Any], options: dict[str, Any]
    ) -> TaskResult:
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            self.calls.append(params)
        try:
            time.sleep(self.delay)
        finally:
            with self._lock:
                self.in_flight -= 1
        value: dict[str, Any] = {"value": "ok"}
        if self.status != "success":
            value = {"_error": {"kind": "test/failed", "msg": "boom"}}
        return TaskResult(target=target.name, object=task.name, status=self.status, value=value)


def _context_with_transport(
    config: ProjectConfig, pal: Any, transport: Transport
) -> ExecutionContext:
    return ExecutionContext(
        config,
        pal,
        executor_factory=lambda concurrency: Executor(concurrency, {"local": transport}),
    )


# ---------------------------------------------------------------------------
# Compiler sessions
# ---------------------------------------------------------------------------


class TestCompilerSessions:
    def test_ambient_session_is_reused(self, context: ExecutionContext, fake_pal, fake_compiler) -> None:
        fake_pal.active = fake_compiler

        seen = context.with_compiler(lambda compiler: compiler)

        assert seen is fake_compiler
        assert fake_pal.opened == []
        assert fake_compiler.closed is False

    def test_explicit_session_takes_precedence(
        self, context: ExecutionContext, fake_pal, fake_compiler
    ) -> None:
        fake_pal.active = None
        assert context.with_compiler(lambda c: c, session=fake_compiler) is fake_compiler
        assert fake_pal.opened == []

    def test_temporary_session_is_torn_down(self, context: ExecutionContext, fake_pal) -> None:
        seen = context.with_compiler(lambda compiler: compiler)

        assert fake_pal.opened == [seen]
        assert fake_pal.closed == [seen]
        assert seen.closed is True

    def test_temporary_session_is_torn_down_on_error(
        self, context: ExecutionContext, fake_pal
    ) -> None:
        def body(compiler: Any) -> None:
            raise ValueError("body failed")

        with pytest.raises(ValueError, match="body failed"):
            context.with_compiler(body)

        assert len(fake_pal.opened) == 1
        assert fake_pal.closed == fake_pal.opened

    def test_each_call_opens_its_own_session(self, context: ExecutionContext, fake_pal) -> None:
        first = context.with_compiler(lambda c: c)
        second = context.with_compiler(lambda c: c)
        assert first is not second
        assert len(fake_pal.closed) == 2

    def test_ambient_provider_override(self, project_config, fake_pal, fake_compiler) -> None:
        context = ExecutionContext(project_config, fake_pal, ambient_compiler=lambda: fake_compiler)
        assert context.with_compiler(lambda c: c) is fake_compiler

    def test_project_dir(self, context: ExecutionContext, tmp_path: Path) -> None:
        assert context.project_dir == tmp_path


# ---------------------------------------------------------------------------
# Task lookup and validation
# ---------------------------------------------------------------------------


class TestGetValidatedTask:
    def test_returns_task(self, context: ExecutionContext, fake_pal) -> None:
        fake_pal.signatures["mymod::lookup"] = _signature("mymod::lookup")
        task = context.get_validated_task("mymod::lookup")
        assert task.name == "mymod::lookup"
        assert task.module_name == "mymod"

    def test_unknown_task(self, context: ExecutionContext) -> None:
        with pytest.raises(UnknownTaskError) as exc_info:
            context.get_validated_task("nope::nothing")
        assert exc_info.value.task_name == "nope::nothing"

    def test_validates_params(self, context: ExecutionContext, fake_pal) -> None:
        fake_pal.signatures["mymod::lookup"] = _signature(
            "mymod::lookup", {"key": TaskParameter(type="String")}
        )
        with pytest.raises(TaskParameterError, match="expects a value for parameter 'key'"):
            context.get_validated_task("mymod::lookup", {})

    def test_lookup_uses_single_session(self, context: ExecutionContext, fake_pal) -> None:
        fake_pal.signatures["mymod::lookup"] = _signature("mymod::lookup")
        context.get_validated_task("mymod::lookup", {})
        assert len(fake_pal.opened) == 1
        assert fake_pal.opened[0].lookups == ["mymod::lookup"]


class TestValidateParams:
    def test_missing_required_param(self, context: ExecutionContext, fake_pal) -> None:
        fake_pal.signatures["task_with_required_param"] = _signature(
            "task_with_required_param", {"name": TaskParameter(type="String")}
        )
        with pytest.raises(TaskParameterError) as exc_info:
            context.validate_params("task_with_required_param", {})
        assert exc_info.value.problems == ["expects a value for parameter 'name'"]

    def test_valid_params_pass(self, context: ExecutionContext, fake_pal) -> None:
        fake_pal.signatures["task_with_required_param"] = _signature(
            "task_with_required_param", {"name": TaskParameter(type="String")}
        )
        context.validate_params("task_with_required_param", {"name": "db"})

    def test_unknown_task_is_plugin_error(self, context: ExecutionContext) -> None:
        with pytest.raises(PluginError, match="ghost could not be found"):
            context.validate_params("ghost", {})


# ---------------------------------------------------------------------------
# Local runs
# ---------------------------------------------------------------------------


class TestRunLocalTask:
    def test_runs_on_localhost(self, project_config, fake_pal) -> None:
        transport = RecordingTransport()
        context = _context_with_transport(project_config, fake_pal, transport)
        task = _signature("mymod::lookup").to_task()

        result_set = context.run_local_task(task, {"key": "db"})

        assert result_set.ok
        first = result_set.first()
        assert first is not None
        assert first.target == "localhost"
        assert first.value == {"value": "ok"}

    def test_sensitive_params_are_wrapped(self, project_config, fake_pal) -> None:
        transport = RecordingTransport()
        context = _context_with_transport(project_config, fake_pal, transport)
        task = _signature(
            "mymod::lookup", {"token": TaskParameter(type="String", sensitive=True)}
        ).to_task()

        context.run_local_task(task, {"token": "s3cret", "_noop": True})

        params = transport.calls[0]
        assert params["token"] == Sensitive("s3cret")
        assert params["_noop"] is True

    def test_failure_raises_without_catch_errors(self, project_config, fake_pal) -> None:
        context = _context_with_transport(
            project_config, fake_pal, RecordingTransport(status="failure")
        )
        task = _signature("mymod::lookup").to_task()
        with pytest.raises(RunFailure):
            context.run_local_task(task, {})

    def test_failure_returned_with_catch_errors(self, project_config, fake_pal) -> None:
        context = _context_with_transport(
            project_config, fake_pal, RecordingTransport(status="failure")
        )
        task = _signature("mymod::lookup").to_task()
        result_set = context.run_local_task(task, {}, {"catch_errors": True})
        assert not result_set.ok
        assert result_set.error_set[0].error == {"kind": "test/failed", "msg": "boom"}

    def test_executor_and_inventory_built_once(self, project_config, fake_pal) -> None:
        transport = RecordingTransport()
        executors: list[int] = []
        inventories: list[ProjectConfig] = []

        def executor_factory(concurrency: int) -> Executor:
            executors.append(concurrency)
            return Executor(concurrency, {"local": transport})

        def inventory_factory(config: ProjectConfig) -> Inventory:
            inventories.append(config)
            return Inventory(config)

        context = ExecutionContext(
            project_config,
            fake_pal,
            executor_factory=executor_factory,
            inventory_factory=inventory_factory,
        )
        task = _signature("mymod::lookup").to_task()
        context.run_local_task(task, {})
        context.run_local_task(task, {})

        assert executors == [1]
        assert inventories == [project_config]
        assert len(transport.calls) == 2

    def test_concurrent_callers_are_serialized(self, project_config, fake_pal) -> None:
        transport = RecordingTransport(delay=0.05)
        context = _context_with_transport(project_config, fake_pal, transport)
        task = _signature("mymod::lookup").to_task()
        errors: list[BaseException] = []

        def worker() -> None:
            try:
                context.run_local_task(task, {})
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(transport.calls) == 4
        assert transport.peak == 1

    def test_runs_inside_ambient_session_without_opening_one(
        self, project_config, fake_pal, fake_compiler
    ) -> None:
        fake_pal.active = fake_compiler
        context = _context_with_transport(project_config, fake_pal, RecordingTransport())
        context.run_local_task(_signature("mymod::lookup").to_task(), {})
        assert fake_pal.opened == []


class TestLocalPalSessions:
    @pytest.fixture
    def local_context(self, tmp_path: Path, write_task: Callable[..., Path]) -> ExecutionContext:
        modules = tmp_path / "modules"
        write_task(modules, "mymod", "lookup", "print('{}')", parameters={"key": {"type": "String"}})
        config = ProjectConfig(project_dir=tmp_path, modulepath=[modules])
        return _context_with_transport(config, LocalPal([modules]), RecordingTransport())

    def test_session_held_on_another_thread_is_not_reused(
        self, local_context: ExecutionContext
    ) -> None:
        entered = threading.Event()
        release = threading.Event()
        seen: dict[str, Any] = {}
        errors: list[BaseException] = []

        def holder() -> None:
            try:
                with local_context.compiler() as compiler:
                    seen["holder"] = compiler
                    entered.set()
                    release.wait(timeout=5)
                    seen["holder_task"] = compiler.task_signature("mymod::lookup")
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        thread = threading.Thread(target=holder)
        thread.start()
        assert entered.wait(timeout=5)

        with local_context.compiler() as mine:
            assert mine is not seen["holder"]
            release.set()
            thread.join()
            assert seen["holder"].closed
            assert mine.task_signature("mymod::lookup") is not None

        assert errors == []
        assert seen["holder_task"] is not None

    def test_tasks_run_while_another_thread_holds_a_session(
        self, local_context: ExecutionContext
    ) -> None:
        entered = threading.Event()
        release = threading.Event()
        errors: list[BaseException] = []

        def holder() -> None:
            try:
                with local_context.compiler():
                    entered.set()
                    release.wait(timeout=5)
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        thread = threading.Thread(target=holder)
        thread.start()
        assert entered.wait(timeout=5)
        try:
            task = local_context.get_validated_task("mymod::lookup", {"key": "db"})
            results = local_context.run_local_task(task, {"key": "db"})
        finally:
            release.set()
            thread.join()

        assert errors == []
        assert task.name == "mymod::lookup"
        assert results.ok
        assert local_context.pal.active_compiler() is None
