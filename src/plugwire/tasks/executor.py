"""Task execution with bounded concurrency.

:class:`Executor` owns a thread pool whose size is the maximum number of
task runs in flight at once. Every run on every target is submitted to
that pool, so an executor built with ``concurrency=1`` serializes all
callers that share it, including callers on different threads.

Transports do the actual work of running a task on one target. Only
:class:`LocalTransport` ships here; it runs the task's implementation file
as a subprocess, passing parameters as JSON on stdin and as ``PT_<name>``
environment variables.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from plugwire.exceptions import RunFailure
from plugwire.models import ResultSet, Target, Task, TaskResult
from plugwire.tasks.params import unwrap_sensitive

logger = logging.getLogger(__name__)

_INTERPRETERS: dict[str, list[str]] = {
    ".py": [sys.executable],
    ".sh": ["sh"],
    ".rb": ["ruby"],
    ".ps1": ["pwsh", "-NoProfile", "-File"],
}


def _error_result(target: Target, task: Task, kind: str, msg: str, **details: Any) -> TaskResult:
    return TaskResult(
        target=target.name,
        object=task.name,
        status="failure",
        value={"_error": {"kind": kind, "msg": msg, "details": details}},
    )


class Transport(ABC):
    """Runs a task on a single target."""

    @abstractmethod
    def run_task(
        self,
        target: Target,
        task: Task,
        params: dict[str, Any],
        options: dict[str, Any],
    ) -> TaskResult:
        ...


class LocalTransport(Transport):
    """Run tasks as subprocesses on the controller host."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout

    def run_task(
        self,
        target: Target,
        task: Task,
        params: dict[str, Any],
        options: dict[str, Any],
    ) -> TaskResult:
        executable = task.executable
        if executable is None:
            return _error_result(
                target, task, "plugwire/task-missing-implementation",
                f"Task {task.name} has no implementation file",
            )

        plain = unwrap_sensitive(params)
        plain["_task"] = task.name
        input_method = task.metadata.input_method

        env = os.environ.copy()
        if input_method in ("environment", "both"):
            for name, value in plain.items():
                env[f"PT_{name}"] = value if isinstance(value, str) else json.dumps(value)
        stdin = json.dumps(plain) if input_method in ("stdin", "both") else ""

        command = _INTERPRETERS.get(executable.suffix, []) + [str(executable)]
        logger.debug("Running task %s on %s: %s", task.name, target.name, command)
        try:
            proc = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                env=env,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            return _error_result(
                target, task, "plugwire/task-exec-error",
                f"Could not run task {task.name}: {exc}",
            )

        value = _parse_output(proc.stdout)
        status = "success"
        if proc.returncode != 0:
            status = "failure"
            value.setdefault(
                "_error",
                {
                    "kind": "plugwire/task-error",
                    "msg": f"The task failed with exit code {proc.returncode}: "
                    f"{proc.stderr.strip()}",
                    "details": {"exit_code": proc.returncode},
                },
            )
        return TaskResult(target=target.name, object=task.name, status=status, value=value)


def _parse_output(stdout: str) -> dict[str, Any]:
    """Parse task stdout as a JSON object, falling back to ``{"_output": ...}``."""
    try:
        parsed = json.loads(stdout)
    except (json.JSONDecodeError, TypeError):
        return {"_output": stdout}
    if isinstance(parsed, dict):
        return parsed
    return {"_output": stdout}


class Executor:
    """Runs tasks on targets through a bounded thread pool.

    Args:
        concurrency: Maximum number of target runs in flight at once.
        transports: Transport implementations keyed by transport name.
            Defaults to a single :class:`LocalTransport` under ``"local"``.

    Example::

        executor = Executor(1)
        results = executor.run_task(inventory.get_targets("localhost"), task, {})
    """

    def __init__(
        self,
        concurrency: int = 1,
        transports: Optional[dict[str, Transport]] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._transports = transports if transports is not None else {"local": LocalTransport()}
        self._pool = ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="plugwire-executor"
        )

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def run_task(
        self,
        targets: list[Target],
        task: Task,
        params: dict[str, Any],
        options: Optional[dict[str, Any]] = None,
    ) -> ResultSet:
        """Run *task* on every target and wait for all results.

        Transport exceptions are converted into failed results so that one
        broken target never hides the results of the others.
        """
        options = dict(options or {})
        futures = [
            self._pool.submit(self._run_on_target, target, task, params, options)
            for target in targets
        ]
        return ResultSet(results=[future.result() for future in futures])

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def _run_on_target(
        self,
        target: Target,
        task: Task,
        params: dict[str, Any],
        options: dict[str, Any],
    ) -> TaskResult:
        transport = self._transports.get(target.transport)
        if transport is None:
            return _error_result(
                target, task, "plugwire/unknown-transport",
                f"No transport available for '{target.transport}'",
            )
        try:
            return transport.run_task(target, task, params, options)
        except Exception as exc:
            logger.warning("Task %s failed on %s: %s", task.name, target.name, exc)
            return _error_result(target, task, "plugwire/task-exec-error", str(exc))


def run_task(
    task: Task,
    targets: list[Target],
    params: dict[str, Any],
    options: Optional[dict[str, Any]],
    executor: Executor,
) -> ResultSet:
    """Run *task* through *executor* and raise on failure.

    ``options["catch_errors"]`` returns failed results instead of raising.

    Raises:
        RunFailure: If any target failed and errors were not caught.
    """
    options = dict(options or {})
    catch_errors = bool(options.pop("catch_errors", False))
    result_set = executor.run_task(targets, task, params, options)
    if not result_set.ok and not catch_errors:
        raise RunFailure(result_set, "run_task", task.name)
    return result_set
