"""Execution context shared by every plugin in one orchestration run.

Plugins that need to run a task themselves (the ``task`` plugin, module
plugins whose hooks are tasks) do it through :class:`ExecutionContext`.
The context owns two lazily built singletons:

* a serial :class:`~plugwire.tasks.executor.Executor` (concurrency 1), so
  local task runs started from different hooks queue instead of
  interleaving, and
* a minimal :class:`~plugwire.tasks.inventory.Inventory` providing the
  synthetic ``localhost`` target.

It also bridges compiler sessions. A call made while a session is already
open (passed explicitly, or reported by the ambient provider) reuses that
session; otherwise a temporary session is opened for the duration of the
call and torn down afterwards, also on failure.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

from plugwire.exceptions import PluginError, UnknownTaskError
from plugwire.models import ProjectConfig, ResultSet, Task
from plugwire.tasks.compiler import Compiler, Pal
from plugwire.tasks.executor import Executor, run_task
from plugwire.tasks.inventory import LOCALHOST, Inventory
from plugwire.tasks.params import validate_params, wrap_sensitive

logger = logging.getLogger(__name__)

T = TypeVar("T")

AmbientProvider = Callable[[], Optional[Compiler]]


class ExecutionContext:
    """Shared resources for plugins that run tasks internally.

    Args:
        config: The project configuration.
        pal: Opens temporary compiler sessions.
        executor_factory: Builds the serial executor; called once with
            ``concurrency=1``.
        inventory_factory: Builds the inventory; called once with the
            project config.
        ambient_compiler: Zero-argument callable returning the session
            already open around the caller, or ``None``. Defaults to
            ``pal.active_compiler``.
    """

    def __init__(
        self,
        config: ProjectConfig,
        pal: Pal,
        executor_factory: Callable[..., Executor] = Executor,
        inventory_factory: Callable[..., Inventory] = Inventory,
        ambient_compiler: Optional[AmbientProvider] = None,
    ) -> None:
        self._config = config
        self._pal = pal
        self._executor_factory = executor_factory
        self._inventory_factory = inventory_factory
        self._ambient = ambient_compiler if ambient_compiler is not None else pal.active_compiler
        self._serial_executor: Optional[Executor] = None
        self._empty_inventory: Optional[Inventory] = None
        self._lock = threading.Lock()

    @property
    def pal(self) -> Pal:
        return self._pal

    @property
    def project_dir(self) -> Path:
        """The project's root directory, as configured."""
        return self._config.project_dir

    # ------------------------------------------------------------------
    # Lazy singletons
    # ------------------------------------------------------------------

    def _executor(self) -> Executor:
        with self._lock:
            if self._serial_executor is None:
                self._serial_executor = self._executor_factory(concurrency=1)
            return self._serial_executor

    def _inventory(self) -> Inventory:
        with self._lock:
            if self._empty_inventory is None:
                self._empty_inventory = self._inventory_factory(self._config)
            return self._empty_inventory

    # ------------------------------------------------------------------
    # Compiler sessions
    # ------------------------------------------------------------------

    @contextmanager
    def compiler(self, session: Optional[Compiler] = None) -> Iterator[Compiler]:
        """Yield the active compiler session, opening a temporary one if needed.

        Args:
            session: A session the caller already holds. Takes precedence
                over the ambient provider.
        """
        if session is None:
            session = self._ambient()
        if session is not None:
            yield session
            return

        logger.debug("No active compiler session, opening a temporary one")
        with self._pal.in_compiler() as temp_compiler:
            yield temp_compiler

    def with_compiler(
        self,
        body: Callable[[Compiler], T],
        session: Optional[Compiler] = None,
    ) -> T:
        """Call *body* with the active compiler session and return its result."""
        with self.compiler(session) as compiler:
            return body(compiler)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def get_validated_task(
        self,
        task_name: str,
        params: Optional[dict[str, Any]] = None,
        session: Optional[Compiler] = None,
    ) -> Task:
        """Look up *task_name* and, if *params* are given, validate them.

        Raises:
            UnknownTaskError: If the task does not exist.
            TaskParameterError: If *params* do not match the task signature.
        """
        with self.compiler(session) as compiler:
            signature = compiler.task_signature(task_name)
            if signature is None:
                raise UnknownTaskError(task_name)
            if params is not None:
                validate_params(signature, params)
            return signature.to_task()

    def validate_params(
        self,
        task_name: str,
        params: dict[str, Any],
        session: Optional[Compiler] = None,
    ) -> None:
        """Validate *params* against *task_name* without building a task.

        Raises:
            PluginError: If the task does not exist.
            TaskParameterError: If *params* do not match the task signature.
        """
        with self.compiler(session) as compiler:
            signature = compiler.task_signature(task_name)
            if signature is None:
                raise PluginError(f"{task_name} could not be found")
            validate_params(signature, params)

    def run_local_task(
        self,
        task: Task,
        params: dict[str, Any],
        options: Optional[dict[str, Any]] = None,
        session: Optional[Compiler] = None,
    ) -> ResultSet:
        """Run *task* on ``localhost`` through the serial executor.

        Keys in *params* starting with ``_`` are metaparameters and reach
        the task unchanged. ``catch_errors`` must be passed in *options*,
        not in *params*.

        Raises:
            RunFailure: If the task failed and ``options["catch_errors"]``
                is not set.
        """
        with self.compiler(session):
            wrapped = wrap_sensitive(task, params)
            targets = self._inventory().get_targets(LOCALHOST)
            logger.debug("Running task %s locally for a plugin", task.name)
            return run_task(task, targets, wrapped, options, self._executor())
