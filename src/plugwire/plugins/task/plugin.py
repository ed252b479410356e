"""Task plugin -- resolve references and install agents by running tasks.

This module provides :class:`TaskPlugin`. A reference such as::

    _plugin: task
    task: mymod::lookup
    parameters:
      key: db_password

runs ``mymod::lookup`` on ``localhost`` with the given parameters and
resolves to the ``value`` key of the task's JSON output.

For ``puppet_library`` the named task is validated up front and a deferred
callable is returned; calling it runs the task on the target being
prepared through the caller's ``apply_prep`` executor.
"""

from __future__ import annotations

from typing import Any, Callable

from plugwire.exceptions import PluginError
from plugwire.models import Target
from plugwire.plugins.base import HookKind, Plugin


class TaskPlugin(Plugin):
    """Run a task to produce a value or to prepare a target."""

    supported_hooks = frozenset(
        {
            HookKind.PUPPET_LIBRARY,
            HookKind.RESOLVE_REFERENCE,
            HookKind.VALIDATE_RESOLVE_REFERENCE,
        }
    )

    @property
    def name(self) -> str:
        return "task"

    @staticmethod
    def _task_name(opts: dict[str, Any]) -> str:
        task_name = opts.get("task")
        if not task_name:
            raise PluginError("The task plugin expects a 'task' option")
        return task_name

    def run_task(self, opts: dict[str, Any]) -> dict[str, Any]:
        """Run the task named in *opts* locally and return its result value.

        Raises:
            PluginError: If the task failed.
        """
        params = dict(opts.get("parameters") or {})
        task = self.context.get_validated_task(self._task_name(opts), params)
        result = self.context.run_local_task(task, params, {"catch_errors": True}).first()
        if result is None or not result.ok:
            error = (result.error if result is not None else None) or {}
            raise PluginError(
                f"Task {task.name} failed: {error.get('msg', 'no result returned')}"
            )
        return result.value

    def resolve_reference(self, opts: dict[str, Any]) -> Any:
        value = self.run_task(opts)
        if "value" not in value:
            raise PluginError(
                f"Task result did not return 'value': {value}"
            )
        return value["value"]

    def validate_resolve_reference(self, opts: dict[str, Any]) -> None:
        self.context.validate_params(self._task_name(opts), dict(opts.get("parameters") or {}))

    def puppet_library(
        self,
        opts: dict[str, Any],
        target: Target,
        apply_prep: Any,
    ) -> Callable[[], Any]:
        params = dict(opts.get("parameters") or {})
        task = self.context.get_validated_task(self._task_name(opts), params)
        return lambda: apply_prep.run_task([target], task, params).first()
