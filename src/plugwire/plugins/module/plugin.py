"""Plugin whose hooks are tasks in a content module.

A module directory opts in by shipping ``plugwire_plugin.yaml``::

    # modules/vault_lookup/plugwire_plugin.yaml
    config:
      server_url:
        type: String
        required: true
      token:
        type: Optional[String]
    hooks:                       # optional
      resolve_reference: fetch   # -> vault_lookup::fetch

Without a ``hooks`` mapping, a task named after a hook
(``tasks/resolve_reference.py``, ``tasks/secret_decrypt.sh``, ...)
implements that hook. A module with a ``resolve_reference`` task but no
``validate_resolve_reference`` task still supports validation: the options
are checked against the resolve task's parameters.

When a hook runs, the plugin's configuration is merged with the call
options (options win), validated against the task, and the task is run on
``localhost`` through the shared execution context. The task must print a
JSON object with a ``value`` key.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from plugwire.exceptions import ExecutionError, PluginError, UnsupportedHookError
from plugwire.models import Target
from plugwire.plugins.base import HookKind, Plugin
from plugwire.tasks.params import type_matches

if TYPE_CHECKING:
    from plugwire.plugins.context import ExecutionContext

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "plugwire_plugin.yaml"


class ConfigOption(BaseModel):
    """Schema entry for one key of a module plugin's configuration."""

    type: str = "Any"
    required: bool = False
    description: Optional[str] = None


class ModuleManifest(BaseModel):
    """Parsed ``plugwire_plugin.yaml``."""

    model_config = ConfigDict(extra="forbid")

    config: dict[str, ConfigOption] = Field(default_factory=dict)
    hooks: dict[HookKind, str] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> ModuleManifest:
        """Read and validate a manifest file.

        Raises:
            PluginError: If the file is not valid YAML or fails validation.
        """
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            return cls.model_validate(data)
        except (yaml.YAMLError, OSError, ValidationError) as exc:
            raise PluginError(f"Invalid plugin manifest at {path}: {exc}") from exc


def _has_task(module_dir: Path, task: str) -> bool:
    tasks_dir = module_dir / "tasks"
    if not tasks_dir.is_dir():
        return False
    return any(
        path.is_file() and path.stem == task and path.suffix != ".json"
        for path in tasks_dir.iterdir()
    )


class ModulePlugin(Plugin):
    """A plugin implemented by the tasks of one content module.

    Use :meth:`load` to build one from a module directory.

    Raises:
        PluginError: On construction, if the configuration contains keys
            the manifest does not declare, misses required keys, or has
            values of the wrong type.
    """

    def __init__(
        self,
        name: str,
        module_dir: Path,
        manifest: ModuleManifest,
        context: Optional[ExecutionContext] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(context=context, config=config)
        self._name = name
        self._module_dir = module_dir
        self._manifest = manifest
        self._hook_tasks = self._find_hook_tasks()
        self._hooks = frozenset(self._hook_tasks) | self._validation_hooks()
        self._validate_config()

    @classmethod
    def load(
        cls,
        name: str,
        module_dir: Path,
        context: Optional[ExecutionContext] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> ModulePlugin:
        manifest = ModuleManifest.load(module_dir / MANIFEST_FILENAME)
        return cls(name, module_dir, manifest, context=context, config=config)

    @property
    def name(self) -> str:
        return self._name

    @property
    def hooks(self) -> frozenset[HookKind]:
        return self._hooks

    @property
    def location(self) -> str:
        return str(self._module_dir)

    @property
    def hook_tasks(self) -> dict[HookKind, str]:
        return dict(self._hook_tasks)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _qualify(self, task: str) -> str:
        return task if "::" in task else f"{self._name}::{task}"

    def _find_hook_tasks(self) -> dict[HookKind, str]:
        if self._manifest.hooks:
            return {hook: self._qualify(task) for hook, task in self._manifest.hooks.items()}
        return {
            hook: self._qualify(hook.value)
            for hook in HookKind
            if _has_task(self._module_dir, hook.value)
        }

    def _validation_hooks(self) -> frozenset[HookKind]:
        if HookKind.RESOLVE_REFERENCE in self._hook_tasks:
            return frozenset({HookKind.VALIDATE_RESOLVE_REFERENCE})
        return frozenset()

    def _validate_config(self) -> None:
        schema = self._manifest.config
        problems: list[str] = []
        for key, value in self._config.items():
            option = schema.get(key)
            if option is None:
                problems.append(f"unexpected key '{key}'")
            elif not type_matches(option.type, value):
                problems.append(f"key '{key}' expects a {option.type} value")
        for key, option in schema.items():
            if option.required and key not in self._config:
                problems.append(f"missing required key '{key}'")
        if problems:
            raise PluginError(
                f"Invalid configuration for plugin {self._name}: " + "; ".join(problems)
            )

    # ------------------------------------------------------------------
    # Task plumbing
    # ------------------------------------------------------------------

    def _task_params(self, opts: dict[str, Any]) -> dict[str, Any]:
        params = dict(self._config)
        params.update({key: value for key, value in opts.items() if key != "_plugin"})
        return params

    def _run_hook(self, hook: HookKind, opts: dict[str, Any]) -> dict[str, Any]:
        task_name = self._hook_tasks[hook]
        params = self._task_params(opts)
        task = self.context.get_validated_task(task_name, params)
        result = self.context.run_local_task(task, params, {"catch_errors": True}).first()
        if result is None:
            raise ExecutionError(f"Task {task_name} returned no result", self.name, self.location)
        if not result.ok:
            error = result.error or {}
            raise ExecutionError(
                error.get("msg", f"Task {task_name} failed"), self.name, self.location
            )
        return result.value

    def _run_value_hook(self, hook: HookKind, opts: dict[str, Any]) -> Any:
        if hook not in self._hook_tasks:
            raise UnsupportedHookError(self.name, hook)
        value = self._run_hook(hook, opts)
        if "value" not in value:
            raise ExecutionError(
                f"Plugin did not return a 'value' key from {hook.value}",
                self.name,
                self.location,
            )
        return value["value"]

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def resolve_reference(self, opts: dict[str, Any]) -> Any:
        return self._run_value_hook(HookKind.RESOLVE_REFERENCE, opts)

    def validate_resolve_reference(self, opts: dict[str, Any]) -> None:
        if HookKind.VALIDATE_RESOLVE_REFERENCE in self._hook_tasks:
            self._run_hook(HookKind.VALIDATE_RESOLVE_REFERENCE, opts)
            return
        if HookKind.RESOLVE_REFERENCE not in self._hook_tasks:
            raise UnsupportedHookError(self.name, HookKind.VALIDATE_RESOLVE_REFERENCE)
        self.context.validate_params(
            self._hook_tasks[HookKind.RESOLVE_REFERENCE], self._task_params(opts)
        )

    def secret_encrypt(self, opts: dict[str, Any]) -> str:
        return self._run_value_hook(HookKind.SECRET_ENCRYPT, opts)

    def secret_decrypt(self, opts: dict[str, Any]) -> str:
        return self._run_value_hook(HookKind.SECRET_DECRYPT, opts)

    def secret_createkeys(self, opts: dict[str, Any]) -> str:
        return self._run_value_hook(HookKind.SECRET_CREATEKEYS, opts)

    def puppet_library(
        self,
        opts: dict[str, Any],
        target: Target,
        apply_prep: Any,
    ) -> Callable[[], Any]:
        if HookKind.PUPPET_LIBRARY not in self._hook_tasks:
            raise UnsupportedHookError(self.name, HookKind.PUPPET_LIBRARY)
        params = self._task_params(opts)
        task = self.context.get_validated_task(self._hook_tasks[HookKind.PUPPET_LIBRARY], params)
        logger.debug("Prepared %s to install the agent on %s", task.name, target.name)
        return lambda: apply_prep.run_task([target], task, params).first()
