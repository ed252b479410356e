"""Exception hierarchy for plugwire.

All exceptions inherit from :class:`PlugwireError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`plugwire.exit_codes`
and a stable ``kind`` string (e.g. ``"plugwire/unknown-plugin"``) that
callers can match on without parsing messages. The top-level error handler
in :func:`plugwire.app.main` catches ``PlugwireError`` and exits with the
appropriate code.

Subclass hierarchy::

    PlugwireError (exit 1)
    +-- InvalidUsageError      (exit 2)
    +-- ConfigError            (exit 1)
    +-- PluginError            (exit 10)
    |   +-- UnknownPluginError
    |   +-- UnsupportedHookError
    |   +-- ExecutionError
    +-- UnknownTaskError       (exit 4)
    +-- TaskParameterError     (exit 2)
    +-- RunFailure             (exit 11)
    +-- PuppetdbError          (exit 6)
"""

from __future__ import annotations

from typing import Any, Optional

from plugwire.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PLUGIN_ERROR,
    EXIT_TASK_FAILURE,
)


class PlugwireError(Exception):
    """Base exception for all plugwire errors.

    Every subclass sets a class-level ``exit_code`` and ``kind``. The entry
    point catches this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        kind: Optional override for the class-level error kind.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    kind: str = "plugwire/error"

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(PlugwireError):
    """Raised for invalid CLI arguments, options, or hook names."""

    exit_code = EXIT_INVALID_USAGE
    kind = "plugwire/invalid-usage"


class ConfigError(PlugwireError):
    """Raised for configuration problems (missing project file, invalid YAML, bad credential sources)."""

    kind = "plugwire/config-error"


class PluginError(PlugwireError):
    """Raised when a plugin fails to load, initialise, or execute a hook."""

    exit_code = EXIT_PLUGIN_ERROR
    kind = "plugwire/plugin-error"


class UnknownPluginError(PluginError):
    """Raised when no registration or discoverable implementation exists for a name."""

    kind = "plugwire/unknown-plugin"

    def __init__(self, plugin_name: str):
        super().__init__(f"Unknown plugin: '{plugin_name}'")
        self.plugin_name = plugin_name


class UnsupportedHookError(PluginError):
    """Raised when a plugin exists but does not declare the requested hook."""

    kind = "plugwire/unsupported-hook"

    def __init__(self, plugin_name: str, hook: Any):
        hook_name = getattr(hook, "value", hook)
        super().__init__(f"Plugin {plugin_name} does not support {hook_name}")
        self.plugin_name = plugin_name
        self.hook = hook


class ExecutionError(PluginError):
    """Raised when a plugin's hook implementation fails while running.

    The message names the plugin and where its implementation was loaded
    from so that a misbehaving module or distribution can be tracked down.
    """

    def __init__(self, message: str, plugin_name: str, location: str):
        super().__init__(
            f"Error executing plugin {plugin_name} from {location}: {message}"
        )
        self.plugin_name = plugin_name
        self.location = location


class UnknownTaskError(PlugwireError):
    """Raised when a task name cannot be found on the modulepath."""

    exit_code = EXIT_NOT_FOUND
    kind = "plugwire/unknown-task"

    def __init__(self, task_name: str):
        super().__init__(
            f"Could not find a task named '{task_name}'. For a list of "
            "available tasks, check the modulepath."
        )
        self.task_name = task_name


class TaskParameterError(PlugwireError):
    """Raised when task parameters do not match the task's declared signature."""

    exit_code = EXIT_INVALID_USAGE
    kind = "plugwire/validation-error"

    def __init__(self, task_name: str, problems: list[str]):
        joined = "\n  ".join(problems)
        super().__init__(f"Task {task_name}:\n  {joined}")
        self.task_name = task_name
        self.problems = problems


class RunFailure(PlugwireError):
    """Raised when a task run reports failure and errors were not caught."""

    exit_code = EXIT_TASK_FAILURE
    kind = "plugwire/run-failure"

    def __init__(self, result_set: Any, action: str, name: str):
        super().__init__(f"{action} '{name}' failed on {len(result_set.error_set)} target(s)")
        self.result_set = result_set


class PuppetdbError(PlugwireError):
    """Raised on PuppetDB connection or query failures."""

    exit_code = EXIT_CONNECTION_ERROR
    kind = "plugwire/puppetdb-error"
