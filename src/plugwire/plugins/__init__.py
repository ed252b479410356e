"""Plugin system for plugwire -- registration, discovery, and hook dispatch.

This package provides the extensibility layer for plugwire. Plugins are
named capability providers implementing one or more hooks from the fixed
:class:`HookKind` set. At runtime, :class:`PluginRegistry` resolves a
plugin by name (built-in, explicitly registered, or discovered from a
content module or installed distribution) and :class:`HookDispatcher`
returns the requested hook as a callable.

Key classes:

* :class:`Plugin` -- Abstract base class that all plugins must extend.
* :class:`HookKind` -- The closed set of hook names.
* :class:`PluginRegistry` -- Name -> plugin resolution with memoized discovery.
* :class:`HookDispatcher` -- Validates and binds hooks for callers.
* :class:`ExecutionContext` -- Lets plugins run tasks on ``localhost``.

Example:
    Typical usage from the CLI::

        from plugwire.plugins import HookKind, setup

        dispatcher = setup(config, LocalPal(config.resolved_modulepath()))
        dispatcher.registry.load_all_configured()
        resolve = dispatcher.get_hook("task", HookKind.RESOLVE_REFERENCE)
"""

from plugwire.plugins.base import HookKind, Plugin
from plugwire.plugins.context import ExecutionContext
from plugwire.plugins.registry import BUILTIN_PLUGINS, PluginRegistry
from plugwire.plugins.hooks import HookDispatcher
from plugwire.plugins.bootstrap import setup

__all__ = [
    "BUILTIN_PLUGINS",
    "ExecutionContext",
    "HookDispatcher",
    "HookKind",
    "Plugin",
    "PluginRegistry",
    "setup",
]
