"""Plugin commands -- list, inspect, and resolve references.

Provides the ``plugwire plugin`` group:

* ``list`` shows the built-ins plus every plugin named in the project's
  ``plugins`` section, with the hooks each one implements.
* ``show NAME`` prints one plugin's hooks, location, and options.
* ``resolve NAME -o key=value ...`` validates the options with
  ``validate_resolve_reference`` (when the plugin has it) and prints the
  result of ``resolve_reference``.
"""

from __future__ import annotations

from typing import Any, Optional

import typer
import yaml

from plugwire.commands import dispatcher_for, reported_errors
from plugwire.exceptions import InvalidUsageError, UnknownPluginError
from plugwire.output import format_response, print_table, warning
from plugwire.plugins.base import HookKind, Plugin
from plugwire.plugins.registry import BUILTIN_FACTORIES

plugin_app = typer.Typer(no_args_is_help=True)


def _hook_names(plugin: Plugin) -> list[str]:
    return sorted(hook.value for hook in plugin.hooks)


def parse_options(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are read as YAML scalars.

    ``-o count=3`` gives ``{"count": 3}`` and ``-o tags=[a,b]`` gives a list.

    Raises:
        InvalidUsageError: If a pair has no ``=`` or an empty key.
    """
    opts: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Expected key=value, got '{pair}'")
        try:
            opts[key] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            opts[key] = raw
    return opts


@plugin_app.command("list")
def plugin_list(ctx: typer.Context) -> None:
    """List the built-in and configured plugins.

    Example::

        plugwire plugin list
        plugwire --json plugin list
    """
    with reported_errors():
        dispatcher = dispatcher_for(ctx)
        registry = dispatcher.registry
        names = sorted(
            set(registry.names()) | set(BUILTIN_FACTORIES) | set(registry.configured_names())
        )

        rows: list[list[str]] = []
        for name in names:
            plugin = registry.resolve(name)
            if plugin is None:
                warning(f"Configured plugin '{name}' could not be found")
                continue
            rows.append([name, ", ".join(_hook_names(plugin)), plugin.location])
        print_table(["name", "hooks", "location"], rows, title="Plugins")


@plugin_app.command("show")
def plugin_show(
    ctx: typer.Context,
    name: str = typer.Argument(help="Plugin name."),
) -> None:
    """Show one plugin's hooks, location, and configured options.

    Example::

        plugwire plugin show task
    """
    with reported_errors():
        registry = dispatcher_for(ctx).registry
        plugin = registry.resolve(name)
        if plugin is None:
            raise UnknownPluginError(name)
        format_response(
            {
                "name": plugin.name,
                "hooks": _hook_names(plugin),
                "location": plugin.location,
                "config": plugin.config,
            }
        )


@plugin_app.command("resolve")
def plugin_resolve(
    ctx: typer.Context,
    name: str = typer.Argument(help="Plugin name."),
    option: Optional[list[str]] = typer.Option(
        None, "--option", "-o", help="Reference option as key=value. Repeatable."
    ),
) -> None:
    """Resolve a reference with a plugin and print the value.

    Example::

        plugwire plugin resolve task -o task=mymod::lookup -o parameters='{key: db}'
        plugwire plugin resolve prompt -o message="Database password"
    """
    with reported_errors():
        opts = parse_options(option)
        opts["_plugin"] = name
        dispatcher = dispatcher_for(ctx)
        if dispatcher.supports(name, HookKind.VALIDATE_RESOLVE_REFERENCE):
            dispatcher.get_hook(name, HookKind.VALIDATE_RESOLVE_REFERENCE)(opts)
        value = dispatcher.get_hook(name, HookKind.RESOLVE_REFERENCE)(opts)
        format_response(value)
