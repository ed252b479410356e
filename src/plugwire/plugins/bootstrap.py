"""Wire up the plugin subsystem for one orchestration run."""

from __future__ import annotations

from typing import Optional

from plugwire.analytics import Analytics, NoopAnalytics, RecordingAnalytics
from plugwire.config import resolve_config
from plugwire.models import ProjectConfig
from plugwire.plugins.context import ExecutionContext
from plugwire.plugins.discovery import ModuleResolver
from plugwire.plugins.hooks import HookDispatcher
from plugwire.plugins.puppetdb import PuppetdbClient, PuppetdbPlugin
from plugwire.plugins.registry import BUILTIN_FACTORIES, BUILTIN_PLUGINS, PluginRegistry
from plugwire.tasks.compiler import LocalPal, Pal


def setup(
    config: ProjectConfig,
    pal: Pal,
    pdb_client: Optional[PuppetdbClient] = None,
    analytics: Optional[Analytics] = None,
    resolver: Optional[ModuleResolver] = None,
) -> HookDispatcher:
    """Build a registry with the built-ins and return a dispatcher over it.

    The PuppetDB plugin is registered eagerly around *pdb_client* because
    the host already owns that client; the other built-ins are registered
    lazily and constructed on first use.

    Args:
        config: The project configuration.
        pal: Opens compiler sessions for the execution context.
        pdb_client: The host's PuppetDB client, if one is configured.
        analytics: Usage reporting client. Defaults to recording usage in
            memory when ``config.analytics`` is enabled.
        resolver: Discovery strategy override.
    """
    if analytics is None:
        analytics = RecordingAnalytics(BUILTIN_PLUGINS) if config.analytics else NoopAnalytics()

    context = ExecutionContext(config, pal)
    registry = PluginRegistry(config, context, resolver=resolver)
    if pdb_client is not None:
        registry.register(PuppetdbPlugin(pdb_client))
    for name, factory in BUILTIN_FACTORIES.items():
        registry.register_lazy(name, factory)
    return HookDispatcher(registry, analytics)


def from_project(cli_project: Optional[str] = None) -> HookDispatcher:
    """Load the project configuration and :func:`setup` a dispatcher for it.

    Used by the CLI. A PuppetDB client is created when the project config
    has a ``puppetdb`` section.

    Raises:
        ConfigError: If the project configuration cannot be loaded.
    """
    config = resolve_config(cli_project)
    pal = LocalPal(config.resolved_modulepath())
    pdb_client = PuppetdbClient(config.puppetdb) if config.puppetdb is not None else None
    return setup(config, pal, pdb_client=pdb_client)
