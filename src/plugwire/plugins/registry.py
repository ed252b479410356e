"""Plugin registry -- registration, lazy construction, and on-demand discovery.

This module contains :class:`PluginRegistry`, which maps plugin names to
:class:`~plugwire.plugins.base.Plugin` instances. A name can become known
in three ways:

* **Eagerly** via :meth:`PluginRegistry.register` with an already built
  plugin (the host's PuppetDB client plugin, test doubles).
* **Lazily** via :meth:`PluginRegistry.register_lazy` with a factory that
  is only called the first time the name is resolved (the built-ins).
* **On demand** via the registry's
  :class:`~plugwire.plugins.discovery.ModuleResolver` the first time an
  unknown name is resolved.

Discovery touches the filesystem and installed distributions, so its
outcome is memoized both ways: found plugins are cached, and names that
could not be found go into a negative cache that is never retried unless
the name is registered explicitly.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from plugwire.exceptions import PluginError, UnknownPluginError
from plugwire.models import ProjectConfig
from plugwire.plugins.base import Plugin
from plugwire.plugins.context import ExecutionContext
from plugwire.plugins.discovery import ModuleResolver, default_resolver
from plugwire.plugins.prompt import PromptPlugin
from plugwire.plugins.task import TaskPlugin

logger = logging.getLogger(__name__)

PluginFactory = Callable[..., Plugin]
ConfigProvider = Callable[[str], Optional[dict[str, Any]]]

BUILTIN_PLUGINS: tuple[str, ...] = (
    "task",
    "terraform",
    "pkcs7",
    "prompt",
    "vault",
    "aws_inventory",
    "puppetdb",
    "azure_inventory",
)
"""Plugin names bundled with the tool. Usage of these is reported by name."""

BUILTIN_FACTORIES: dict[str, PluginFactory] = {
    "prompt": PromptPlugin,
    "task": TaskPlugin,
}
"""Constructors for the built-ins implemented in this package.

The remaining :data:`BUILTIN_PLUGINS` names are provided by separately
installed distributions and are found through discovery.
"""


class PluginRegistry:
    """Name -> plugin mapping with lazy construction and memoized discovery.

    Not safe for concurrent mutation: registration and resolution are
    expected to happen on the control thread of one orchestration run.

    Args:
        config: The project configuration. Its ``plugins`` section supplies
            each plugin's options.
        context: Execution context handed to every plugin built here.
        resolver: Discovery strategy for unknown names. Defaults to
            :func:`~plugwire.plugins.discovery.default_resolver` over the
            project's modulepath.

    Example::

        registry = PluginRegistry(config, context)
        registry.register_lazy("task", TaskPlugin)
        plugin = registry.resolve("task")
    """

    def __init__(
        self,
        config: ProjectConfig,
        context: ExecutionContext,
        resolver: Optional[ModuleResolver] = None,
    ) -> None:
        self._config = config
        self._context = context
        self._resolver = resolver or default_resolver(config.resolved_modulepath())
        self._plugins: dict[str, Plugin] = {}
        self._factories: dict[str, tuple[PluginFactory, Optional[ConfigProvider]]] = {}
        self._unknown: set[str] = set()

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def unknown(self) -> frozenset[str]:
        """Names that failed discovery and will not be looked up again."""
        return frozenset(self._unknown)

    def config_for_plugin(self, plugin_name: str) -> dict[str, Any]:
        """Return the configured options for *plugin_name*, or an empty dict."""
        return dict(self._config.plugins.get(plugin_name) or {})

    def names(self) -> list[str]:
        """Return every name with a built or pending registration, sorted."""
        return sorted(set(self._plugins) | set(self._factories))

    def configured_names(self) -> list[str]:
        """Return the names in the project's ``plugins`` section, in file order."""
        return list(self._config.plugins)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, plugin: Plugin) -> None:
        """Register a built plugin under its name, replacing any previous entry."""
        name = plugin.name
        self._plugins[name] = plugin
        self._factories.pop(name, None)
        self._unknown.discard(name)
        logger.debug("Registered plugin '%s'", name)

    def register_lazy(
        self,
        name: str,
        factory: PluginFactory,
        config_provider: Optional[ConfigProvider] = None,
    ) -> None:
        """Register *factory* to build plugin *name* on first resolution.

        The factory is called as ``factory(context=..., config=...)``. The
        config is ``config_provider(name)`` when a provider is given,
        otherwise the project's options for *name*; either way ``None``
        becomes ``{}``.
        """
        self._factories[name] = (factory, config_provider)
        self._plugins.pop(name, None)
        self._unknown.discard(name)

    def register_from_module(
        self,
        name: str,
        resolver: Optional[ModuleResolver] = None,
    ) -> Plugin:
        """Find, build, and register the plugin *name* through discovery.

        Args:
            name: Plugin name; matched against module directory names and
                entry point names.
            resolver: Overrides the registry's resolver for this call.

        Returns:
            The registered plugin.

        Raises:
            UnknownPluginError: If no implementation exists or it cannot
                be built. Build failures are chained as ``__cause__``.
        """
        resolver = resolver or self._resolver
        try:
            plugin = resolver.find(name, self._context, self.config_for_plugin(name))
        except PluginError as exc:
            raise UnknownPluginError(name) from exc
        if plugin is None:
            raise UnknownPluginError(name)
        self.register(plugin)
        return plugin

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, name: str) -> Optional[Plugin]:
        """Return the plugin called *name*, building or discovering it if needed.

        Returns ``None`` when the name is unknown. Discovery is attempted at
        most once per name; later calls for a name that was not found return
        ``None`` immediately.
        """
        plugin = self._plugins.get(name)
        if plugin is not None:
            return plugin
        if name in self._factories:
            return self._build_lazy(name)
        if name in self._unknown:
            return None

        plugin = self._discover(name)
        if plugin is None:
            logger.debug("Plugin '%s' not found, caching the miss", name)
            self._unknown.add(name)
            return None
        self.register(plugin)
        return plugin

    def load_all_configured(self) -> list[Plugin]:
        """Resolve every plugin named in the project's ``plugins`` section.

        Raises:
            UnknownPluginError: For the first configured name that cannot be
                resolved.
        """
        loaded: list[Plugin] = []
        for name in self._config.plugins:
            plugin = self.resolve(name)
            if plugin is None:
                raise UnknownPluginError(name)
            loaded.append(plugin)
        return loaded

    def _build_lazy(self, name: str) -> Plugin:
        factory, config_provider = self._factories[name]
        if config_provider is not None:
            config = config_provider(name) or {}
        else:
            config = self.config_for_plugin(name)
        plugin = factory(context=self._context, config=config)
        del self._factories[name]
        self._plugins[name] = plugin
        logger.debug("Built plugin '%s'", name)
        return plugin

    def _discover(self, name: str) -> Optional[Plugin]:
        try:
            return self._resolver.find(name, self._context, self.config_for_plugin(name))
        except PluginError as exc:
            logger.warning("Could not load plugin '%s': %s", name, exc)
            return None
