"""Strategies for finding plugin implementations that were not registered up front.

The registry falls back to a :class:`ModuleResolver` when it is asked for a
name it does not know. Resolvers return the constructed plugin, or ``None``
when they have nothing by that name; they raise
:class:`~plugwire.exceptions.PluginError` only when an implementation
exists but cannot be built.

Two sources are searched by default (see :func:`default_resolver`):

1. Content modules on the project's modulepath that ship a
   ``plugwire_plugin.yaml`` manifest (:class:`ModulepathResolver`).
2. Installed distributions declaring an entry point in the
   ``plugwire.plugins`` group (:class:`EntryPointResolver`)::

       [project.entry-points."plugwire.plugins"]
       vault = "plugwire_vault.plugin:VaultPlugin"
"""

from __future__ import annotations

import importlib.metadata
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from plugwire.exceptions import PluginError
from plugwire.plugins.base import Plugin
from plugwire.plugins.module import MANIFEST_FILENAME, ModulePlugin

if TYPE_CHECKING:
    from plugwire.plugins.context import ExecutionContext

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "plugwire.plugins"
"""The entry-point group name used for plugin discovery."""


class ModuleResolver(ABC):
    """Finds and builds a plugin implementation by name."""

    @abstractmethod
    def find(
        self,
        name: str,
        context: ExecutionContext,
        config: dict[str, Any],
    ) -> Optional[Plugin]:
        """Return the plugin called *name*, or ``None`` if there is none.

        Raises:
            PluginError: If an implementation exists but cannot be built.
        """
        ...


class ModulepathResolver(ModuleResolver):
    """Build :class:`~plugwire.plugins.module.ModulePlugin` instances from content modules.

    Args:
        modulepath: Directories searched in order; the first module
            directory whose name matches wins.
    """

    def __init__(self, modulepath: list[Path]) -> None:
        self._modulepath = list(modulepath)

    def find(
        self,
        name: str,
        context: ExecutionContext,
        config: dict[str, Any],
    ) -> Optional[Plugin]:
        for entry in self._modulepath:
            module_dir = entry / name
            if not module_dir.is_dir():
                continue
            if not (module_dir / MANIFEST_FILENAME).is_file():
                logger.debug("Module '%s' at %s does not contain a plugin", name, module_dir)
                return None
            logger.debug("Loading plugin '%s' from module %s", name, module_dir)
            return ModulePlugin.load(name, module_dir, context=context, config=config)
        return None


class EntryPointResolver(ModuleResolver):
    """Build plugins registered as ``plugwire.plugins`` entry points.

    The entry point must load a :class:`~plugwire.plugins.base.Plugin`
    subclass (or any factory) accepting ``context`` and ``config`` keyword
    arguments.
    """

    def __init__(self, group: str = ENTRY_POINT_GROUP) -> None:
        self._group = group

    def _entry_points(self) -> list[importlib.metadata.EntryPoint]:
        return list(importlib.metadata.entry_points().select(group=self._group))

    def find(
        self,
        name: str,
        context: ExecutionContext,
        config: dict[str, Any],
    ) -> Optional[Plugin]:
        matches = [ep for ep in self._entry_points() if ep.name == name]
        if not matches:
            return None
        ep = matches[0]
        try:
            factory = ep.load()
            plugin = factory(context=context, config=config)
        except Exception as exc:
            raise PluginError(f"Failed to load plugin '{name}' from {ep.value}: {exc}") from exc

        if not isinstance(plugin, Plugin):
            raise PluginError(f"Entry point {ep.value} did not produce a plugin")
        if plugin.name != name:
            raise PluginError(
                f"Entry point '{name}' produced a plugin named '{plugin.name}'"
            )
        logger.debug("Loaded plugin '%s' from entry point %s", name, ep.value)
        return plugin


class CompositeResolver(ModuleResolver):
    """Ask several resolvers in order and return the first match."""

    def __init__(self, resolvers: list[ModuleResolver]) -> None:
        self._resolvers = list(resolvers)

    def find(
        self,
        name: str,
        context: ExecutionContext,
        config: dict[str, Any],
    ) -> Optional[Plugin]:
        for resolver in self._resolvers:
            plugin = resolver.find(name, context, config)
            if plugin is not None:
                return plugin
        return None


def default_resolver(modulepath: list[Path]) -> ModuleResolver:
    """Modulepath content modules first, then installed distributions."""
    return CompositeResolver([ModulepathResolver(modulepath), EntryPointResolver()])
