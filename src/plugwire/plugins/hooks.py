"""Hook dispatch -- turn "hook H of plugin P" into a callable.

This module provides :class:`HookDispatcher`. Callers name a plugin and a
:class:`~plugwire.plugins.base.HookKind`; the dispatcher resolves the plugin
through the :class:`~plugwire.plugins.registry.PluginRegistry`, checks
the hook against the plugin's declared set, reports the usage, and hands
back a callable bound to the plugin.

Hook names arriving as strings (CLI flags, reference documents) must be
converted with :meth:`HookKind.parse <plugwire.plugins.base.HookKind.parse>`
first; passing anything else to :meth:`HookDispatcher.get_hook` is a
programming error.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Optional

from plugwire.analytics import Analytics, NoopAnalytics
from plugwire.exceptions import ExecutionError, PluginError, UnknownPluginError, UnsupportedHookError
from plugwire.plugins.base import HookKind, Plugin
from plugwire.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


class HookDispatcher:
    """Resolve plugins and return their hooks as plain callables.

    Args:
        registry: Where plugins are looked up.
        analytics: Receives one usage event per successful dispatch.

    Example::

        dispatcher = HookDispatcher(registry)
        decrypt = dispatcher.get_hook("pkcs7", HookKind.SECRET_DECRYPT)
        plaintext = decrypt({"encrypted_value": ciphertext})
    """

    def __init__(
        self,
        registry: PluginRegistry,
        analytics: Optional[Analytics] = None,
    ) -> None:
        self._registry = registry
        self._analytics = analytics or NoopAnalytics()

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    @property
    def analytics(self) -> Analytics:
        return self._analytics

    def get_hook(self, plugin_name: str, hook: HookKind) -> Callable[..., Any]:
        """Return hook *hook* of plugin *plugin_name* as a callable.

        The returned callable passes its arguments to the plugin's hook
        method. :class:`~plugwire.exceptions.PluginError` raised by the hook
        propagates unchanged; any other exception is wrapped in
        :class:`~plugwire.exceptions.ExecutionError` naming the plugin and
        its location.

        Raises:
            TypeError: If *hook* is not a :class:`HookKind`.
            UnknownPluginError: If the plugin cannot be resolved.
            UnsupportedHookError: If the plugin does not declare *hook*.
        """
        if not isinstance(hook, HookKind):
            raise TypeError(f"hook must be a HookKind, got {hook!r}")

        plugin = self._registry.resolve(plugin_name)
        if plugin is None:
            raise UnknownPluginError(plugin_name)
        if hook not in plugin.hooks:
            raise UnsupportedHookError(plugin_name, hook)

        self._analytics.report_bundled_content(f"Plugin {hook.value}", plugin_name)
        logger.debug("Dispatching %s to plugin '%s'", hook.value, plugin_name)
        return _bind(plugin, hook)

    def supports(self, plugin_name: str, hook: HookKind) -> bool:
        """Return True if *plugin_name* resolves and declares *hook*."""
        plugin = self._registry.resolve(plugin_name)
        return plugin is not None and hook in plugin.hooks


def _bind(plugin: Plugin, hook: HookKind) -> Callable[..., Any]:
    method = plugin.hook(hook)

    @functools.wraps(method)
    def invoke(*args: Any, **kwargs: Any) -> Any:
        try:
            return method(*args, **kwargs)
        except PluginError:
            raise
        except Exception as exc:
            raise ExecutionError(str(exc), plugin.name, plugin.location) from exc

    return invoke
