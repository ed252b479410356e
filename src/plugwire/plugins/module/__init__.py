"""Plugins provided by content modules on the modulepath.

A module becomes a plugin by shipping a ``plugwire_plugin.yaml`` manifest.
Its hooks are implemented by the module's tasks.

See Also:
    :class:`~plugwire.plugins.module.plugin.ModulePlugin`
    :class:`~plugwire.plugins.discovery.ModulepathResolver`
"""

from plugwire.plugins.module.plugin import MANIFEST_FILENAME, ModuleManifest, ModulePlugin

__all__ = ["MANIFEST_FILENAME", "ModuleManifest", "ModulePlugin"]
