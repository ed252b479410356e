"""Minimal inventory handing out targets by name.

The plugin execution context only ever asks for ``localhost``; other names
are created on demand with the configured default transport so the same
inventory can back ``puppet_library`` calls made against real targets.
"""

from __future__ import annotations

from typing import Optional, Union

from plugwire.models import ProjectConfig, Target

LOCALHOST = "localhost"


class Inventory:
    """Name -> :class:`~plugwire.models.Target` lookup.

    Args:
        config: Project configuration (reserved for target defaults).
        default_transport: Transport assigned to targets other than
            ``localhost``.
    """

    def __init__(
        self,
        config: Optional[ProjectConfig] = None,
        default_transport: str = "ssh",
    ) -> None:
        self._config = config
        self._default_transport = default_transport
        self._targets: dict[str, Target] = {
            LOCALHOST: Target(name=LOCALHOST, transport="local"),
        }

    def get_target(self, name: str) -> Target:
        if name not in self._targets:
            self._targets[name] = Target(name=name, transport=self._default_transport)
        return self._targets[name]

    def get_targets(self, names: Union[str, list[str]]) -> list[Target]:
        """Return targets for a comma-separated string or a list of names."""
        if isinstance(names, str):
            names = [name.strip() for name in names.split(",") if name.strip()]
        return [self.get_target(name) for name in names]
