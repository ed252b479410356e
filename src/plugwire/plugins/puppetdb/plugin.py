"""PuppetDB plugin -- resolve target lists from PQL queries.

A reference such as::

    targets:
      _plugin: puppetdb
      query: "inventory[certname, facts] { facts.os.family = 'RedHat' }"
      target_mapping:
        name: certname
        config:
          ssh:
            host: facts.networking.ip

resolves to one mapping per result row. ``target_mapping`` values are
dotted paths into the row; nested mappings are preserved. Without a
``target_mapping`` every row maps to ``{"uri": <certname>}``.
"""

from __future__ import annotations

from typing import Any

from plugwire.exceptions import PluginError
from plugwire.plugins.base import HookKind, Plugin
from plugwire.plugins.puppetdb.client import PuppetdbClient

DEFAULT_TARGET_MAPPING: dict[str, Any] = {"uri": "certname"}


def _lookup(row: Any, path: str) -> Any:
    value = row
    for segment in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(segment)
    return value


def _apply_mapping(row: dict[str, Any], mapping: dict[str, Any]) -> dict[str, Any]:
    target: dict[str, Any] = {}
    for key, spec in mapping.items():
        if isinstance(spec, dict):
            target[key] = _apply_mapping(row, spec)
        else:
            target[key] = _lookup(row, str(spec))
    return target


class PuppetdbPlugin(Plugin):
    """Look up targets in PuppetDB.

    Unlike other plugins this one is built from a ready client rather than
    from ``(context, config)``.

    Args:
        client: The PuppetDB client configured by the host.
    """

    supported_hooks = frozenset(
        {HookKind.RESOLVE_REFERENCE, HookKind.VALIDATE_RESOLVE_REFERENCE}
    )

    def __init__(self, client: PuppetdbClient) -> None:
        super().__init__()
        self._client = client

    @property
    def name(self) -> str:
        return "puppetdb"

    @property
    def client(self) -> PuppetdbClient:
        return self._client

    def validate_resolve_reference(self, opts: dict[str, Any]) -> None:
        if not opts.get("query"):
            raise PluginError("The puppetdb plugin requires a 'query'")
        mapping = opts.get("target_mapping")
        if mapping is not None and not isinstance(mapping, dict):
            raise PluginError("The puppetdb plugin's 'target_mapping' must be a mapping")

    def resolve_reference(self, opts: dict[str, Any]) -> list[dict[str, Any]]:
        self.validate_resolve_reference(opts)
        mapping = opts.get("target_mapping") or DEFAULT_TARGET_MAPPING
        rows = self._client.query(opts["query"])
        return [
            _apply_mapping(row, mapping) if isinstance(row, dict) else {"uri": row}
            for row in rows
        ]
