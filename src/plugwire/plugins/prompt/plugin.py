"""Prompt plugin -- resolve a reference by asking the user.

:class:`PromptPlugin` shows ``opts["message"]`` and reads the answer
without echoing it, which makes it suitable for passwords that should not
live in project files::

    password:
      _plugin: prompt
      message: Enter the database password
"""

from __future__ import annotations

import getpass
from typing import Any

from plugwire.exceptions import PluginError
from plugwire.plugins.base import HookKind, Plugin


class PromptPlugin(Plugin):
    """Read a hidden value from the terminal."""

    supported_hooks = frozenset(
        {HookKind.RESOLVE_REFERENCE, HookKind.VALIDATE_RESOLVE_REFERENCE}
    )

    @property
    def name(self) -> str:
        return "prompt"

    def validate_resolve_reference(self, opts: dict[str, Any]) -> None:
        if not opts.get("message"):
            raise PluginError("Prompt requires a 'message'")

    def resolve_reference(self, opts: dict[str, Any]) -> str:
        self.validate_resolve_reference(opts)
        return getpass.getpass(f"{opts['message']}: ")
