"""Abstract base class and hook enumeration for plugwire plugins.

Every plugin must subclass :class:`Plugin`, implement the :attr:`name`
property, and declare the hooks it supports in :attr:`Plugin.supported_hooks`.
The base class defines one method per :class:`HookKind`; each raises
:class:`~plugwire.exceptions.UnsupportedHookError` until a subclass
overrides it, so "does this plugin support hook X" is always answered by
the declared set, never by probing for attributes.

Plugins are constructed with ``(context=..., config=...)``: the shared
:class:`~plugwire.plugins.context.ExecutionContext` and the plugin's own
options from the project's ``plugins`` section.

Example:
    Minimal plugin implementation::

        class EnvPlugin(Plugin):
            supported_hooks = frozenset({HookKind.RESOLVE_REFERENCE})

            @property
            def name(self) -> str:
                return "env"

            def resolve_reference(self, opts):
                return os.environ[opts["var"]]
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Optional

from plugwire.exceptions import InvalidUsageError, UnsupportedHookError

if TYPE_CHECKING:
    from plugwire.models import Target
    from plugwire.plugins.context import ExecutionContext


class HookKind(str, enum.Enum):
    """The closed set of hooks a plugin may implement.

    Adding a member is a change to the plugin contract: :class:`Plugin`
    must gain a method with the same name.
    """

    PUPPET_LIBRARY = "puppet_library"
    RESOLVE_REFERENCE = "resolve_reference"
    SECRET_ENCRYPT = "secret_encrypt"
    SECRET_DECRYPT = "secret_decrypt"
    SECRET_CREATEKEYS = "secret_createkeys"
    VALIDATE_RESOLVE_REFERENCE = "validate_resolve_reference"

    @classmethod
    def parse(cls, value: str) -> HookKind:
        """Convert a hook name from user input, rejecting unknown names.

        Raises:
            InvalidUsageError: If *value* is not one of the known hooks.
        """
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(member.value for member in cls)
            raise InvalidUsageError(
                f"Unknown hook '{value}'. Known hooks: {known}"
            ) from None


class Plugin(ABC):
    """Base class for all plugwire plugins.

    Subclasses must implement :attr:`name` and set
    :attr:`supported_hooks`. The declared hook set is frozen: it is read
    once per dispatch and must not change after construction.

    Args:
        context: Shared execution context for running tasks locally.
        config: This plugin's options from the project configuration.
    """

    supported_hooks: ClassVar[frozenset[HookKind]] = frozenset()

    def __init__(
        self,
        context: Optional[ExecutionContext] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> None:
        self._context = context
        self._config = dict(config or {})

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique plugin name used for registration and dispatch."""
        ...

    @property
    def hooks(self) -> frozenset[HookKind]:
        """The hooks this plugin implements."""
        return self.supported_hooks

    @property
    def config(self) -> dict[str, Any]:
        return self._config

    @property
    def context(self) -> ExecutionContext:
        if self._context is None:
            raise RuntimeError(f"Plugin {self.name} was built without an execution context")
        return self._context

    @property
    def location(self) -> str:
        """Where the implementation was loaded from, for error messages."""
        return type(self).__module__

    def hook(self, kind: HookKind) -> Callable[..., Any]:
        """Return the bound method implementing *kind*.

        Raises:
            UnsupportedHookError: If *kind* is not in :attr:`hooks`.
        """
        if kind not in self.hooks:
            raise UnsupportedHookError(self.name, kind)
        return getattr(self, kind.value)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def puppet_library(
        self,
        opts: dict[str, Any],
        target: Target,
        apply_prep: Any,
    ) -> Callable[[], Any]:
        """Return a deferred action that installs the agent library on *target*."""
        raise UnsupportedHookError(self.name, HookKind.PUPPET_LIBRARY)

    def resolve_reference(self, opts: dict[str, Any]) -> Any:
        """Resolve a reference described by *opts* to a concrete value."""
        raise UnsupportedHookError(self.name, HookKind.RESOLVE_REFERENCE)

    def validate_resolve_reference(self, opts: dict[str, Any]) -> None:
        """Check *opts* before :meth:`resolve_reference` is called with them."""
        raise UnsupportedHookError(self.name, HookKind.VALIDATE_RESOLVE_REFERENCE)

    def secret_encrypt(self, opts: dict[str, Any]) -> str:
        """Encrypt ``opts["plaintext_value"]``."""
        raise UnsupportedHookError(self.name, HookKind.SECRET_ENCRYPT)

    def secret_decrypt(self, opts: dict[str, Any]) -> str:
        """Decrypt ``opts["encrypted_value"]``."""
        raise UnsupportedHookError(self.name, HookKind.SECRET_DECRYPT)

    def secret_createkeys(self, opts: dict[str, Any]) -> str:
        """Generate key material; ``opts["force"]`` overwrites existing keys."""
        raise UnsupportedHookError(self.name, HookKind.SECRET_CREATEKEYS)
