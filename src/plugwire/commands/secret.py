"""Secret commands -- drive a plugin's ``secret_*`` hooks.

``plugwire secret createkeys``, ``encrypt TEXT``, and ``decrypt TEXT``
dispatch to the hooks of the plugin named by ``--plugin`` (default
``pkcs7``). The hook result is printed to stdout unformatted so it can
be pasted into inventory or data files.
"""

from __future__ import annotations

import typer

from plugwire.commands import dispatcher_for, reported_errors
from plugwire.output import print_data, success
from plugwire.plugins.base import HookKind

secret_app = typer.Typer(no_args_is_help=True)

DEFAULT_SECRET_PLUGIN = "pkcs7"

_PLUGIN_OPTION = typer.Option(
    DEFAULT_SECRET_PLUGIN, "--plugin", help="Plugin providing the secret hooks."
)


@secret_app.command("createkeys")
def secret_createkeys(
    ctx: typer.Context,
    plugin: str = _PLUGIN_OPTION,
    force: bool = typer.Option(False, "--force", help="Overwrite existing keys."),
) -> None:
    """Create encryption keys.

    Example::

        plugwire secret createkeys --force
    """
    with reported_errors():
        hook = dispatcher_for(ctx).get_hook(plugin, HookKind.SECRET_CREATEKEYS)
        result = hook({"force": force, "_plugin": plugin})
        success(str(result))


@secret_app.command("encrypt")
def secret_encrypt(
    ctx: typer.Context,
    plaintext: str = typer.Argument(help="Value to encrypt."),
    plugin: str = _PLUGIN_OPTION,
) -> None:
    """Encrypt a value.

    Example::

        plugwire secret encrypt hunter2 --plugin vault
    """
    with reported_errors():
        hook = dispatcher_for(ctx).get_hook(plugin, HookKind.SECRET_ENCRYPT)
        print_data(str(hook({"plaintext_value": plaintext, "_plugin": plugin})))


@secret_app.command("decrypt")
def secret_decrypt(
    ctx: typer.Context,
    ciphertext: str = typer.Argument(help="Value to decrypt."),
    plugin: str = _PLUGIN_OPTION,
) -> None:
    """Decrypt a value.

    Example::

        plugwire secret decrypt "ENC[PKCS7,...]"
    """
    with reported_errors():
        hook = dispatcher_for(ctx).get_hook(plugin, HookKind.SECRET_DECRYPT)
        print_data(str(hook({"encrypted_value": ciphertext, "_plugin": plugin})))
