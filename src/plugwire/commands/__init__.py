"""CLI sub-commands for plugwire.

* :mod:`~plugwire.commands.plugin` -- list, inspect, and resolve plugins.
* :mod:`~plugwire.commands.secret` -- drive the ``secret_*`` hooks.

Each module exports a :class:`typer.Typer` sub-application mounted by
:mod:`plugwire.app`. Commands report :class:`~plugwire.exceptions.PlugwireError`
on stderr and exit with the error's ``exit_code``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from plugwire.exceptions import PlugwireError
from plugwire.output import error
from plugwire.plugins.bootstrap import from_project
from plugwire.plugins.hooks import HookDispatcher


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn :class:`PlugwireError` into an error message and a matching exit code."""
    try:
        yield
    except PlugwireError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def dispatcher_for(ctx: typer.Context) -> HookDispatcher:
    """Build the dispatcher for the project selected by the root ``--project`` flag."""
    obj = ctx.obj or {}
    return from_project(obj.get("project"))
