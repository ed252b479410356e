"""Typer application and console-script entry point for plugwire.

The root app carries the global flags (``--project``, output format,
verbosity) and mounts the ``plugin`` and ``secret`` command groups. The
:func:`main` function is the console script declared in
``pyproject.toml``: it maps :class:`~plugwire.exceptions.PlugwireError`
to its exit code and writes a crash log for anything unexpected.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from plugwire import __version__
from plugwire.commands.plugin import plugin_app
from plugwire.commands.secret import secret_app
from plugwire.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="plugwire",
    help="Inspect and drive plugwire plugins.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(plugin_app, name="plugin", help="List, inspect, and resolve plugins.")
app.add_typer(secret_app, name="secret", help="Encrypt and decrypt secrets with a plugin.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"plugwire {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, no_color: bool) -> None:
    """Send ``plugwire.*`` log records to stderr; DEBUG with ``--verbose``."""
    logger = logging.getLogger("plugwire")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(
        RichHandler(
            console=Console(stderr=True, no_color=no_color),
            show_path=False,
            show_time=verbose,
        )
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    project: Optional[str] = typer.Option(
        None, "--project", help="Project directory (default: $PLUGWIRE_PROJECT or cwd)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Install output preferences and stash shared options on ``ctx.obj``."""
    from plugwire.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose, no_color)

    ctx.ensure_object(dict)
    ctx.obj["project"] = project
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under the data directory and return its path."""
    from plugwire.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """Run the CLI.

    :class:`~plugwire.exceptions.PlugwireError` exits with the error's
    ``exit_code``; any other exception is written to a crash log and
    exits with :data:`~plugwire.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from plugwire.exceptions import PlugwireError
        from plugwire.output import error

        if isinstance(exc, PlugwireError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
