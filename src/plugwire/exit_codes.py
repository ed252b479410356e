"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~plugwire.exceptions.PlugwireError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ plugwire plugin resolve vault -o path=secret/db
    $ echo $?
    10   # EXIT_PLUGIN_ERROR -- the plugin could not be found or failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or parameters."""

EXIT_NOT_FOUND = 4
"""A named task or resource could not be found."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred talking to an external service."""

EXIT_PLUGIN_ERROR = 10
"""A plugin failed to load, was not found, or failed while executing a hook."""

EXIT_TASK_FAILURE = 11
"""A task ran but reported failure on one or more targets."""
