"""Task lookup, parameter handling, and execution.

These are the collaborators the plugin execution context needs to run a
task against the synthetic ``localhost`` target:

* :class:`~plugwire.tasks.compiler.LocalPal` -- opens compiler sessions
  that look up task signatures on the modulepath.
* :func:`~plugwire.tasks.params.validate_params` and
  :func:`~plugwire.tasks.params.wrap_sensitive` -- check and protect task
  parameters.
* :class:`~plugwire.tasks.executor.Executor` -- runs tasks on targets
  with bounded concurrency.
* :class:`~plugwire.tasks.inventory.Inventory` -- hands out targets.
"""

from plugwire.tasks.compiler import Compiler, LocalPal, Pal, TaskCompiler
from plugwire.tasks.executor import Executor, LocalTransport, Transport, run_task
from plugwire.tasks.inventory import LOCALHOST, Inventory
from plugwire.tasks.params import Sensitive, validate_params, wrap_sensitive

__all__ = [
    "Compiler",
    "Executor",
    "Inventory",
    "LOCALHOST",
    "LocalPal",
    "LocalTransport",
    "Pal",
    "Sensitive",
    "TaskCompiler",
    "Transport",
    "run_task",
    "validate_params",
    "wrap_sensitive",
]
