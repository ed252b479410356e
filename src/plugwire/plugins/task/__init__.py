"""Task plugin.

Implements ``resolve_reference`` by running a task on ``localhost`` and
``puppet_library`` by running a task on the target being prepared.

See Also:
    :class:`~plugwire.plugins.task.plugin.TaskPlugin`
"""

from plugwire.plugins.task.plugin import TaskPlugin

__all__ = ["TaskPlugin"]
