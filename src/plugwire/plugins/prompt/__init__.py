"""Prompt plugin.

Resolves references by asking the user for a hidden value.

See Also:
    :class:`~plugwire.plugins.prompt.plugin.PromptPlugin`
"""

from plugwire.plugins.prompt.plugin import PromptPlugin

__all__ = ["PromptPlugin"]
