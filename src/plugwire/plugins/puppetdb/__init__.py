"""PuppetDB plugin and client.

The client is built by the host from the project's ``puppetdb`` settings
and handed to the plugin directly; it is the one plugin that does not go
through the ``(context, config)`` construction contract.

See Also:
    :class:`~plugwire.plugins.puppetdb.plugin.PuppetdbPlugin`
    :class:`~plugwire.plugins.puppetdb.client.PuppetdbClient`
"""

from plugwire.plugins.puppetdb.client import PuppetdbClient
from plugwire.plugins.puppetdb.plugin import PuppetdbPlugin

__all__ = ["PuppetdbClient", "PuppetdbPlugin"]
