"""Usage reporting for plugin hook dispatch.

Every successful :meth:`~plugwire.plugins.hooks.HookDispatcher.get_hook`
call reports one event naming the hook and the plugin. Reporting is
observational: a client must never raise into the dispatcher.

Bundled plugin names (see
:data:`~plugwire.plugins.registry.BUILTIN_PLUGINS`) are recorded as-is;
names of third-party plugins are recorded as ``"Other"`` so that private
module names do not leave the machine.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

MAX_EVENTS = 1000


@dataclass(frozen=True)
class UsageEvent:
    """One reported usage of bundled content."""

    mode: str
    name: str


class Analytics:
    """Base analytics client. Reports nothing."""

    def report_bundled_content(self, mode: str, name: str) -> None:
        """Record that bundled content *name* was used in *mode* (e.g. ``"Plugin resolve_reference"``)."""


class NoopAnalytics(Analytics):
    """Analytics client used when reporting is disabled."""


class RecordingAnalytics(Analytics):
    """Keeps the most recent usage events in memory and logs them at debug level.

    Args:
        bundled: Names reported verbatim; all others become ``"Other"``.
        max_events: How many events to keep; older ones are discarded.
    """

    def __init__(
        self,
        bundled: Optional[Iterable[str]] = None,
        max_events: int = MAX_EVENTS,
    ) -> None:
        self._bundled = frozenset(bundled or ())
        self._events: deque[UsageEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    @property
    def events(self) -> list[UsageEvent]:
        with self._lock:
            return list(self._events)

    def report_bundled_content(self, mode: str, name: str) -> None:
        reported = name if name in self._bundled else "Other"
        event = UsageEvent(mode=mode, name=reported)
        with self._lock:
            self._events.append(event)
        logger.debug("Usage: %s %s", mode, reported)
