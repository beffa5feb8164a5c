"""Notification sink factory.

Provides get_sink() / set_sink() to swap implementations:
- MemorySink for development and testing (default)
- LogSink when ``NOTIFICATION_SINK=log``
"""

import os

from storefront.notifications.log_adapter import LogSink
from storefront.notifications.memory_adapter import MemorySink
from storefront.notifications.port import NotificationSink

_current_sink: NotificationSink | None = None


def get_sink() -> NotificationSink:
    """Return the current notification sink, building it from the environment on first use."""
    global _current_sink
    if _current_sink is None:
        kind = os.getenv("NOTIFICATION_SINK", "memory").lower()
        _current_sink = LogSink() if kind == "log" else MemorySink()
    return _current_sink


def set_sink(sink: NotificationSink) -> None:
    """Override the active sink (useful for tests)."""
    global _current_sink
    _current_sink = sink


def reset_sink() -> None:
    global _current_sink
    _current_sink = None
