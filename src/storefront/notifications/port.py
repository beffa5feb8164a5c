"""Notification sink port: where checkout announces what happened."""

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    """Fire-and-forget outlet for storefront notifications.

    Implementations may raise; callers log the failure and carry on.
    """

    @abstractmethod
    def emit(self, event: str, payload: dict) -> None:
        """Publish ``event`` (e.g. ``order_created``) with a JSON-able payload."""
        ...
