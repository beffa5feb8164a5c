"""Sink that writes notifications to the structured log instead of delivering them."""

import structlog

from storefront.notifications.port import NotificationSink

logger = structlog.get_logger(__name__)


class LogSink(NotificationSink):
    def emit(self, event: str, payload: dict) -> None:
        logger.info("notification_emitted", notification=event, **payload)
