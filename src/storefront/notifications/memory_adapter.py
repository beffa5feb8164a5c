"""In-memory sink that records notifications for test assertions."""

from storefront.notifications.port import NotificationSink


class MemorySink(NotificationSink):
    def __init__(self):
        self.emitted: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Make subsequent emits succeed or raise."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def emit(self, event: str, payload: dict) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        self.emitted.append({"event": event, "payload": payload})

    def events(self, name: str) -> list[dict]:
        return [record["payload"] for record in self.emitted if record["event"] == name]

    def reset(self):
        self.emitted.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
