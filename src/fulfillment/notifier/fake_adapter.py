"""Fake notifier — records notifications in memory for test assertions."""

from uuid import uuid4

from fulfillment.notifier.port import NotificationSinkPort


class FakeNotifier(NotificationSinkPort):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake notifier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, event_type: str, payload: dict) -> dict:
        if not self.should_succeed:
            return {"notification_id": None, "status": "failed", "error": self.failure_reason}

        notification_id = f"ntf-{uuid4().hex[:12]}"
        self.sent.append({"notification_id": notification_id, "event_type": event_type, "payload": payload})
        return {"notification_id": notification_id, "status": "sent"}

    def of_type(self, event_type: str) -> list[dict]:
        return [n for n in self.sent if n["event_type"] == event_type]

    def reset(self):
        """Clear recorded notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
