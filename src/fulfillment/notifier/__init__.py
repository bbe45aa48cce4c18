"""Notifier abstraction — pluggable notification sink integration."""

import os

from fulfillment.domain import logger

_notifier_instance = None


def get_notifier():
    """Return the configured notifier (singleton).

    Uses FakeNotifier by default. In production, configure via the NOTIFIER
    environment variable.
    """
    global _notifier_instance
    if _notifier_instance is None:
        adapter = os.environ.get("NOTIFIER", "fake")
        if adapter == "fake":
            from fulfillment.notifier.fake_adapter import FakeNotifier

            _notifier_instance = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier: {adapter}")
    return _notifier_instance


def reset_notifier():
    """Reset the notifier singleton (useful for testing)."""
    global _notifier_instance
    _notifier_instance = None


def send_notification(event_type: str, payload: dict) -> dict:
    """Notify and log the outcome; a failed send is reported, not raised."""
    result = get_notifier().notify(event_type, payload)
    if result.get("status") == "sent":
        logger.info("Notification sent", event_type=event_type, notification_id=result.get("notification_id"))
    else:
        logger.warning("Notification failed", event_type=event_type, error=result.get("error"))
    return result
