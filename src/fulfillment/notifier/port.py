"""Notification sink port — abstract interface for outbound notifications.

The engine decides *that* something must be told to a customer or an
operator; message content and channel selection belong to the adapter.
"""

from abc import ABC, abstractmethod


class NotificationSinkPort(ABC):
    """Abstract interface for notification adapters."""

    @abstractmethod
    def notify(self, event_type: str, payload: dict) -> dict:
        """Hand one notification to the outside world.

        Returns:
            dict with keys: notification_id, status ("sent" or "failed"), error (optional)
        """
        ...
