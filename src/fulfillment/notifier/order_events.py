"""Customer-facing notifications for order events.

Runs after the order's unit of work commits; a failing notifier is logged and
never affects the order.
"""

from protean.utils.mixins import handle

from fulfillment.domain import fulfillment, logger
from fulfillment.notifier import send_notification
from fulfillment.order.events import BackorderApproved, BackorderFlagged, BackorderRejected, OrderStatusChanged
from fulfillment.order.order import Order, OrderStatus

CUSTOMER_FACING_STATUSES = {
    OrderStatus.CONFIRMED.value: "order_confirmed",
    OrderStatus.OUT_FOR_DELIVERY.value: "order_out_for_delivery",
    OrderStatus.DELIVERED.value: "order_delivered",
    OrderStatus.CANCELLED.value: "order_cancelled",
}


def _safe_notify(event_type: str, payload: dict) -> None:
    try:
        send_notification(event_type, payload)
    except Exception as exc:
        logger.error("Notification handler failed", event_type=event_type, error=str(exc))


@fulfillment.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        event_type = CUSTOMER_FACING_STATUSES.get(event.to_status)
        if event_type is None:
            return
        # Returned orders re-entering ready, and reverts to confirmed, are internal
        if event.to_status == OrderStatus.CONFIRMED.value and event.from_status not in (
            OrderStatus.PENDING.value,
            OrderStatus.AWAITING_APPROVAL.value,
        ):
            return
        _safe_notify(
            event_type,
            {
                "order_id": str(event.order_id),
                "order_number": event.order_number,
                "customer_id": str(event.customer_id),
                "total": event.total,
                "note": event.note,
            },
        )

    @handle(BackorderFlagged)
    def on_backorder_flagged(self, event: BackorderFlagged) -> None:
        _safe_notify(
            "backorder_pending",
            {
                "order_id": str(event.order_id),
                "order_number": event.order_number,
                "customer_id": str(event.customer_id),
                "shortfalls": event.shortfalls,
            },
        )

    @handle(BackorderApproved)
    def on_backorder_approved(self, event: BackorderApproved) -> None:
        _safe_notify(
            "backorder_approved",
            {
                "order_id": str(event.order_id),
                "order_number": event.order_number,
                "customer_id": str(event.customer_id),
                "partial": event.partial,
                "total": event.total,
            },
        )

    @handle(BackorderRejected)
    def on_backorder_rejected(self, event: BackorderRejected) -> None:
        _safe_notify(
            "backorder_rejected",
            {
                "order_id": str(event.order_id),
                "order_number": event.order_number,
                "customer_id": str(event.customer_id),
                "reason": event.reason,
            },
        )
