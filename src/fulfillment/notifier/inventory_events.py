"""Operator digest for products that dropped below their threshold."""

from protean.utils.mixins import handle

from fulfillment.domain import fulfillment, logger
from fulfillment.inventory.events import LowStockDetected
from fulfillment.inventory.product import Product
from fulfillment.notifier import send_notification


@fulfillment.event_handler(part_of=Product)
class LowStockNotificationHandler:
    @handle(LowStockDetected)
    def on_low_stock_detected(self, event: LowStockDetected) -> None:
        try:
            send_notification(
                "low_stock_digest",
                {
                    "product_id": str(event.product_id),
                    "sku": event.sku,
                    "name": event.name,
                    "current_stock": event.current_stock,
                    "threshold": event.threshold,
                },
            )
        except Exception as exc:
            logger.error("Low stock notification failed", sku=event.sku, error=str(exc))
