"""Packing session controller — concurrent pack toggles on shared orders.

Several packers may work one order at once. Each toggle is an optimistic
read-modify-write: read the packing version, send the toggle with that
version under the order's lock, and if another packer got there first, read
again and retry. Toggles on different skus therefore both land; the packed
set is a set, so the retry simply re-applies the caller's change on top.
"""

from datetime import UTC, datetime

from protean.utils.globals import current_domain

from fulfillment.config import EngineSettings, get_settings
from fulfillment.domain import logger
from fulfillment.errors import ConcurrentModification
from fulfillment.locks import order_key, process_locked
from fulfillment.order.order import Order, OrderStatus
from fulfillment.packing.packing import MarkItemPacked, ReleaseIdlePacking

_QUEUE_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PACKING, OrderStatus.READY_FOR_DELIVERY)


class PackingSessionController:
    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or get_settings()

    @property
    def orders(self):
        return current_domain.repository_for(Order)

    def _current_version(self, order_id) -> int:
        return self.orders.get(order_id).current_packing_version()

    def mark_item(self, order_id, sku: str, packed_by: str, packed: bool = True, role: str = "packer") -> int:
        """Toggle one sku; returns the packing version after the write.

        Retries on version conflicts up to ``packing_max_attempts`` times,
        then lets ``ConcurrentModification`` propagate.
        """
        attempts = self.settings.packing_max_attempts
        attempt = 0
        while True:
            attempt += 1
            expected = self._current_version(order_id)
            command = MarkItemPacked(
                order_id=str(order_id),
                sku=sku,
                packed=packed,
                packed_by=packed_by,
                role=role,
                expected_version=expected,
            )
            try:
                return process_locked(command, [order_key(order_id)])
            except ConcurrentModification as exc:
                if attempt >= attempts:
                    logger.warning(
                        "Packing conflict not resolved",
                        order_id=str(order_id),
                        sku=sku,
                        attempts=attempts,
                    )
                    raise
                logger.info(
                    "Packing version conflict, retrying",
                    order_id=str(order_id),
                    sku=sku,
                    expected=exc.expected,
                    actual=exc.actual,
                    attempt=attempt,
                )

    def mark_packed(self, order_id, sku: str, packed_by: str, role: str = "packer") -> int:
        return self.mark_item(order_id, sku, packed_by, packed=True, role=role)

    def mark_unpacked(self, order_id, sku: str, packed_by: str, role: str = "packer") -> int:
        return self.mark_item(order_id, sku, packed_by, packed=False, role=role)

    def release_if_idle(self, order_id, as_of: datetime | None = None) -> bool:
        return bool(
            process_locked(ReleaseIdlePacking(order_id=str(order_id), as_of=as_of), [order_key(order_id)])
        )

    def sweep_idle(self, as_of: datetime | None = None) -> int:
        """Release every idle packing session; returns how many were reverted."""
        as_of = as_of or datetime.now(UTC)
        released = 0
        for order in self.orders.find_by_status(OrderStatus.PACKING):
            try:
                if self.release_if_idle(order.id, as_of):
                    released += 1
            except Exception as e:
                logger.error(
                    "Idle packing release failed",
                    order_id=str(order.id),
                    error=str(e),
                )
        if released:
            logger.info("Idle packing sweep complete", released=released)
        return released

    def session(self, order_id) -> dict:
        """Current packing state of one order, releasing it first if idle."""
        self.release_if_idle(order_id)
        order = self.orders.get(order_id)
        packed = order.packed_skus()
        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "status": order.status,
            "version": order.current_packing_version(),
            "packing_sequence": order.packing.packing_sequence if order.packing else None,
            "items": [
                {
                    "item_id": str(item.id),
                    "sku": item.sku,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "packed": item.sku in packed,
                }
                for item in order.sorted_items()
            ],
            "paused_at": order.packing.paused_at if order.packing else None,
            "notes": order.packing.notes if order.packing else None,
        }

    def queue(self, delivery_date) -> list[Order]:
        """The day's packable orders in LIFO packing order (unsequenced last)."""
        orders = self.orders.find_for_delivery_date(delivery_date, *_QUEUE_STATUSES)
        return sorted(
            orders,
            key=lambda o: (
                o.packing is None or o.packing.packing_sequence is None,
                (o.packing.packing_sequence or 0) if o.packing else 0,
                o.order_number,
            ),
        )
