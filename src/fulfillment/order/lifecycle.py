"""Order lifecycle — the one place status changes take effect.

Every status change in the engine goes through ``OrderLifecycle.transition``,
which asks the aggregate to validate and record the change and then applies
the inventory consequences inside the same unit of work:

* first entry into ``confirmed`` reserves stock for every line;
* ``cancelled`` restores exactly what was reserved (credit follows, since it
  is derived from status);
* ``delivered`` finalizes the reservation. The accounting job is enqueued by
  ``fulfillment.accounting.order_events`` after commit, so a failing sink
  never rolls a delivery back.
"""

from protean.utils.globals import current_domain

from fulfillment.domain import logger
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.locks import order_key, product_key
from fulfillment.order.order import Order, OrderStatus


class OrderLifecycle:
    def __init__(self, ledger: InventoryLedger | None = None):
        self.ledger = ledger or InventoryLedger()

    def transition(self, order: Order, target: OrderStatus, actor: str, role: str, note: str | None = None):
        previous = order.transition_to(target, actor, role, note)

        if target == OrderStatus.CONFIRMED and not order.stock_reserved:
            self.ledger.reserve(order)
        elif target == OrderStatus.CANCELLED:
            order.cancellation_reason = note
            self.ledger.restore(order, note or "Order cancelled")
        elif target == OrderStatus.DELIVERED:
            order.finalize_stock()

        logger.info(
            "Order status changed",
            order_id=str(order.id),
            order_number=order.order_number,
            from_status=previous.value,
            to_status=target.value,
            actor=actor,
            role=role,
        )
        return previous


def order_lock_keys(order_id) -> list[str]:
    """Lock keys for a mutation that may move stock: the order and its products."""
    order = current_domain.repository_for(Order).get(order_id)
    return [order_key(order.id), *(product_key(item.product_id) for item in order.items or [])]
