"""Inventory ledger — stock checks, reservations and restorations for orders.

The ledger works on order line items inside the caller's unit of work: it
loads every product an order touches, validates the whole order before
touching any of them, and records on each line exactly how much stock was
taken so a cancellation can give back precisely that amount.
"""

from collections import OrderedDict

from protean.utils.globals import current_domain

from fulfillment.domain import logger
from fulfillment.errors import InsufficientStock
from fulfillment.inventory.product import Product


class InventoryLedger:
    def __init__(self):
        self.products = current_domain.repository_for(Product)

    @staticmethod
    def _quantities_by_product(lines) -> "OrderedDict[str, int]":
        totals = OrderedDict()
        for product_id, quantity in lines:
            totals[str(product_id)] = totals.get(str(product_id), 0) + quantity
        return totals

    def assess(self, lines) -> list[dict]:
        """Shortfall report for ``(product_id, quantity)`` lines.

        Returns one ``{product_id, sku, requested, available, shortfall}``
        record per short product, in first-seen line order. An empty list
        means every line can be reserved.
        """
        shortfalls = []
        for product_id, requested in self._quantities_by_product(lines).items():
            product = self.products.get(product_id)
            if requested > product.current_stock:
                shortfalls.append(
                    {
                        "product_id": product_id,
                        "sku": product.sku,
                        "requested": requested,
                        "available": product.current_stock,
                        "shortfall": requested - product.current_stock,
                    }
                )
        return shortfalls

    def reserve(self, order) -> None:
        """Decrement stock for every unreserved line of ``order``.

        All-or-nothing: raises ``InsufficientStock`` listing each short
        product before any product is changed.
        """
        pending = [item for item in order.items if not item.reserved_quantity]
        needed = self._quantities_by_product((item.product_id, item.quantity) for item in pending)
        if not needed:
            return

        products = {product_id: self.products.get(product_id) for product_id in needed}
        shortages = [
            {
                "product_id": product_id,
                "sku": products[product_id].sku,
                "requested": quantity,
                "available": products[product_id].current_stock,
            }
            for product_id, quantity in needed.items()
            if quantity > products[product_id].current_stock
        ]
        if shortages:
            raise InsufficientStock(shortages)

        for product_id, quantity in needed.items():
            products[product_id].reserve(order.id, quantity)
            self.products.add(products[product_id])
        for item in pending:
            order.record_reservation(item.id, item.quantity)

        logger.info(
            "Stock reserved",
            order_id=str(order.id),
            products=len(needed),
            units=sum(needed.values()),
        )

    def adjust_line(self, order, item, new_quantity: int) -> None:
        """Move a reserved line's reservation to ``new_quantity``."""
        difference = new_quantity - item.reserved_quantity
        if difference == 0:
            return
        product = self.products.get(item.product_id)
        if difference > 0:
            product.reserve(order.id, difference)
        else:
            product.restore(order.id, -difference, "Quantity corrected")
        self.products.add(product)
        order.record_reservation(item.id, new_quantity)

    def restore(self, order, reason: str) -> int:
        """Give back everything reserved for ``order``; returns units restored."""
        reserved = self._quantities_by_product(
            (item.product_id, item.reserved_quantity) for item in order.items if item.reserved_quantity
        )
        for product_id, quantity in reserved.items():
            product = self.products.get(product_id)
            product.restore(order.id, quantity, reason)
            self.products.add(product)
        for item in order.items:
            if item.reserved_quantity:
                order.record_reservation(item.id, 0)

        if reserved:
            logger.info(
                "Stock restored",
                order_id=str(order.id),
                products=len(reserved),
                units=sum(reserved.values()),
                reason=reason,
            )
        return sum(reserved.values())
