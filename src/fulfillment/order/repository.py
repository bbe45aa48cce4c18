"""Repository for the Order aggregate."""

from datetime import date, datetime

from fulfillment.domain import fulfillment
from fulfillment.order.order import Order, OrderStatus


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


@fulfillment.repository(part_of=Order)
class OrderRepository:
    """Order queries used by the ledgers and the sequencing engine."""

    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def find_by_customer(self, customer_id) -> list[Order]:
        return self._dao.query.filter(customer_id=str(customer_id)).all().items

    def find_by_status(self, *statuses: OrderStatus) -> list[Order]:
        orders = []
        for status in statuses:
            orders.extend(self._dao.query.filter(status=status.value).all().items)
        return orders

    def find_for_delivery_date(self, delivery_date, *statuses: OrderStatus) -> list[Order]:
        """Orders due on ``delivery_date`` in any of ``statuses``, oldest first."""
        wanted = as_date(delivery_date)
        orders = [o for o in self.find_by_status(*statuses) if as_date(o.requested_delivery_date) == wanted]
        return sorted(orders, key=lambda o: o.order_number)
