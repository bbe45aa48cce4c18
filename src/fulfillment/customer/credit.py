"""Credit ledger — how much a customer can still order on account.

Available credit is never stored. It is the approved limit minus the totals
of the customer's orders that currently consume credit (pending through out
for delivery). Backorders awaiting approval do not count until approved, and
a cancelled order stops counting the moment its status changes, so
cancellation gives back exactly the amount confirmation took.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.customer.customer import Customer
from fulfillment.domain import logger
from fulfillment.errors import CreditExceeded
from fulfillment.order.order import CREDIT_CONSUMING_STATUSES, CreditBypass, Order, OrderStatus
from fulfillment.roles import assert_privileged


class CreditLedger:
    def __init__(self):
        self.orders = current_domain.repository_for(Order)

    def outstanding(self, customer_id, exclude_order_id=None) -> int:
        """Sum of totals of the customer's credit-consuming orders."""
        return sum(
            order.totals.total
            for order in self.orders.find_by_customer(customer_id)
            if OrderStatus(order.status) in CREDIT_CONSUMING_STATUSES
            and (exclude_order_id is None or str(order.id) != str(exclude_order_id))
        )

    def available_credit(self, customer: Customer, exclude_order_id=None) -> int:
        return customer.credit_limit - self.outstanding(customer.id, exclude_order_id)

    def check_and_reserve(
        self,
        customer: Customer,
        order_total: int,
        actor: str,
        role: str,
        bypass_reason: str | None = None,
        bypass: bool = False,
    ) -> CreditBypass | None:
        """Admit an order total against the customer's available credit.

        The order itself is the reservation: once it is saved in a
        credit-consuming status it counts against the limit. Returns a
        ``CreditBypass`` audit record when a privileged actor pushes an order
        through over the limit, ``None`` otherwise. Raises ``CreditExceeded``
        when the total does not fit and no valid bypass was given.
        """
        if bypass:
            assert_privileged(role, "bypass credit limits")
            if not bypass_reason or not bypass_reason.strip():
                raise ValidationError({"bypass_reason": ["A justification is required to bypass the credit limit"]})

        available = self.available_credit(customer)
        if order_total <= available:
            return None
        if not bypass:
            logger.info(
                "Credit limit exceeded",
                customer_id=str(customer.id),
                available=available,
                requested=order_total,
            )
            raise CreditExceeded(available=available, requested=order_total)

        logger.warning(
            "Credit limit bypassed",
            customer_id=str(customer.id),
            available=available,
            requested=order_total,
            approved_by=actor,
            reason=bypass_reason,
        )
        return CreditBypass(reason=bypass_reason.strip(), approved_by=actor, approved_at=datetime.now(UTC))
