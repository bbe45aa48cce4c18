"""Enqueue accounting work when orders are delivered and credit is approved.

These handlers run after the source aggregate has been committed, so a sink
failure is logged and the delivery or approval stands.
"""

from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from fulfillment.accounting import get_accounting_sink
from fulfillment.accounting.job import AccountingJob, JobType
from fulfillment.customer.customer import Customer
from fulfillment.customer.events import CreditApproved
from fulfillment.domain import fulfillment, logger
from fulfillment.order.events import OrderStatusChanged
from fulfillment.order.order import Order, OrderStatus


def _enqueue_once(job_type: JobType, entity_type: str, entity_id: str) -> None:
    existing = current_domain.repository_for(AccountingJob).find_for_entity(entity_type, entity_id)
    if any(job.job_type == job_type.value for job in existing):
        logger.info("Accounting job already queued", job_type=job_type.value, entity_id=entity_id)
        return
    try:
        get_accounting_sink().enqueue(job_type.value, entity_type, entity_id)
    except Exception as exc:
        logger.error(
            "Accounting enqueue failed",
            job_type=job_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            error=str(exc),
        )


@fulfillment.event_handler(part_of=Order)
class OrderAccountingHandler:
    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        if event.to_status != OrderStatus.DELIVERED.value:
            return
        _enqueue_once(JobType.CREATE_INVOICE, "order", str(event.order_id))


@fulfillment.event_handler(part_of=Customer)
class CustomerAccountingHandler:
    @handle(CreditApproved)
    def on_credit_approved(self, event: CreditApproved) -> None:
        _enqueue_once(JobType.SYNC_CONTACT, "customer", str(event.customer_id))
