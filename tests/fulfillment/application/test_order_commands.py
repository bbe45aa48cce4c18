"""Application tests for status changes, cancellation, delivery and quantity corrections."""

import pytest
from fulfillment.accounting.job import AccountingJob, JobType
from fulfillment.customer.credit import CreditLedger
from fulfillment.errors import InvalidTransition, NotAuthorized
from fulfillment.order.delivery import ReturnToWarehouse, return_to_warehouse
from fulfillment.order.modification import CorrectItemQuantity, correct_item_quantity
from fulfillment.order.order import OrderStatus
from fulfillment.order.status import CancelOrder, UpdateOrderStatus, cancel_order, update_order_status
from protean import current_domain
from protean.exceptions import ValidationError


def _cancel(order_id, role="admin", reason="Customer closed for the day"):
    cancel_order(CancelOrder(order_id=order_id, reason=reason, cancelled_by="admin-1", role=role))


class TestUpdateOrderStatus:
    def test_legal_transition(self, build):
        order_id = build.confirmed_order()
        status = update_order_status(
            UpdateOrderStatus(order_id=order_id, status="packing", changed_by="packer-1", role="packer")
        )
        assert status == OrderStatus.PACKING.value
        assert build.order(order_id).status == OrderStatus.PACKING.value

    def test_illegal_transition_leaves_order_untouched(self, build):
        order_id = build.confirmed_order()
        with pytest.raises(InvalidTransition):
            update_order_status(
                UpdateOrderStatus(order_id=order_id, status="delivered", changed_by="admin-1", role="admin")
            )
        order = build.order(order_id)
        assert order.status == OrderStatus.CONFIRMED.value
        assert len(order.history()) == 2

    def test_role_without_permission(self, build):
        order_id = build.confirmed_order()
        with pytest.raises(NotAuthorized):
            update_order_status(
                UpdateOrderStatus(order_id=order_id, status="packing", changed_by="drv-1", role="driver")
            )

    def test_unknown_status(self, build):
        order_id = build.confirmed_order()
        with pytest.raises(ValidationError) as exc:
            update_order_status(
                UpdateOrderStatus(order_id=order_id, status="lost", changed_by="admin-1", role="admin")
            )
        assert "status" in exc.value.messages


class TestCancelOrder:
    def test_cancel_restores_stock_exactly(self, build):
        customer_id = build.customer()
        product_id = build.product(stock=20)
        order_id = build.place(customer_id, [(product_id, 7)])
        assert build.product_of(product_id).current_stock == 13

        _cancel(order_id)

        order = build.order(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Customer closed for the day"
        assert order.stock_reserved is False
        assert build.product_of(product_id).current_stock == 20

    def test_cancel_restores_credit_exactly(self, build):
        customer_id = build.customer(credit_limit=100000)
        product_id = build.product(unit_price=1999, tax_rate=1000)
        ledger = CreditLedger()
        before = ledger.available_credit(build.customer_of(customer_id))
        order_id = build.place(customer_id, [(product_id, 3)])
        assert ledger.available_credit(build.customer_of(customer_id)) < before

        _cancel(order_id)

        assert ledger.available_credit(build.customer_of(customer_id)) == before

    def test_cancel_during_packing_restores_stock(self, build):
        customer_id = build.customer()
        product_id = build.product(stock=10)
        other_id = build.product(stock=10)
        order_id = build.place(customer_id, [(product_id, 4), (other_id, 1)])
        from fulfillment.packing.controller import PackingSessionController

        PackingSessionController().mark_packed(order_id, build.product_of(product_id).sku, "packer-1")
        assert build.order(order_id).status == OrderStatus.PACKING.value

        _cancel(order_id)
        assert build.product_of(product_id).current_stock == 10

    def test_cancel_requires_reason(self, build):
        order_id = build.confirmed_order()
        with pytest.raises(ValidationError):
            _cancel(order_id, reason="  ")

    def test_cancelled_order_is_terminal(self, build):
        order_id = build.confirmed_order()
        _cancel(order_id)
        with pytest.raises(InvalidTransition):
            _cancel(order_id)

    def test_packer_cannot_cancel(self, build):
        order_id = build.confirmed_order()
        with pytest.raises(NotAuthorized):
            _cancel(order_id, role="packer")
        assert build.order(order_id).status == OrderStatus.CONFIRMED.value


class TestDelivery:
    def test_dispatch_records_time(self, build):
        order_id = build.ready_order()
        build.out_for_delivery(order_id)
        order = build.order(order_id)
        assert order.status == OrderStatus.OUT_FOR_DELIVERY.value
        assert order.delivery.dispatched_at is not None

    def test_dispatch_before_ready_is_refused(self, build):
        order_id = build.confirmed_order()
        with pytest.raises(InvalidTransition):
            build.out_for_delivery(order_id)

    def test_return_to_warehouse(self, build):
        order_id = build.ready_order()
        build.out_for_delivery(order_id)
        return_to_warehouse(
            ReturnToWarehouse(order_id=order_id, reason="Shop closed", returned_by="drv-1", role="driver")
        )
        order = build.order(order_id)
        assert order.status == OrderStatus.READY_FOR_DELIVERY.value
        assert order.delivery.return_reason == "Shop closed"
        # Still reserved, the goods are back on the shelf for this order
        assert order.stock_reserved is True

    def test_delivery_finalizes_stock(self, build):
        customer_id = build.customer()
        product_id = build.product(stock=10)
        order_id = build.place(customer_id, [(product_id, 3)])
        build.pack_all(order_id)
        build.out_for_delivery(order_id)
        build.deliver(order_id)

        order = build.order(order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.stock_finalized is True
        assert order.delivery.proof_of_delivery == "POD-1"
        assert build.product_of(product_id).current_stock == 7

    def test_delivery_enqueues_invoice_job(self, build):
        order_id = build.ready_order()
        build.out_for_delivery(order_id)
        build.deliver(order_id)

        jobs = current_domain.repository_for(AccountingJob).find_for_entity("order", order_id)
        assert [job.job_type for job in jobs] == [JobType.CREATE_INVOICE.value]

    def test_delivered_order_cannot_be_cancelled(self, build):
        order_id = build.ready_order()
        build.out_for_delivery(order_id)
        build.deliver(order_id)
        with pytest.raises(InvalidTransition):
            _cancel(order_id)

    def test_delivered_order_keeps_consuming_nothing(self, build):
        customer_id = build.customer(credit_limit=100000)
        product_id = build.product()
        order_id = build.place(customer_id, [(product_id, 2)])
        build.pack_all(order_id)
        build.out_for_delivery(order_id)
        build.deliver(order_id)
        available = CreditLedger().available_credit(build.customer_of(customer_id))
        assert available == 100000


class TestCorrectItemQuantity:
    def test_correction_moves_reservation_and_money(self, build):
        customer_id = build.customer()
        product_id = build.product(stock=10, unit_price=1000, tax_rate=1000)
        order_id = build.place(customer_id, [(product_id, 4)])
        item = build.order(order_id).sorted_items()[0]

        correct_item_quantity(
            CorrectItemQuantity(order_id=order_id, item_id=item.id, quantity=2, corrected_by="packer-1")
        )

        order = build.order(order_id)
        corrected = order.sorted_items()[0]
        assert corrected.quantity == 2
        assert corrected.reserved_quantity == 2
        assert order.totals.total == 2200
        assert build.product_of(product_id).current_stock == 8

    def test_increase_needs_stock(self, build):
        customer_id = build.customer()
        product_id = build.product(stock=5)
        order_id = build.place(customer_id, [(product_id, 4)])
        item = build.order(order_id).sorted_items()[0]
        with pytest.raises(ValidationError):
            correct_item_quantity(
                CorrectItemQuantity(order_id=order_id, item_id=item.id, quantity=9, corrected_by="packer-1")
            )
        assert build.order(order_id).sorted_items()[0].quantity == 4

    def test_correction_after_delivery_is_refused(self, build):
        order_id = build.ready_order()
        build.out_for_delivery(order_id)
        build.deliver(order_id)
        item = build.order(order_id).sorted_items()[0]
        with pytest.raises(ValidationError):
            correct_item_quantity(
                CorrectItemQuantity(order_id=order_id, item_id=item.id, quantity=1, corrected_by="admin-1")
            )
