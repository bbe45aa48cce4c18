"""BDD tests for the backorder approval workflow."""

import json

from fulfillment.inventory.stock import ReceiveStock
from fulfillment.order.backorder import ApproveBackorder, RejectBackorder, approve_backorder, reject_backorder
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/backorder_approval.feature")


@given(parsers.cfparse("a customer ordered {quantity:d} units of it"))
def customer_ordered(build, context, quantity):
    context["customer_id"] = build.customer()
    context["orders"].append(build.place(context["customer_id"], [(context["product_id"], quantity)]))


@when(parsers.cfparse("{quantity:d} units are received into stock"))
def receive_stock(context, quantity):
    current_domain.process(
        ReceiveStock(product_id=context["product_id"], quantity=quantity, cost_per_unit=400, reference="PO-BDD"),
        asynchronous=False,
    )


@when(parsers.cfparse("a manager approves {quantity:d} units"))
def approve_partially(context, attempt, quantity):
    attempt(
        approve_backorder,
        ApproveBackorder(
            order_id=context["orders"][-1],
            approved_by="mgr-1",
            role="manager",
            approved_quantities=json.dumps({context["product_id"]: quantity}),
        ),
    )


@when("a manager approves the whole order")
def approve_fully(context, attempt):
    attempt(
        approve_backorder,
        ApproveBackorder(order_id=context["orders"][-1], approved_by="mgr-1", role="manager"),
    )


@when(parsers.cfparse('a manager rejects the backorder because "{reason}"'))
def reject(context, attempt, reason):
    attempt(
        reject_backorder,
        RejectBackorder(order_id=context["orders"][-1], reason=reason, rejected_by="mgr-1", role="manager"),
    )


@then(parsers.cfparse('the backorder is "{status}"'))
def backorder_status(build, context, status):
    assert build.order(context["orders"][-1]).backorder_status == status
