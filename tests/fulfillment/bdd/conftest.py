"""Shared BDD fixtures and step definitions for the fulfillment engine."""

import pytest
from fulfillment.errors import AlreadyApproved, CreditExceeded, InvalidTransition, MissingCoordinates, NotAuthorized
from fulfillment.order.order import OrderStatus
from fulfillment.order.status import CancelOrder, cancel_order
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

_ERRORS = {
    "an invalid transition": InvalidTransition,
    "not authorized": NotAuthorized,
    "already approved": AlreadyApproved,
    "exceeding credit": CreditExceeded,
    "missing coordinates": MissingCoordinates,
}


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def context():
    """Ids created by the scenario, most recent order last."""
    return {"customer_id": None, "product_id": None, "orders": []}


@pytest.fixture()
def attempt(error):
    """Run an action, keeping any validation error for a later Then step."""

    def _attempt(fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationError as exc:
            error["exc"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a confirmed order with {count:d} lines"))
def confirmed_order_with_lines(build, context, count):
    context["orders"].append(build.confirmed_order(quantities=tuple(range(1, count + 1))))


@given(parsers.cfparse("a product with {stock:d} units in stock"))
def product_with_stock(build, context, stock):
    context["product_id"] = build.product(stock=stock)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the last order is cancelled")
def cancel_last_order(context, attempt):
    attempt(
        cancel_order,
        CancelOrder(order_id=context["orders"][-1], reason="Customer request", cancelled_by="mgr-1", role="manager"),
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the last order is "{status}"'))
def last_order_status(build, context, status):
    assert build.order(context["orders"][-1]).status == OrderStatus(status).value


@then(parsers.cfparse("the action fails as {kind}"))
@then(parsers.cfparse("the action fails with {kind}"))
@then(parsers.cfparse("the order is rejected for {kind}"))
@then(parsers.cfparse("the run fails for {kind}"))
def action_fails(error, kind):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], _ERRORS[kind]), f"Got {type(error['exc']).__name__}: {error['exc'].messages}"


@then(parsers.cfparse("the stock on hand is {stock:d}"))
def stock_on_hand(build, context, stock):
    assert build.product_of(context["product_id"]).current_stock == stock
