import json
from datetime import date

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

DELIVERY_DAY = date(2026, 11, 2)

# Melbourne suburbs around the default warehouse, one cluster per zone.
ZONE_POINTS = {
    "north": [(-37.7440, 144.9650), (-37.7200, 144.9600), (-37.7000, 144.9700)],
    "east": [(-37.8150, 145.0300), (-37.8200, 145.0800), (-37.8100, 145.1200)],
    "south": [(-37.8700, 144.9800), (-37.9000, 145.0000), (-37.9300, 145.0100)],
    "west": [(-37.8000, 144.9000), (-37.7900, 144.8500), (-37.7800, 144.8000)],
}


@pytest.fixture(scope="session")
def fulfillment_bed():
    from fulfillment.domain import fulfillment

    bed = DomainFixture(fulfillment)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(fulfillment_bed):
    with fulfillment_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


class Builder:
    """Walks customers, products and orders into the state a test needs."""

    def __init__(self):
        self._sku_counter = 0

    # -- customers ---------------------------------------------------------
    def customer(self, credit_limit=1_000_000, approved=True, onboarded=True, name="Fitzroy Grocer"):
        from fulfillment.customer.account import ApproveCredit, CompleteOnboarding, RegisterCustomer

        customer_id = current_domain.process(
            RegisterCustomer(business_name=name, email="orders@fitzroygrocer.com.au", contact_name="Sam Lee"),
            asynchronous=False,
        )
        if onboarded:
            current_domain.process(CompleteOnboarding(customer_id=customer_id), asynchronous=False)
        if approved:
            current_domain.process(
                ApproveCredit(
                    customer_id=customer_id,
                    credit_limit=credit_limit,
                    payment_terms="NET30",
                    approved_by="admin-1",
                    role="admin",
                ),
                asynchronous=False,
            )
        return customer_id

    # -- products ----------------------------------------------------------
    def product(self, unit_price=1000, stock=100, tax_rate=1000, sku=None, low_stock_threshold=0):
        from fulfillment.inventory.stock import ReceiveStock, RegisterProduct

        self._sku_counter += 1
        product_id = current_domain.process(
            RegisterProduct(
                sku=sku or f"SKU-{self._sku_counter:03d}",
                name=f"Produce line {self._sku_counter}",
                unit_price=unit_price,
                tax_rate=tax_rate,
                low_stock_threshold=low_stock_threshold,
            ),
            asynchronous=False,
        )
        if stock:
            current_domain.process(
                ReceiveStock(product_id=product_id, quantity=stock, cost_per_unit=unit_price // 2, reference="PO-1"),
                asynchronous=False,
            )
        return product_id

    # -- orders ------------------------------------------------------------
    @staticmethod
    def address(zone="north", index=0, coordinates=True):
        latitude, longitude = ZONE_POINTS[zone][index % len(ZONE_POINTS[zone])]
        address = {
            "street": f"{10 + index} Smith St",
            "suburb": "Fitzroy",
            "state": "VIC",
            "postcode": "3065",
            "zone": zone,
        }
        if coordinates:
            address["latitude"] = latitude
            address["longitude"] = longitude
        return address

    def place(
        self,
        customer_id,
        lines,
        zone="north",
        index=0,
        coordinates=True,
        delivery_date=DELIVERY_DAY,
        placed_by="buyer-1",
        role="customer",
        bypass_credit_limit=False,
        bypass_reason=None,
    ):
        """Place an order; ``lines`` is a list of ``(product_id, quantity)``."""
        from fulfillment.order.placement import PlaceOrder, place_order

        return place_order(
            PlaceOrder(
                customer_id=customer_id,
                items=json.dumps([{"product_id": pid, "quantity": qty} for pid, qty in lines]),
                delivery_address=json.dumps(self.address(zone, index, coordinates)),
                requested_delivery_date=delivery_date,
                placed_by=placed_by,
                role=role,
                bypass_credit_limit=bypass_credit_limit,
                bypass_reason=bypass_reason,
            )
        )

    def confirmed_order(self, zone="north", index=0, quantities=(2,), coordinates=True, delivery_date=DELIVERY_DAY):
        customer_id = self.customer()
        lines = [(self.product(), qty) for qty in quantities]
        return self.place(customer_id, lines, zone=zone, index=index, coordinates=coordinates, delivery_date=delivery_date)

    def backorder(self, requested=10, stock=4, unit_price=1000, tax_rate=1000):
        customer_id = self.customer()
        product_id = self.product(unit_price=unit_price, stock=stock, tax_rate=tax_rate)
        order_id = self.place(customer_id, [(product_id, requested)])
        return order_id, product_id

    # -- walking the state machine -----------------------------------------
    def pack_all(self, order_id):
        from fulfillment.packing.controller import PackingSessionController

        controller = PackingSessionController()
        for item in self.order(order_id).sorted_items():
            controller.mark_packed(order_id, item.sku, packed_by="packer-1")

    def ready_order(self, **kwargs):
        order_id = self.confirmed_order(**kwargs)
        self.pack_all(order_id)
        return order_id

    def out_for_delivery(self, order_id):
        from fulfillment.order.delivery import DispatchOrder, dispatch_order

        dispatch_order(DispatchOrder(order_id=order_id, dispatched_by="driver-1", role="driver"))

    def deliver(self, order_id):
        from fulfillment.order.delivery import CompleteDelivery, complete_delivery

        complete_delivery(
            CompleteDelivery(order_id=order_id, delivered_by="driver-1", role="driver", proof_of_delivery="POD-1")
        )

    # -- reads -------------------------------------------------------------
    @staticmethod
    def order(order_id):
        from fulfillment.order.order import Order

        return current_domain.repository_for(Order).get(order_id)

    @staticmethod
    def product_of(product_id):
        from fulfillment.inventory.product import Product

        return current_domain.repository_for(Product).get(product_id)

    @staticmethod
    def customer_of(customer_id):
        from fulfillment.customer.customer import Customer

        return current_domain.repository_for(Customer).get(customer_id)


@pytest.fixture()
def build():
    return Builder()


@pytest.fixture()
def notifier():
    from fulfillment.notifier import get_notifier

    return get_notifier()


@pytest.fixture()
def solver():
    from fulfillment.solver import get_route_solver

    return get_route_solver()


@pytest.fixture()
def gateway():
    from fulfillment.accounting import get_accounting_gateway

    return get_accounting_gateway()
