"""Order journey load test scenarios.

A stateful SequentialTaskSet walks one wholesale order from customer
onboarding through placement, packing, routing and delivery, then drains
the accounting queue.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import credit_approval, customer_data, delivery_date, order_data, product_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderJourneyState


class OrderToDoorJourney(SequentialTaskSet):
    """Onboard -> Stock -> Place -> Route -> Pack -> Dispatch -> Deliver -> Invoice."""

    def on_start(self):
        self.state = OrderJourneyState(delivery_date=delivery_date())

    def _check(self, resp, expected, label):
        if resp.status_code == expected:
            return True
        resp.failure(f"{label} failed: {resp.status_code} - {extract_error_detail(resp)}")
        self.interrupt()
        return False

    @task
    def onboard_customer(self):
        with self.client.post("/customers", json=customer_data(), catch_response=True, name="POST /customers") as resp:
            if not self._check(resp, 201, "Register customer"):
                return
            self.state.customer_id = resp.json()["customer_id"]

        customer = self.state.customer_id
        with self.client.put(
            f"/customers/{customer}/onboarding/complete",
            catch_response=True,
            name="PUT /customers/{id}/onboarding/complete",
        ) as resp:
            self._check(resp, 200, "Complete onboarding")
        with self.client.put(
            f"/customers/{customer}/credit/approve",
            json=credit_approval(),
            catch_response=True,
            name="PUT /customers/{id}/credit/approve",
        ) as resp:
            self._check(resp, 200, "Approve credit")

    @task
    def stock_products(self):
        for _ in range(3):
            with self.client.post("/products", json=product_data(), catch_response=True, name="POST /products") as resp:
                if not self._check(resp, 201, "Register product"):
                    return
                product_id = resp.json()["product_id"]
            with self.client.post(
                f"/products/{product_id}/receipts",
                json={"quantity": 200, "cost_per_unit": 100, "reference": "LT-PO"},
                catch_response=True,
                name="POST /products/{id}/receipts",
            ) as resp:
                if self._check(resp, 201, "Receive stock"):
                    self.state.product_ids.append(product_id)

    @task
    def place_order(self):
        payload = order_data(self.state.customer_id, self.state.product_ids, self.state.delivery_date)
        with self.client.post("/orders", json=payload, catch_response=True, name="POST /orders") as resp:
            if self._check(resp, 201, "Place order"):
                self.state.order_id = resp.json()["order_id"]
                self.state.current_status = "confirmed"

    @task
    def optimize_packing_route(self):
        with self.client.post(
            "/routes/packing",
            json={"delivery_date": self.state.delivery_date, "optimized_by": "lt-manager"},
            catch_response=True,
            name="POST /routes/packing",
        ) as resp:
            self._check(resp, 201, "Optimize packing route")

    @task
    def pack_order(self):
        order_id = self.state.order_id
        with self.client.get(f"/packing/{order_id}", catch_response=True, name="GET /packing/{id}") as resp:
            if not self._check(resp, 200, "Packing session"):
                return
            self.state.skus = [item["sku"] for item in resp.json()["items"]]

        for sku in self.state.skus:
            with self.client.put(
                f"/packing/{order_id}/items/{sku}",
                json={"packed_by": "lt-packer"},
                catch_response=True,
                name="PUT /packing/{id}/items/{sku}",
            ) as resp:
                if not self._check(resp, 200, "Pack item"):
                    return
        self.state.current_status = "ready_for_delivery"

    @task
    def dispatch_and_deliver(self):
        order_id = self.state.order_id
        with self.client.post(
            "/routes/delivery/ensure",
            json={"delivery_date": self.state.delivery_date, "optimized_by": "lt-manager"},
            catch_response=True,
            name="POST /routes/delivery/ensure",
        ) as resp:
            self._check(resp, 200, "Ensure delivery route")
        with self.client.put(
            f"/orders/{order_id}/dispatch",
            json={"actor": "lt-driver", "role": "driver"},
            catch_response=True,
            name="PUT /orders/{id}/dispatch",
        ) as resp:
            if not self._check(resp, 200, "Dispatch"):
                return
        with self.client.put(
            f"/orders/{order_id}/deliver",
            json={"delivered_by": "lt-driver", "role": "driver", "proof_of_delivery": "signed:loadtest"},
            catch_response=True,
            name="PUT /orders/{id}/deliver",
        ) as resp:
            if self._check(resp, 200, "Deliver"):
                self.state.current_status = "delivered"

    @task
    def drain_accounting(self):
        with self.client.post(
            "/accounting/jobs/process",
            json={},
            catch_response=True,
            name="POST /accounting/jobs/process",
        ) as resp:
            self._check(resp, 200, "Process accounting jobs")
        self.interrupt()


class OrderJourneyUser(HttpUser):
    """Simulates a distributor's day for one wholesale buyer at a time."""

    tasks = [OrderToDoorJourney]
    wait_time = between(1, 3)
