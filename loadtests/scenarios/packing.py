"""Concurrent packer load test scenarios.

Several packers pull the same day's queue and tick off lines at once,
which exercises the packing session's version check and retry loop.
"""

import random

from locust import HttpUser, between, task

from loadtests.data_generators import delivery_date
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import PackerState


class ConcurrentPackerUser(HttpUser):
    """Picks a random order from the queue and toggles one of its lines."""

    wait_time = between(0.2, 1.0)

    def on_start(self):
        self.state = PackerState(delivery_date=delivery_date())

    @task(1)
    def refresh_queue(self):
        with self.client.get(
            f"/packing/queue/{self.state.delivery_date}",
            catch_response=True,
            name="GET /packing/queue/{date}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Queue failed: {resp.status_code} - {extract_error_detail(resp)}")
                return
            self.state.queue = [entry["order_id"] for entry in resp.json()]

    @task(5)
    def toggle_line(self):
        if not self.state.queue:
            return
        order_id = random.choice(self.state.queue)
        with self.client.get(f"/packing/{order_id}", name="GET /packing/{id}") as resp:
            if resp.status_code != 200:
                return
            items = resp.json()["items"]
        if not items:
            return

        item = random.choice(items)
        with self.client.put(
            f"/packing/{order_id}/items/{item['sku']}",
            json={"packed_by": f"lt-packer-{random.randint(1, 8)}", "packed": not item["packed"]},
            catch_response=True,
            name="PUT /packing/{id}/items/{sku}",
        ) as resp:
            # 409 after the retry budget is spent is an expected outcome under contention
            if resp.status_code in (200, 409):
                resp.success()
            else:
                resp.failure(f"Toggle failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task(1)
    def sweep_idle_sessions(self):
        self.client.post("/packing/idle-sweep", json={}, name="POST /packing/idle-sweep")
