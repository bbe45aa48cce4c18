"""FreshRoute load testing: Locust entry point.

Usage:
    # All users (web UI):
    locust -f loadtests/locustfile.py

    # Order journeys only:
    locust -f loadtests/locustfile.py OrderJourneyUser

    # Headless, journeys plus packers contending on the same orders:
    locust -f loadtests/locustfile.py OrderJourneyUser ConcurrentPackerUser --headless \
           -u 30 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time
from collections import Counter

from locust import events

from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.order_journey import OrderJourneyUser  # noqa: F401
from loadtests.scenarios.packing import ConcurrentPackerUser  # noqa: F401

logger = logging.getLogger("loadtest")

# (endpoint name, status code) -> count; 409s on packing are contention, not bugs
failures: Counter = Counter()


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    if exception:
        failures[(name, "exception")] += 1
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        failures[(name, response.status_code)] += 1
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, extract_error_detail(response))


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    failures.clear()
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')} against {environment.host}\n")


@events.test_stop.add_listener
def on_test_stop(**_kwargs):
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    if failures:
        print("[LOADTEST] Error responses by endpoint:")
        for (name, status), count in failures.most_common():
            print(f"  {status:>9}  {count:>6}  {name}")
    print()
