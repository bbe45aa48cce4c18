"""Accounting integration — job sink and gateway adapters."""

import os

_sink_instance = None
_gateway_instance = None


def get_accounting_sink():
    """Return the configured job sink (singleton); ACCOUNTING_SINK selects it."""
    global _sink_instance
    if _sink_instance is None:
        adapter = os.environ.get("ACCOUNTING_SINK", "queue")
        if adapter == "queue":
            from fulfillment.accounting.sink import QueueAccountingSink

            _sink_instance = QueueAccountingSink()
        else:
            raise ValueError(f"Unknown accounting sink: {adapter}")
    return _sink_instance


def get_accounting_gateway():
    """Return the configured accounting gateway (singleton).

    Uses FakeAccountingGateway by default. In production, configure via the
    ACCOUNTING_GATEWAY environment variable.
    """
    global _gateway_instance
    if _gateway_instance is None:
        adapter = os.environ.get("ACCOUNTING_GATEWAY", "fake")
        if adapter == "fake":
            from fulfillment.accounting.fake_adapter import FakeAccountingGateway

            _gateway_instance = FakeAccountingGateway()
        else:
            raise ValueError(f"Unknown accounting gateway: {adapter}")
    return _gateway_instance


def reset_accounting():
    """Reset the sink and gateway singletons (useful for testing)."""
    global _sink_instance, _gateway_instance
    _sink_instance = None
    _gateway_instance = None
