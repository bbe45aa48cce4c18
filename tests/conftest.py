import os
from pathlib import Path

import pytest

# Test layer -> marker, matched on the directory under tests/fulfillment/
_LAYER_MARKERS = {
    "domain": pytest.mark.domain,
    "application": pytest.mark.application,
    "integration": pytest.mark.integration,
    "bdd": pytest.mark.bdd,
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain reads ``domain.toml``.

    The domain itself is initialized and activated by ``DomainFixture`` in
    ``tests/fulfillment/conftest.py``.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Mark tests by layer; API tests are also marked slow unless marked fast."""
    for item in items:
        layer = Path(item.fspath).parent.name
        marker = _LAYER_MARKERS.get(layer)
        if marker is None:
            continue
        item.add_marker(marker)
        if layer == "integration" and not any(m.name == "fast" for m in item.iter_markers()):
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_adapters():
    """Give every test fresh adapters, settings and lock registry."""
    from fulfillment.accounting import reset_accounting
    from fulfillment.config import reset_settings
    from fulfillment.locks import locks
    from fulfillment.notifier import reset_notifier
    from fulfillment.solver import reset_route_solver

    yield

    reset_route_solver()
    reset_notifier()
    reset_accounting()
    reset_settings()
    locks.clear()
