"""In-process lock registry for read-modify-write on shared documents.

A command handler runs inside a unit of work that commits after the handler
returns, so a lock taken inside the handler would be released before the
write lands. Callers therefore hold the locks around the whole
``current_domain.process`` call. Keys are plain strings (``order:<id>``,
``product:<id>``); multiple keys are always acquired in sorted order so two
batches touching overlapping documents cannot deadlock.
"""

import threading
from collections import defaultdict
from contextlib import ExitStack, contextmanager

from protean.utils.globals import current_domain

NUMBERING_KEY = "sequence:order_number"


def order_key(order_id) -> str:
    return f"order:{order_id}"


def product_key(product_id) -> str:
    return f"product:{product_id}"


class LockRegistry:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.RLock)

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            return self._locks[key]

    @contextmanager
    def hold(self, *keys):
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self._lock_for(key))
            yield

    def clear(self):
        with self._guard:
            self._locks.clear()


locks = LockRegistry()


def process_locked(command, keys):
    """Process ``command`` synchronously while holding ``keys``."""
    with locks.hold(*keys):
        return current_domain.process(command, asynchronous=False)


def customer_key(customer_id) -> str:
    return f"customer:{customer_id}"
