"""Protean Engine runner for the fulfillment domain.

In production, event handlers run here rather than inside the request:
customer notifications, accounting enqueue on delivery and credit approval,
and the escalation of failed accounting jobs. The engine drains the outbox
into Redis Streams and dispatches each stream to its handlers.

Usage:
    freshroute-engine
    freshroute-engine --test-mode    # Drain pending messages and exit
"""

import argparse
import asyncio

from protean.server.engine import Engine

from fulfillment.utils.logging import get_logger

logger = get_logger(__name__)


async def run(test_mode: bool = False, debug: bool = False):
    from fulfillment.domain import fulfillment

    fulfillment.init()
    logger.info("Starting fulfillment engine", test_mode=test_mode, debug=debug)
    await Engine(fulfillment, test_mode=test_mode, debug=debug).run()


def main():
    parser = argparse.ArgumentParser(description="FreshRoute event engine")
    parser.add_argument("--test-mode", action="store_true", help="Process pending messages and exit")
    parser.add_argument("--debug", action="store_true", help="Log every dispatched message")
    args = parser.parse_args()

    asyncio.run(run(test_mode=args.test_mode, debug=args.debug))


if __name__ == "__main__":
    main()
