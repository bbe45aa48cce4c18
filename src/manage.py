"""FreshRoute management CLI.

Database schema management plus the periodic engine jobs, for use from cron
or an operator shell.

Usage:
    python src/manage.py setup-db                       # Create all tables
    python src/manage.py drop-db                        # Drop all tables
    python src/manage.py optimize-route 2025-03-14      # Packing route for a date
    python src/manage.py optimize-route 2025-03-14 --delivery
    python src/manage.py sweep-idle                     # Release idle packing sessions
    python src/manage.py process-accounting             # Drain due accounting jobs
"""

import argparse
import sys
from datetime import date


def _domain():
    from fulfillment.domain import fulfillment

    fulfillment.init()
    return fulfillment


def setup_database():
    from fulfillment.utils.db import setup_db

    print("Initializing fulfillment domain...")
    domain = _domain()
    print("Creating fulfillment database schema...")
    providers = setup_db(domain)
    print(f"  schema ready ({', '.join(providers) or 'no relational providers'}).")


def drop_database():
    from fulfillment.utils.db import drop_db

    print("Initializing fulfillment domain...")
    domain = _domain()
    print("Dropping fulfillment database schema...")
    providers = drop_db(domain)
    print(f"  schema dropped ({', '.join(providers) or 'no relational providers'}).")


def optimize_route(delivery_date: date, delivery: bool, optimized_by: str):
    from fulfillment.routing.optimizer import optimize_delivery_route, optimize_packing_route

    domain = _domain()
    with domain.domain_context():
        run = optimize_delivery_route if delivery else optimize_packing_route
        route_id = run(delivery_date, optimized_by)
    print(f"Route {route_id} stored for {delivery_date}.")


def sweep_idle():
    from fulfillment.packing.controller import PackingSessionController

    domain = _domain()
    with domain.domain_context():
        released = PackingSessionController().sweep_idle()
    print(f"Released {released} idle packing session(s).")


def process_accounting():
    from fulfillment.accounting.worker import ProcessAccountingJobs

    domain = _domain()
    with domain.domain_context():
        summary = domain.process(ProcessAccountingJobs(), asynchronous=False)
    print(", ".join(f"{key}={value}" for key, value in summary.items()))


def main():
    parser = argparse.ArgumentParser(description="FreshRoute management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    route_parser = subparsers.add_parser("optimize-route", help="Sequence a delivery date")
    route_parser.add_argument("delivery_date", type=date.fromisoformat)
    route_parser.add_argument("--delivery", action="store_true", help="Ready orders only (delivery route)")
    route_parser.add_argument("--by", default="system", help="Recorded as the optimizing user")

    subparsers.add_parser("sweep-idle", help="Revert idle packing sessions to confirmed")
    subparsers.add_parser("process-accounting", help="Submit due accounting jobs")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "optimize-route":
        optimize_route(args.delivery_date, args.delivery, args.by)
    elif args.command == "sweep-idle":
        sweep_idle()
    elif args.command == "process-accounting":
        process_accounting()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
