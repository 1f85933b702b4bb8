"""
Flock Ledger CLI Utility

Command-line entry points for database setup and the daily feed sync.

Usage Examples:
    # Create the database and tables
    flockledger init-db

    # Recalculate intake for every active cycle (scheduled daily run)
    flockledger sync-feed

    # Recalculate intake for one officer's cycles
    flockledger sync-feed --officer officer-17
"""

import argparse
import logging
import sys

from flockledger.services import feed_service
from flockledger.services.access import ActorContext
from flockledger.services.database import close_connections, initialize_app_database
from flockledger.services.exceptions import ServiceError

logger = logging.getLogger(__name__)


def init_db():
    """Create the database file and tables."""
    initialize_app_database()
    print("Database ready.")
    return 0


def sync_feed(officer_id=None):
    """Run the non-forced intake recalculation."""
    try:
        if officer_id:
            result = feed_service.sync_feed(ActorContext(actor_id=officer_id))
        else:
            result = feed_service.sync_all_feed()
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Updated {result['updated_count']} cycle(s).")
    for change in result["cycles"]:
        print(
            f"  {change['cycle_name']}: age {change['age']}, "
            f"intake {change['previous_intake']:.2f} -> {change['intake']:.2f} bags"
        )
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        prog="flockledger",
        description="Poultry cycle and sales ledger utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flockledger init-db
  flockledger sync-feed
  flockledger sync-feed --officer officer-17
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output from the services"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create the database and tables")

    sync_parser = subparsers.add_parser(
        "sync-feed", help="Bring active cycles up to today's age and intake"
    )
    sync_parser.add_argument(
        "--officer",
        dest="officer_id",
        help="Only cycles of farmers managed by this officer (default: all)",
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "init-db":
            return init_db()

        # Every other command needs the schema in place
        initialize_app_database()

        if args.command == "sync-feed":
            return sync_feed(args.officer_id)

        print(f"Unknown command: {args.command}")
        return 1
    finally:
        close_connections()


if __name__ == "__main__":
    sys.exit(main())
