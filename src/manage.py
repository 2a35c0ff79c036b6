"""Sakura ordering database management CLI.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def main():
    parser = argparse.ArgumentParser(description="Sakura ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    args = parser.parse_args()

    from ordering.domain import ordering
    from ordering.utils.db import drop_db, setup_db

    ordering.init()

    if args.command == "setup-db":
        print("Creating ordering database schema...")
        setup_db(ordering)
    elif args.command == "drop-db":
        print("Dropping ordering database schema...")
        drop_db(ordering)
    else:
        parser.print_help()
        sys.exit(1)

    print("Done.")


if __name__ == "__main__":
    main()
