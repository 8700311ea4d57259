"""Kasuwa ordering database management CLI.

Creates and drops the ordering schema for SQL providers, using the
configuration overlay selected by PROTEAN_ENV (or --env).

Usage:
    python src/manage.py setup-db                 # Create all tables
    python src/manage.py drop-db --env production # Drop all tables
"""

import argparse
import os
import sys


def _ordering_domain(env=None):
    if env:
        os.environ["PROTEAN_ENV"] = env

    from ordering.domain import ordering

    print("Initializing ordering domain...")
    ordering.init()
    return ordering


def setup_database(env=None):
    from ordering.utils.db import setup_db

    domain = _ordering_domain(env)
    print("Creating ordering database schema...")
    setup_db(domain)
    print("Done.")


def drop_database(env=None):
    from ordering.utils.db import drop_db

    domain = _ordering_domain(env)
    print("Dropping ordering database schema...")
    drop_db(domain)
    print("Done.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Kasuwa ordering database management")
    parser.add_argument("--env", help="Config overlay to use (defaults to PROTEAN_ENV)")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database(args.env)
    elif args.command == "drop-db":
        drop_database(args.env)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
