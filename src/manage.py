"""Storefront database management CLI.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
    python src/manage.py seed-admin --email admin@example.com --password s3cret
"""

import argparse
import sys


def setup_database():
    from storefront.domain import storefront
    from storefront.utils.db import setup_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Creating database schema...")
    setup_db(storefront)
    print("Done.")


def drop_database():
    from storefront.domain import storefront
    from storefront.utils.db import drop_db

    print("Initializing storefront domain...")
    storefront.init()
    print("Dropping database schema...")
    drop_db(storefront)
    print("Done.")


def seed_admin(email, password, full_name):
    """Register an administrator account, the only way to obtain the admin role."""
    from storefront.customer.registration import RegisterUser
    from storefront.domain import storefront

    storefront.init()
    with storefront.domain_context():
        user_id = storefront.process(
            RegisterUser(email=email, full_name=full_name, password=password, role="admin"),
            asynchronous=False,
        )
    print(f"Admin {email} created with id {user_id}.")


def main():
    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    admin_parser = subparsers.add_parser("seed-admin", help="Create an administrator account")
    admin_parser.add_argument("--email", required=True)
    admin_parser.add_argument("--password", required=True)
    admin_parser.add_argument("--full-name", default="Administrator")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-admin":
        seed_admin(args.email, args.password, args.full_name)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
