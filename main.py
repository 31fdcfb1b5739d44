#!/usr/bin/env python3
"""
CRA Saint-Louis API -- operator command line.

Usage:
  python main.py create-admin --email admin@cra.org --first-name Awa --last-name Diop
  python main.py create-admin --email admin@cra.org --password 'S3cret-pass'
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 5000 --reload

Registration through the API requires an authenticated administrator, so the
first administrator of a fresh database is created here, directly against the
store. The creation is audited like any other registration, with the new user
recorded as its own creator.

Environment variables:
  SECRET_KEY    Required unless DEBUG=true (see core/config.py).
  DATABASE_URL  SQLAlchemy URL. Default: sqlite:///cra_saint_louis.db
"""

import argparse
import getpass
import logging
import sys

from sqlalchemy.exc import IntegrityError

from api.models import PASSWORD_MIN_LENGTH
from auth.audit import AuditRecorder
from auth.errors import ValidationError
from auth.models import ACTION_CREATE, ENTITY_USER, AuditEntry, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.log import configure_logging

logger = logging.getLogger("cra.cli")


def create_admin(args: argparse.Namespace) -> int:
    """Create an ADMINISTRATEUR account. Returns a process exit code."""
    settings = get_settings()
    configure_logging(settings)

    password = args.password or getpass.getpass("Password for the new administrator: ")
    if len(password) < PASSWORD_MIN_LENGTH:
        print(f"  [!] Password must be at least {PASSWORD_MIN_LENGTH} characters.")
        return 1

    store = UserStore(settings.database_url)
    try:
        try:
            hashed = hash_password(password, settings.bcrypt_rounds)
        except ValidationError as e:
            print(f"  [!] {e.message}")
            return 1
        try:
            user_id = store.create_user(
                User(
                    email=args.email,
                    role="ADMINISTRATEUR",
                    first_name=args.first_name,
                    last_name=args.last_name,
                    hashed_password=hashed,
                )
            )
        except IntegrityError:
            print(f"  [!] A user with email '{args.email}' already exists.")
            return 1
        AuditRecorder(store, strict=settings.audit_strict).log(
            AuditEntry(
                action=ACTION_CREATE,
                entity_type=ENTITY_USER,
                entity_id=user_id,
                user_id=user_id,
                new_values={"email": args.email, "role": "ADMINISTRATEUR"},
            )
        )
    finally:
        store.close()

    print(f"  Administrator '{args.email}' created (id={user_id}).")
    return 0


def serve(args: argparse.Namespace) -> int:
    """Run the API under uvicorn."""
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cra-saint-louis",
        description="CRA Saint-Louis API -- operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@cra.org --first-name Awa --last-name Diop
  DEBUG=true python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = sub.add_parser("create-admin", help="Create an administrator account (first-run bootstrap)")
    admin.add_argument("--email", required=True, help="Login email of the administrator")
    admin.add_argument("--password", help="Password (prompted when omitted)")
    admin.add_argument("--first-name", default="", help="First name")
    admin.add_argument("--last-name", default="", help="Last name")
    admin.set_defaults(func=create_admin)

    srv = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    srv.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    srv.add_argument("--port", type=int, default=5000, help="Port (default: 5000)")
    srv.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    srv.set_defaults(func=serve)

    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
