#!/usr/bin/env python3
"""
SessionGuard admin CLI -- manage identity records without the HTTP API.

Usage:
  python main.py register ann@example.com --name "Ann Example"
  python main.py status ann@example.com

The password for `register` is read with getpass, never from argv.

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the identity store (see core/config.py).
  DEBUG         Set to true to fall back to the local SQLite file.
"""

import argparse
import getpass
import logging
import sys
from datetime import datetime, timezone

from auth.errors import AuthError
from auth.registration import register_user
from auth.store import UserStore
from core.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def _open_store() -> UserStore:
    db_url, connect_args = get_settings().engine_options()
    return UserStore(db_url, connect_args=connect_args)


def cmd_register(store: UserStore, args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1
    try:
        user = register_user(
            store,
            name=args.name,
            email=args.email,
            password=password,
            min_password_length=get_settings().min_password_length,
        )
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Registered {user.email} (id {user.id})")
    return 0


def cmd_status(store: UserStore, args: argparse.Namespace) -> int:
    user = store.find_by_email(args.email)
    if user is None:
        print(f"  [!] No account for {args.email}")
        return 1
    print(f"  Email:           {user.email}")
    print(f"  Name:            {user.name or '-'}")
    print(f"  Password login:  {'yes' if user.password_hash else 'no (federated only)'}")
    print(f"  Failed attempts: {user.failed_attempts}")
    if user.locked_until and user.locked_until > datetime.now(timezone.utc):
        print(f"  Locked until:    {user.locked_until.isoformat()}")
    else:
        print("  Locked:          no")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sessionguard", description="SessionGuard identity administration")
    sub = parser.add_subparsers(dest="command", required=True)

    p_register = sub.add_parser("register", help="Create an email/password account")
    p_register.add_argument("email")
    p_register.add_argument("--name", required=True, help="Display name")
    p_register.set_defaults(func=cmd_register)

    p_status = sub.add_parser("status", help="Show lockout state for an account")
    p_status.add_argument("email")
    p_status.set_defaults(func=cmd_status)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = _open_store()
    try:
        return args.func(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
