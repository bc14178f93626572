#!/usr/bin/env python3
"""
Shopfront admin CLI -- manage accounts without going through the API.

Usage:
  python main.py create-user admin@example.com --password s3cret --name Admin --permission ADMIN
  python main.py grant someone@example.com PERMISSIONUPDATE ITEMDELETE
  python main.py list-users

The CLI talks to the same database as the API (DATABASE_URL, or the default
SQLite file beside auth/). Emails are lowercased exactly as signup does.
"""

import argparse
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import HashingError
from auth.models import Permission, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings

_PERMISSION_CHOICES = [p.value for p in Permission]


def _create_user(store: UserStore, args: argparse.Namespace) -> int:
    permissions = [Permission.USER.value]
    for p in args.permission or []:
        if p not in permissions:
            permissions.append(p)
    try:
        user = store.create_user(
            User(
                email=args.email.strip().lower(),
                name=args.name,
                password_hash=hash_password(args.password),
                permissions=permissions,
            )
        )
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    except HashingError as e:
        print(f"  [!] {e.message}")
        return 1
    print(f"  Created {user.email} ({user.id}) with {', '.join(user.permissions)}")
    return 0


def _grant(store: UserStore, args: argparse.Namespace) -> int:
    email = args.email.strip().lower()
    user = store.find_user_by_email(email)
    if user is None:
        print(f"  [!] No such user found for email {email}")
        return 1
    permissions = list(user.permissions)
    for p in args.permissions:
        if p not in permissions:
            permissions.append(p)
    store.update_user({"id": user.id}, permissions=permissions)
    print(f"  {email}: {', '.join(permissions)}")
    return 0


def _list_users(store: UserStore, args: argparse.Namespace) -> int:
    users = store.list_users()
    if not users:
        print("  No users.")
        return 0
    for u in users:
        print(f"  {u.email:<40} {u.id}  {', '.join(u.permissions)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shopfront account administration")
    parser.add_argument("--db-url", help="SQLAlchemy URL of the user database (defaults to DATABASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create an account")
    create.add_argument("email")
    create.add_argument("--password", required=True)
    create.add_argument("--name", default="")
    create.add_argument(
        "--permission",
        action="append",
        choices=_PERMISSION_CHOICES,
        help="Extra permission on top of USER (repeatable)",
    )
    create.set_defaults(func=_create_user)

    grant = sub.add_parser("grant", help="Add permissions to an existing account")
    grant.add_argument("email")
    grant.add_argument("permissions", nargs="+", choices=_PERMISSION_CHOICES)
    grant.set_defaults(func=_grant)

    list_cmd = sub.add_parser("list-users", help="List all accounts")
    list_cmd.set_defaults(func=_list_users)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = UserStore(args.db_url or get_settings().database_url)
    try:
        return args.func(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
