#!/usr/bin/env python3
"""CLI management tool for user accounts.

Provides commands to:
- Add users (the bootstrap path: no creator, optional admin role)
- List users, optionally including disabled ones
- Disable and restore users by username
"""

import argparse
import asyncio
import getpass
import logging
import sys

from .config import DEFAULTS
from .errors import RpcError
from .models import Role
from .users.service import UserService
from .users.store import UserStore

ADMIN_VIEW = {"roles": [Role.ADMIN]}
USER_VIEW = {"roles": [Role.USER]}


def add_user(args, service: UserService) -> int:
    """Add a new user; the password is prompted, or generated when --generate is set."""
    username = args.username.strip().lower()
    email = args.email.strip().lower()

    if args.generate:
        password = None
    elif args.password:
        password = args.password
    else:
        password = getpass.getpass(f"Password for {username}: ")
        if not password:
            print("Error: Password cannot be empty", file=sys.stderr)
            return 1

    roles = [Role.USER, Role.ADMIN] if args.admin else [Role.USER]
    created = asyncio.run(
        service.create(username, email, created_by=None, password=password, roles=roles)
    )

    print(f"✓ User created: {created['id']} ({username})")
    if password is None:
        print(f"  Temporary password: {created['password']}")
    return 0


def list_users(args, service: UserService) -> int:
    """List users, newest first."""
    viewer = ADMIN_VIEW if args.all else USER_VIEW
    result = asyncio.run(service.find_all(1, args.limit, viewer))
    users = result["data"]

    if not users:
        print("No users found")
        return 0

    print(f"{'ID':<38} {'Username':<20} {'Roles':<12} {'Status':<8}")
    print("-" * 80)

    for user in users:
        status = "disabled" if user["deleted_at"] else "active"
        print(f"{user['id']:<38} {user['username']:<20} {','.join(user['roles']):<12} {status:<8}")

    total = result["meta"]["total"]
    if total > len(users):
        print(f"... {total - len(users)} more")
    return 0


def _user_id(service: UserService, username: str) -> str:
    user = asyncio.run(service.find_by_username_or_email(username=username.strip().lower()))
    return user["id"]


def disable_user(args, service: UserService) -> int:
    user_id = _user_id(service, args.username)
    asyncio.run(service.remove(user_id))
    print(f"✓ Disabled user {user_id} ({args.username})")
    return 0


def restore_user(args, service: UserService) -> int:
    user_id = _user_id(service, args.username)
    asyncio.run(service.restore(user_id))
    print(f"✓ Restored user {user_id} ({args.username})")
    return 0


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage Aegis user accounts")
    parser.add_argument(
        "--db-path",
        default=DEFAULTS["store"]["db_path"],
        help=f"Path to SQLite database (default: {DEFAULTS['store']['db_path']})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    add_parser = subparsers.add_parser("add-user", help="Add a new user")
    add_parser.add_argument("--username", required=True, help="Username")
    add_parser.add_argument("--email", required=True, help="Email address")
    add_parser.add_argument("--password", help="Password (prompted if omitted)")
    add_parser.add_argument("--generate", action="store_true", help="Generate a temporary password")
    add_parser.add_argument("--admin", action="store_true", help="Grant the admin role")

    list_parser = subparsers.add_parser("list-users", help="List users")
    list_parser.add_argument("--all", action="store_true", help="Include disabled users")
    list_parser.add_argument("--limit", type=positive_int, default=50, help="Maximum rows (default: 50)")

    disable_parser = subparsers.add_parser("disable-user", help="Soft-delete a user")
    disable_parser.add_argument("--username", required=True, help="Username")

    restore_parser = subparsers.add_parser("restore-user", help="Re-enable a disabled user")
    restore_parser.add_argument("--username", required=True, help="Username")

    return parser


COMMANDS = {
    "add-user": add_user,
    "list-users": list_users,
    "disable-user": disable_user,
    "restore-user": restore_user,
}


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    store = UserStore(db_path=args.db_path)
    service = UserService(store, bcrypt_rounds=DEFAULTS["auth"]["bcrypt_rounds"])

    try:
        return COMMANDS[args.command](args, service)
    except RpcError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
