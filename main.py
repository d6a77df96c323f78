#!/usr/bin/env python3
"""
Grader admin CLI -- operator tasks that have no HTTP endpoint.

Usage:
  python main.py create-admin alice
  python main.py promote bob
  python main.py demote bob
  python main.py revoke-sessions bob

Admin rights are never granted over HTTP, so the first admin has to be
created here. revoke-sessions logs a user out on every device (e.g. after a
password leak); their tokens stay signed but the gate stops accepting them.

Connection settings come from the same environment as the API server
(DATABASE_URL, REDIS_URL, STORE_TIMEOUT_SECONDS) and can be overridden with
--database-url / --redis-url.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import SessionStoreError
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings


def _read_password() -> Optional[str]:
    """Prompt twice without echo. Returns None if the entries differ or are empty."""
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if not first or first != second:
        return None
    return first


def _create_admin(users: UserStore, username: str) -> int:
    password = _read_password()
    if password is None:
        print("  [!] Passwords were empty or did not match.")
        return 1
    try:
        uid = users.create_user(User(username=username, hashed_password=hash_password(password), is_admin=True))
    except IntegrityError:
        print(f"  [!] User '{username}' already exists. Use 'promote' instead.")
        return 1
    print(f"Created admin '{username}' (id {uid}).")
    return 0


def _set_admin(users: UserStore, username: str, is_admin: bool) -> int:
    user = users.get_by_username(username)
    if user is None:
        print(f"  [!] No such user '{username}'.")
        return 1
    users.set_admin(user.id, is_admin)
    print(f"'{username}' is {'now' if is_admin else 'no longer'} an admin.")
    return 0


def _revoke_sessions(users: UserStore, sessions: SessionStore, username: str) -> int:
    user = users.get_by_username(username)
    if user is None:
        print(f"  [!] No such user '{username}'.")
        return 1
    try:
        count = sessions.revoke_all(user.id)
    except SessionStoreError:
        print("  [!] Session store unavailable; nothing was revoked.")
        return 1
    print(f"Closed {count} session(s) for '{username}'.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="grader-admin",
        description="Operator commands for the grader user directory and sessions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin alice
  python main.py promote bob
  DATABASE_URL=postgresql://grader@db/grader python main.py revoke-sessions bob
        """,
    )
    parser.add_argument(
        "command",
        choices=["create-admin", "promote", "demote", "revoke-sessions"],
        help="What to do with USERNAME",
    )
    parser.add_argument("username", metavar="USERNAME")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        metavar="URL",
        help="User directory database (default: DATABASE_URL)",
    )
    parser.add_argument(
        "--redis-url",
        default=settings.redis_url,
        metavar="URL",
        help="Session store, only used by revoke-sessions (default: REDIS_URL)",
    )
    args = parser.parse_args(argv)

    users = UserStore(args.database_url, timeout=settings.store_timeout_seconds)
    try:
        if args.command == "create-admin":
            return _create_admin(users, args.username)
        if args.command in ("promote", "demote"):
            return _set_admin(users, args.username, args.command == "promote")
        sessions = SessionStore.from_url(args.redis_url, timeout=settings.store_timeout_seconds)
        try:
            return _revoke_sessions(users, sessions, args.username)
        finally:
            sessions.close()
    finally:
        users.close()


if __name__ == "__main__":
    sys.exit(main())
