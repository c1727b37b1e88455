#!/usr/bin/env python3
"""
Create an administrator account, or promote an existing user to admin.

Usage:
  python scripts/create_admin.py --username alice [--password s3cret-pass] [--email alice@example.com]
"""
from __future__ import annotations

import argparse
import secrets
import sys

from accounts.core.config import get_settings
from accounts.core.errors import AppError, NotFound
from accounts.core.security import PasswordHasher
from accounts.db.session import create_db_engine, make_sessionmaker
from accounts.domain.usernames import is_valid_password, is_valid_username, normalize_username
from accounts.repositories.user_repository import UserRepository


def gen_password(length: int = 20) -> str:
    return secrets.token_urlsafe(length)[:length]


def main() -> None:
    ap = argparse.ArgumentParser(description="Create or promote an admin account")
    ap.add_argument("--username", required=True, help="Username (3-32 chars [a-z0-9_.-])")
    ap.add_argument("--password", help="Password (default: random, printed once)")
    ap.add_argument("--email", help="Optional e-mail")
    args = ap.parse_args()

    username = normalize_username(args.username)
    if not is_valid_username(username):
        raise SystemExit("Invalid username (use 3-32 chars [a-z0-9_.-])")

    settings = get_settings()
    repo = UserRepository(make_sessionmaker(create_db_engine(settings.database)), PasswordHasher())

    try:
        user = repo.find_by_username(username)
    except NotFound:
        user = None
    if user:
        if user.is_admin:
            print(f"OK: '{username}' is already an admin")
            return
        repo.update_user(user.id, role="admin")
        print(f"OK: '{username}' promoted to admin")
        return

    password = args.password or gen_password()
    if not is_valid_password(password):
        raise SystemExit("Password must be 8-128 characters long")
    user = repo.create_user(username, password, email=(args.email or "").strip() or None, role="admin")
    print("OK: admin created")
    print(f"  ID: {user.id}")
    print(f"  Username: {username}")
    if not args.password:
        print(f"  Password: {password}")


if __name__ == "__main__":
    try:
        main()
    except AppError as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc.message}\n")
        raise SystemExit(1)
