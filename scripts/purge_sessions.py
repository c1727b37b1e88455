#!/usr/bin/env python3
"""
Delete session rows that expired long ago. Revoked-but-unexpired rows are kept.

Usage:
  python scripts/purge_sessions.py [--older-than-days 30]
"""
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta, timezone

from accounts.core.config import get_settings
from accounts.core.errors import AppError
from accounts.db.session import create_db_engine, make_sessionmaker
from accounts.repositories.session_repository import SessionRepository


def main() -> None:
    ap = argparse.ArgumentParser(description="Purge long-expired sessions")
    ap.add_argument("--older-than-days", type=int, default=30, help="Retention after expiry (default: 30)")
    args = ap.parse_args()
    if args.older_than_days < 0:
        raise SystemExit("--older-than-days must be >= 0")

    settings = get_settings()
    store = SessionRepository(make_sessionmaker(create_db_engine(settings.database)))
    cutoff = datetime.now(timezone.utc) - timedelta(days=args.older_than_days)
    removed = store.purge_expired(cutoff)
    print(f"OK: {removed} session(s) expired before {cutoff.isoformat()} removed")


if __name__ == "__main__":
    try:
        main()
    except AppError as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc.message}\n")
        raise SystemExit(1)
