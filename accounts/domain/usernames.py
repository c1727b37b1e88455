"""Domain helpers for username, e-mail and password validation."""
from __future__ import annotations

import re

USERNAME_PATTERN = re.compile(r"[a-z0-9][a-z0-9_.-]{2,31}")
EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
RESERVED_USERNAMES = {
    "admin",
    "root",
    "me",
    "auth",
    "sessions",
    "users",
    "register",
    "current",
    "system",
}
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128


def normalize_username(value: str | None) -> str:
    return (value or "").strip().lower()


def is_valid_username(value: str | None) -> bool:
    """Return True when the (normalised) username matches the pattern and is not reserved."""
    if not value:
        return False
    return bool(USERNAME_PATTERN.fullmatch(value)) and value not in RESERVED_USERNAMES


def normalize_email(value: str | None) -> str | None:
    email = (value or "").strip().lower()
    return email or None


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.fullmatch(value)) and len(value) <= 255


def is_valid_password(value: str | None) -> bool:
    return MIN_PASSWORD_LENGTH <= len(value or "") <= MAX_PASSWORD_LENGTH
