"""Security helpers (password hashing and verification)."""

from __future__ import annotations

from argon2 import PasswordHasher as _Argon2Hasher, exceptions as argon_exc

_PREFIX = "argon2$"


class PasswordHasher:
    """Argon2id hashing with a prefix so other schemes can be detected later.

    Any object exposing ``hash``/``verify``/``needs_rehash`` can be passed to the
    credential store instead.
    """

    def __init__(self, hasher: _Argon2Hasher | None = None) -> None:
        self._ph = hasher or _Argon2Hasher()
        # Verified against when the username is unknown so both paths cost the same.
        self._dummy = self.hash("dummy-password-for-timing")

    def hash(self, password: str) -> str:
        return f"{_PREFIX}{self._ph.hash(password)}"

    def verify(self, password: str, stored_hash: str | None) -> bool:
        stored = stored_hash or ""
        if not stored.startswith(_PREFIX):
            return False
        try:
            return self._ph.verify(stored[len(_PREFIX):], password)
        except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
            return False

    def verify_dummy(self, password: str) -> None:
        self.verify(password, self._dummy)

    def needs_rehash(self, stored_hash: str) -> bool:
        if not stored_hash.startswith(_PREFIX):
            return True
        return self._ph.check_needs_rehash(stored_hash[len(_PREFIX):])
