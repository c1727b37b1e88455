"""Signed session tokens.

A token is the URL-safe serialisation of ``{"sid": <session id>, "exp": <unix ts>}``
followed by an HMAC tag computed with the server secret. The codec never touches
the database: it only proves the token was issued by us and is not past its
expiry bound. Whether the session behind it is still valid is the session
manager's job.

Changing the secret invalidates every token issued with the previous one.
"""

from __future__ import annotations

from datetime import datetime, timezone
import time
from typing import Callable

from itsdangerous import BadPayload, BadSignature, URLSafeSerializer

TOKEN_SALT = "accounts.session"


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidSignature(TokenError):
    """The tag does not match (tampered token or different key)."""


class Expired(TokenError):
    """The embedded expiry has passed."""

    def __init__(self, session_id: str):
        super().__init__("token expired")
        self.session_id = session_id


class MalformedToken(TokenError):
    """The value cannot be decoded into a token."""


class TokenCodec:
    def __init__(self, secret_key: str, *, clock: Callable[[], float] = time.time) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._serializer = URLSafeSerializer(secret_key, salt=TOKEN_SALT)
        self._clock = clock

    def issue(self, session_id: str, expires_at: datetime) -> str:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return self._serializer.dumps({"sid": session_id, "exp": int(expires_at.timestamp())})

    def verify(self, token: str | None) -> str:
        """Return the session id carried by ``token`` or raise a TokenError."""
        if not token or not isinstance(token, str) or "." not in token:
            raise MalformedToken("token is empty or not in signed form")
        try:
            token.encode("ascii")
        except UnicodeEncodeError:
            raise MalformedToken("token contains non-ascii characters") from None
        try:
            payload = self._serializer.loads(token)
        except BadPayload as exc:
            raise MalformedToken("token payload cannot be decoded") from exc
        except BadSignature as exc:
            raise InvalidSignature("token signature mismatch") from exc

        if not isinstance(payload, dict):
            raise MalformedToken("token payload has the wrong shape")
        session_id = payload.get("sid")
        expiry = payload.get("exp")
        if not isinstance(session_id, str) or not session_id or not isinstance(expiry, int):
            raise MalformedToken("token payload has the wrong shape")
        if self._clock() >= expiry:
            raise Expired(session_id)
        return session_id
