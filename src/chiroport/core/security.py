"""CSRF double-submit cookie utilities.

Tokens are random 256-bit values handed to the client in a response body.
Only a keyed SHA-256 hash of the token is stored, inside an HTTP-only cookie.
Mutating requests echo the plaintext token in a header; the server re-hashes
it and compares against the cookie in constant time.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Final

from chiroport.core.settings import settings

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME: Final[str] = "csrf-token"
CSRF_HEADER_NAME: Final[str] = "X-CSRF-Token"
CSRF_TOKEN_BYTES: Final[int] = 32
SAFE_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class IssuedCSRFToken:
    """Plaintext token for the response body plus the matching cookie."""

    token: str
    cookie_header_value: str


class CSRFGuard:
    """Issue and validate double-submit CSRF tokens."""

    def __init__(
        self,
        secret: str,
        *,
        secure: bool = False,
        cookie_name: str = CSRF_COOKIE_NAME,
    ) -> None:
        if not secret:
            raise ValueError("CSRF secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._secure = secure
        self.cookie_name = cookie_name

    def hash_token(self, token: str) -> str:
        """Return the hex HMAC-SHA256 of ``token`` under the server secret."""
        return hmac.new(self._secret, token.encode("utf-8"), hashlib.sha256).hexdigest()

    def build_cookie(self, token: str) -> str:
        """Return a ``Set-Cookie`` value carrying the hash of ``token``."""
        cookie = f"{self.cookie_name}={self.hash_token(token)}; Path=/; SameSite=Strict; HttpOnly"
        if self._secure:
            cookie += "; Secure"
        return cookie

    def issue(self) -> IssuedCSRFToken:
        """Mint a fresh token and its cookie."""
        token = secrets.token_hex(CSRF_TOKEN_BYTES)
        return IssuedCSRFToken(token=token, cookie_header_value=self.build_cookie(token))

    def validate(self, supplied_token: str | None, cookie_hash: str | None) -> bool:
        """Return True if ``supplied_token`` hashes to ``cookie_hash``.

        A length mismatch short-circuits before the constant-time comparison;
        that only reveals the length class of the cookie, not its contents.
        """
        if not supplied_token or not cookie_hash:
            return False

        expected = self.hash_token(supplied_token).encode("utf-8")
        actual = cookie_hash.encode("utf-8")
        if len(expected) != len(actual):
            return False
        return hmac.compare_digest(expected, actual)

    def check_request(
        self,
        method: str,
        supplied_token: str | None,
        cookie_hash: str | None,
        *,
        enforced: bool,
    ) -> bool:
        """Apply the deployment CSRF policy to a single request."""
        if method.upper() in SAFE_METHODS:
            return True
        if not enforced:
            logger.debug("CSRF enforcement disabled; allowing %s request", method.upper())
            return True
        return self.validate(supplied_token, cookie_hash)


def get_csrf_guard() -> CSRFGuard:
    """Return a CSRF guard configured from application settings."""
    return CSRFGuard(settings.csrf_secret, secure=settings.secure_cookies)
