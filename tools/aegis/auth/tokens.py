"""JWT token creation and verification.

Uses PyJWT with HS256 signing. Tokens carry the application claims (just the
user ``id``) plus the registered ``iat`` and ``exp`` claims.
"""

from __future__ import annotations

import warnings
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

import jwt

DEFAULT_TTL = timedelta(hours=4)
REGISTERED_CLAIMS = ("exp", "iat")

ExpiresIn = Union[timedelta, int, float, None]


class TokenError(Exception):
    """Raised when a token is malformed, expired or wrongly signed."""


def _as_timedelta(value: Union[timedelta, int, float]) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


def strip_registered_claims(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Drop ``exp``/``iat`` so only application claims reach lookups."""
    return {key: value for key, value in payload.items() if key not in REGISTERED_CLAIMS}


class TokenCodec:
    """Signs claim payloads into bearer tokens and verifies them.

    Args:
        secret: Secret key used for HS256 signing.
        algorithm: JWT signing algorithm (default HS256).
        default_ttl: Validity used when ``sign`` gets no ``expires_in``.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        default_ttl: Union[timedelta, int, float] = DEFAULT_TTL,
    ) -> None:
        if not secret or "CHANGE-ME" in secret:
            warnings.warn("jwt_secret is empty or a placeholder — tokens will be insecure")
        self._secret = secret
        self._algorithm = algorithm
        self.default_ttl = _as_timedelta(default_ttl)

    def sign(self, claims: Dict[str, Any], expires_in: ExpiresIn = None) -> str:
        """Create a signed token for ``claims``.

        Caller-supplied ``exp``/``iat`` are discarded and recomputed.
        """
        ttl = self.default_ttl if expires_in is None else _as_timedelta(expires_in)
        now = datetime.now(timezone.utc)
        payload = {
            **strip_registered_claims(claims),
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """Decode ``token`` and return its full payload.

        Raises:
            TokenError: if the token is expired, malformed, or has an invalid
                signature.
        """
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": list(REGISTERED_CLAIMS)},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenError(str(exc)) from exc
