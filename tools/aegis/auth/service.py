"""Login and token verification."""

from __future__ import annotations

import logging
from typing import Any, Dict

from ..diagnostics import log_event
from ..errors import BadRequest, RpcError, Unauthorized
from ..users.store import UserStore
from . import hashing
from .tokens import ExpiresIn, TokenCodec, strip_registered_claims

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_TOKEN = "Invalid token"


class AuthService:
    """Checks credentials and issues / re-issues signed tokens.

    Both flows answer every failure of their own kind with one message, so a
    caller cannot tell an unknown username from a wrong password, or an
    expired token from one whose subject vanished.
    """

    def __init__(
        self,
        store: UserStore,
        codec: TokenCodec,
        bcrypt_rounds: int = hashing.DEFAULT_ROUNDS,
    ) -> None:
        self.store = store
        self.codec = codec
        # Must match the cost of stored hashes.
        self.bcrypt_rounds = bcrypt_rounds

    async def login(self, username: str, password: str, expires_in: ExpiresIn = None) -> Dict[str, Any]:
        try:
            user = self.store.get_by_username(username)
            if user is None:
                await hashing.verify_dummy_async(password, self.bcrypt_rounds)
                log_event("login_failed", username=username, reason="unknown_username")
                raise Unauthorized(INVALID_CREDENTIALS)

            if not await hashing.verify_password_async(password, user.password_hash):
                log_event("login_failed", username=username, reason="wrong_password")
                raise Unauthorized(INVALID_CREDENTIALS)

            token = self.sign_token(user.id, expires_in)
        except RpcError:
            raise
        except Exception as exc:
            logger.error(f"Login error for {username}: {exc}", exc_info=True)
            log_event("login_error", username=username, error=str(exc))
            raise BadRequest(str(exc)) from exc

        log_event("login_success", user_id=user.id, username=user.username)
        return {"user": user.to_dict(exclude=("password_hash",)), "token": token}

    async def verify_token(self, token: str, expires_in: ExpiresIn = None) -> Dict[str, Any]:
        try:
            claims = strip_registered_claims(self.codec.verify(token))
            user = self.store.get(claims["id"])
            if user is None:
                raise LookupError(f"Token subject {claims['id']} no longer exists")
            fresh = self.sign_token(user.id, expires_in)
        except Exception as exc:
            logger.warning(f"Token rejected: {exc}")
            log_event("token_rejected", reason=type(exc).__name__, error=str(exc))
            raise Unauthorized(INVALID_TOKEN) from exc

        return {"user": user.to_dict(exclude=("password_hash",)), "token": fresh}

    def sign_token(self, user_id: str, expires_in: ExpiresIn = None) -> str:
        return self.codec.sign({"id": user_id}, expires_in)
