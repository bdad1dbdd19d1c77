"""
Aegis Auth — credential checks and signed bearer tokens.

Provides bcrypt password hashing, a PyJWT-based token codec and the
AuthService that ties them to the user store.

Usage:
    from aegis.auth import AuthService, TokenCodec

    auth = AuthService(store, TokenCodec(secret="..."))
    result = await auth.login("owl", "password123")
    await auth.verify_token(result["token"])
"""

from .service import AuthService
from .tokens import TokenCodec, TokenError

__all__ = ["AuthService", "TokenCodec", "TokenError"]
