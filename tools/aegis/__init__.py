"""
Aegis — credential authentication and user lifecycle service.

Architecture:
    Channel (transport) → MessageBus → Router → AuthService / UserService → UserStore

Components:
    - UserStore: SQLite record store (lookups, paging, conditional updates)
    - TokenCodec: PyJWT signing/verification with expiry
    - AuthService: login and token verification with re-issue
    - UserService: creation, role-gated listing, lookups, soft delete/restore
    - Router: RPC pattern table ("auth.login", "users.find.id", ...)
    - Gateway: wires the above and runs the bus loops via asyncio

Usage:
    from aegis.gateway import build_services

    services = build_services(config)
    await services.auth.login("owl", "password123")
"""

__version__ = "0.1.0"

from .bus import MessageBus, RpcRequest, RpcResponse
from .errors import BadRequest, Conflict, NotFound, RpcError, Unauthorized, ValidationError
from .models import Role, User

__all__ = [
    "MessageBus",
    "RpcRequest",
    "RpcResponse",
    "RpcError",
    "BadRequest",
    "Conflict",
    "NotFound",
    "Unauthorized",
    "ValidationError",
    "Role",
    "User",
]
