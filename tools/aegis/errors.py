"""Error taxonomy shared by the RPC endpoints.

Every failure that reaches a caller is an ``RpcError`` carrying an HTTP-like
status and a message. Handlers raise the subclasses; the router turns them
into the ``error`` field of an ``RpcResponse``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class RpcError(Exception):
    """Base class for caller-visible failures."""

    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message}


class BadRequest(RpcError):
    status = 400


class Unauthorized(RpcError):
    status = 401


class NotFound(RpcError):
    status = 404


class Conflict(RpcError):
    status = 409


class ValidationError(RpcError):
    """Malformed request payload, rejected before any store access."""

    status = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.errors:
            data["errors"] = list(self.errors)
        return data


INTERNAL_ERROR = {"status": 500, "message": "Internal server error"}

__all__ = [
    "RpcError",
    "BadRequest",
    "Unauthorized",
    "NotFound",
    "Conflict",
    "ValidationError",
    "INTERNAL_ERROR",
]
