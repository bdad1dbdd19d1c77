"""User records and their wire representation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional


class Role:
    USER = "user"
    ADMIN = "admin"

    ALL = (USER, ADMIN)


def has_roles(user_roles: Iterable[str], required: Iterable[str]) -> bool:
    """Return True when any of the ``required`` roles is held."""
    held = set(user_roles or [])
    return any(role in held for role in required)


# Fields never sent to a caller from multi-field lookups.
SENSITIVE_FIELDS = ("password_hash", "created_by")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class User:
    """Stored user record.

    ``deleted_at`` is ``None`` while the account is active and holds the
    disable timestamp once soft-deleted. ``created_by`` is a plain id and is
    not guaranteed to resolve to an existing user.
    """

    id: str
    username: str
    email: str
    password_hash: str
    roles: List[str] = field(default_factory=lambda: [Role.USER])
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def to_dict(self, exclude: Iterable[str] = SENSITIVE_FIELDS) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "password_hash": self.password_hash,
            "roles": list(self.roles),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
        }
        for key in exclude:
            data.pop(key, None)
        return data

    def summary(self) -> Dict[str, Any]:
        """Display identity only: no credentials, roles or audit fields."""
        return {"id": self.id, "username": self.username, "email": self.email}

    def creation_summary(self) -> Dict[str, Any]:
        return {
            **self.summary(),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


__all__ = ["Role", "User", "has_roles", "SENSITIVE_FIELDS"]
