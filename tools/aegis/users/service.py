"""User lifecycle: creation, role-gated listing, lookups, soft delete/restore."""

from __future__ import annotations

import logging
import math
import random
import sqlite3
import string
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..auth import hashing
from ..diagnostics import log_event
from ..errors import BadRequest, Conflict, NotFound, ValidationError
from ..models import SENSITIVE_FIELDS, Role, User, has_roles
from .store import StoreError, UserStore

logger = logging.getLogger(__name__)

GENERATED_PASSWORD_LENGTH = 6
PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    """Temporary shown-once password; ``random`` is strong enough for that."""
    return "".join(random.choice(PASSWORD_ALPHABET) for _ in range(length))


def _not_found(user_id: str) -> NotFound:
    return NotFound(f"User with id {user_id} not found")


class UserService:
    """Orchestrates user record mutations and lookups on top of a UserStore.

    Holds no per-call state; the store is the only shared resource.

    Args:
        store: Initialized record store, owned by the caller.
        bcrypt_rounds: Cost factor for hashing new passwords.
    """

    def __init__(self, store: UserStore, bcrypt_rounds: int = hashing.DEFAULT_ROUNDS) -> None:
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def resolve_creator(self, user: User) -> Optional[Dict[str, Any]]:
        """Best-effort creator summary; the creator may be gone."""
        if not user.created_by:
            return None
        creator = self.store.get(user.created_by)
        return creator.summary() if creator else None

    def _public(self, user: User) -> Dict[str, Any]:
        data = user.to_dict(exclude=SENSITIVE_FIELDS)
        data["creator"] = self.resolve_creator(user)
        return data

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    async def create(
        self,
        username: str,
        email: str,
        created_by: Optional[str],
        password: Optional[str] = None,
        roles: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Create a user and return it with the plaintext password attached.

        This is the only response that ever carries a plaintext password, so
        an administrator creating an account can pass it on.
        """
        effective_password = password or generate_password()

        try:
            password_hash = await hashing.hash_password_async(effective_password, self.bcrypt_rounds)
            user = self.store.create(
                username=username,
                email=email,
                password_hash=password_hash,
                roles=roles or [Role.USER],
                created_by=created_by,
            )
        except (StoreError, sqlite3.Error, ValueError) as exc:
            logger.error(f"Error creating user {username}: {exc}")
            log_event("user_create_failed", username=username, error=str(exc))
            raise BadRequest("Error creating the user") from exc

        logger.info(f"Created user {user.id} ({user.username})")
        log_event("user_created", user_id=user.id, created_by=created_by, generated=password is None)
        return {**self._public(user), "password": effective_password}

    # ------------------------------------------------------------------
    # Listing and lookups
    # ------------------------------------------------------------------
    async def find_all(self, page: int, limit: int, requesting_user: Dict[str, Any]) -> Dict[str, Any]:
        """List users newest first.

        Admins see soft-deleted users too; everyone else sees active ones only.
        """
        errors = [f"{name}: must be at least 1" for name, value in (("page", page), ("limit", limit)) if value < 1]
        if errors:
            raise ValidationError("Validation failed", errors)

        include_deleted = has_roles(requesting_user.get("roles", []), [Role.ADMIN])

        total = self.store.count(include_deleted=include_deleted)
        last_page = math.ceil(total / limit)
        users = self.store.list_page(
            offset=(page - 1) * limit,
            limit=limit,
            include_deleted=include_deleted,
        )

        return {
            "meta": {"total": total, "page": page, "last_page": last_page},
            "data": [self._public(u) for u in users],
        }

    def _require(self, user_id: str) -> User:
        user = self.store.get(user_id)
        if user is None:
            raise _not_found(user_id)
        return user

    async def find_one(self, user_id: str) -> Dict[str, Any]:
        return self._public(self._require(user_id))

    async def find_by_username_or_email(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Dict[str, Any]:
        user = self.store.find_first(email=email, username=username)
        if user is None:
            field = "email" if email else "username"
            raise NotFound(f"User with {field} {email or username} not found")
        return self._public(user)

    async def find_one_with_meta(self, user_id: str) -> Dict[str, Any]:
        """The user plus the accounts it created."""
        user = self._require(user_id)
        data = self._public(user)
        data["creator_of"] = [u.creation_summary() for u in self.store.list_created_by(user.id)]
        return data

    async def find_one_with_summary(self, user_id: str) -> Dict[str, Any]:
        return self._require(user_id).summary()

    async def find_summary(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Summaries for the ids that exist; unknown ids are left out."""
        return [u.summary() for u in self.store.get_many(user_ids)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def update(self, user_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key in ("username", "email", "roles"):
            if patch.get(key) is not None:
                fields[key] = patch[key]
        if patch.get("roles") == []:
            raise ValidationError("Validation failed", ["roles: must not be empty"])
        if patch.get("password"):
            fields["password_hash"] = await hashing.hash_password_async(patch["password"], self.bcrypt_rounds)

        try:
            user = self.store.update_fields(user_id, fields)
        except StoreError as exc:
            logger.error(f"Error updating user {user_id}: {exc}")
            raise BadRequest("Error updating the user") from exc

        if user is None:
            raise _not_found(user_id)

        log_event("user_updated", user_id=user_id, fields=sorted(fields))
        return self._public(user)

    async def remove(self, user_id: str) -> Dict[str, Any]:
        """Soft delete: Active -> Disabled."""
        user = self.store.set_deleted_at(user_id, datetime.now(timezone.utc), when_deleted=False)
        if user is None:
            self._require(user_id)
            raise Conflict(f"User with id {user_id} is already disabled")

        logger.info(f"Disabled user {user_id}")
        log_event("user_disabled", user_id=user_id)
        return self._public(user)

    async def restore(self, user_id: str) -> Dict[str, Any]:
        """Disabled -> Active."""
        user = self.store.set_deleted_at(user_id, None, when_deleted=True)
        if user is None:
            self._require(user_id)
            raise Conflict(f"User with id {user_id} is already enabled")

        logger.info(f"Restored user {user_id}")
        log_event("user_restored", user_id=user_id)
        return self._public(user)
