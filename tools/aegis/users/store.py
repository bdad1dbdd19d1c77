"""SQLite-backed user record store.

The store owns persistence only: uniqueness of usernames and emails is
enforced by UNIQUE constraints, and lifecycle transitions are single
conditional UPDATEs so the guard and the write cannot interleave with
another call.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..models import Role, User

DEFAULT_DB_PATH = ".aegis/users.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    username TEXT UNIQUE NOT NULL,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    roles TEXT NOT NULL,
    created_by TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);
CREATE INDEX IF NOT EXISTS idx_users_created_by ON users(created_by);
"""

# Columns a partial update may write. id, created_by and deleted_at have
# dedicated paths or are immutable.
UPDATABLE_COLUMNS = ("username", "email", "password_hash", "roles")

LOOKUP_COLUMNS = ("id", "username", "email")


class StoreError(Exception):
    """Raised when the database rejects a write."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class UserStore:
    """SQLite user store.

    Args:
        db_path: Path to SQLite database file. Parent directories are created
                 automatically. Use ":memory:" for a throwaway store.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @property
    def db_path(self) -> str:
        return self._db_path

    def _next_id(self) -> str:
        return str(uuid.uuid4())

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            password_hash=row["password_hash"],
            roles=json.loads(row["roles"]),
            created_by=row["created_by"],
            created_at=_parse(row["created_at"]),
            updated_at=_parse(row["updated_at"]),
            deleted_at=_parse(row["deleted_at"]),
        )

    def _where_active(self, include_deleted: bool) -> str:
        return "" if include_deleted else " WHERE deleted_at IS NULL"

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get(self, user_id: str) -> Optional[User]:
        """Look up a user by primary key, soft-deleted or not."""
        row = self._conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_by_username(self, username: str) -> Optional[User]:
        row = self._conn.execute(
            "SELECT * FROM users WHERE username = ?", (username,)
        ).fetchone()
        return self._row_to_user(row) if row else None

    def find_first(self, **any_of: Optional[str]) -> Optional[User]:
        """Return the first user matching any of the supplied fields.

        ``None`` values are ignored; with nothing left to match, returns None.
        """
        clauses: List[str] = []
        values: List[Any] = []
        for column, value in any_of.items():
            if column not in LOOKUP_COLUMNS:
                raise ValueError(f"Cannot look users up by {column!r}")
            if value is None:
                continue
            clauses.append(f"{column} = ?")
            values.append(value)

        if not clauses:
            return None

        row = self._conn.execute(
            f"SELECT * FROM users WHERE {' OR '.join(clauses)} ORDER BY rowid LIMIT 1",
            values,
        ).fetchone()
        return self._row_to_user(row) if row else None

    def get_many(self, user_ids: Iterable[str]) -> List[User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._conn.execute(
            f"SELECT * FROM users WHERE id IN ({placeholders}) ORDER BY rowid", ids
        ).fetchall()
        return [self._row_to_user(r) for r in rows]

    def list_created_by(self, creator_id: str) -> List[User]:
        rows = self._conn.execute(
            "SELECT * FROM users WHERE created_by = ? ORDER BY created_at DESC, rowid DESC",
            (creator_id,),
        ).fetchall()
        return [self._row_to_user(r) for r in rows]

    def count(self, include_deleted: bool = False) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS total FROM users" + self._where_active(include_deleted)
        ).fetchone()
        return int(row["total"])

    def list_page(self, offset: int, limit: int, include_deleted: bool = False) -> List[User]:
        """Return one page of users, newest created first."""
        rows = self._conn.execute(
            "SELECT * FROM users"
            + self._where_active(include_deleted)
            + " ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
        return [self._row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        roles: Optional[List[str]] = None,
        created_by: Optional[str] = None,
    ) -> User:
        """Insert a new user and return it.

        Raises:
            StoreError: if the username or email is already taken.
        """
        now = _now()
        user_id = self._next_id()
        try:
            self._conn.execute(
                "INSERT INTO users (id, username, email, password_hash, roles, created_by, "
                "created_at, updated_at, deleted_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL)",
                (
                    user_id,
                    username,
                    email,
                    password_hash,
                    json.dumps(list(roles or [Role.USER])),
                    created_by,
                    now,
                    now,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise StoreError(f"A user with that username or email already exists ({exc})") from exc

        user = self.get(user_id)
        if user is None:
            raise StoreError("Failed to load user after creation")
        return user

    def update_fields(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        """Apply a partial update. Returns None if no such user exists.

        Raises:
            StoreError: on a uniqueness violation.
        """
        updates: List[str] = []
        values: List[Any] = []
        for column in UPDATABLE_COLUMNS:
            if column not in fields:
                continue
            value = fields[column]
            if column == "roles":
                value = json.dumps(list(value))
            updates.append(f"{column} = ?")
            values.append(value)

        updates.append("updated_at = ?")
        values.extend([_now(), user_id])

        try:
            cur = self._conn.execute(
                f"UPDATE users SET {', '.join(updates)} WHERE id = ?", values
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise StoreError(f"A user with that username or email already exists ({exc})") from exc

        if cur.rowcount == 0:
            return None
        return self.get(user_id)

    def set_deleted_at(self, user_id: str, value: Optional[datetime], *, when_deleted: bool) -> Optional[User]:
        """Compare-and-swap on ``deleted_at``.

        Writes ``value`` only if the row's current state matches
        ``when_deleted`` (True: currently soft-deleted, False: currently
        active). Returns the updated user, or None when nothing was written
        because the row is missing or already in the target state.
        """
        guard = "deleted_at IS NOT NULL" if when_deleted else "deleted_at IS NULL"
        cur = self._conn.execute(
            f"UPDATE users SET deleted_at = ?, updated_at = ? WHERE id = ? AND {guard}",
            (value.isoformat(timespec="microseconds") if value else None, _now(), user_id),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            return None
        return self.get(user_id)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
