"""
Aegis Users — user record persistence and lifecycle.

Usage:
    from aegis.users import UserStore, UserService

    store = UserStore(db_path=".aegis/users.db")
    users = UserService(store)
    created = await users.create("owl", "owl@example.com", created_by=None)
    created["password"]  # generated, shown once
"""

from .service import UserService, generate_password
from .store import StoreError, UserStore

__all__ = ["UserService", "UserStore", "StoreError", "generate_password"]
