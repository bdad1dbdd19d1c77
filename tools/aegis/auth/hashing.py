"""bcrypt password hashing.

The synchronous helpers do the work; the ``_async`` variants push it onto a
worker thread so a slow hash does not stall other calls on the event loop.
"""

from __future__ import annotations

import asyncio
import functools

import bcrypt

DEFAULT_ROUNDS = 10

DUMMY_PASSWORD = b"dummy"


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds)
    ).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash.

    Returns False for empty or malformed hashes instead of raising.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


async def hash_password_async(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    return await asyncio.to_thread(hash_password, password, rounds)


async def verify_password_async(password: str, hashed: str) -> bool:
    return await asyncio.to_thread(verify_password, password, hashed)


@functools.lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash checked for unknown usernames.

    Built at the same cost as stored hashes so both login failure paths take
    the same time.
    """
    return bcrypt.hashpw(DUMMY_PASSWORD, bcrypt.gensalt(rounds)).decode("utf-8")


def verify_dummy(password: str, rounds: int = DEFAULT_ROUNDS) -> bool:
    return verify_password(password, dummy_hash(rounds))


async def verify_dummy_async(password: str, rounds: int = DEFAULT_ROUNDS) -> bool:
    return await asyncio.to_thread(verify_dummy, password, rounds)
