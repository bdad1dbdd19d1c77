import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from aegis import diagnostics
from aegis.auth.service import AuthService
from aegis.auth.tokens import TokenCodec
from aegis.router import Router
from aegis.users.service import UserService
from aegis.users.store import UserStore

SECRET = "test-secret-with-enough-length-for-hs256"
ADMIN_ID = "00000000-0000-4000-8000-000000000001"


@pytest.fixture(autouse=True)
def event_log(tmp_path):
    path = tmp_path / "events.jsonl"
    diagnostics.configure(str(path))
    yield path
    diagnostics.configure(None)


@pytest.fixture
def store(tmp_path):
    s = UserStore(db_path=str(tmp_path / "users.db"))
    yield s
    s.close()


@pytest.fixture
def codec():
    return TokenCodec(secret=SECRET)


@pytest.fixture
def users(store):
    return UserService(store, bcrypt_rounds=4)


@pytest.fixture
def auth(store, codec):
    return AuthService(store, codec, bcrypt_rounds=4)


@pytest.fixture
def router(auth, users):
    return Router(auth, users)
