#!/usr/bin/env python3
"""Unit tests for the JWT token codec and password hashing."""

from datetime import timedelta

import jwt
import pytest

from aegis.auth import hashing
from aegis.auth.tokens import TokenCodec, TokenError, strip_registered_claims

from conftest import SECRET


class TestTokenCodec:
    def test_sign_and_verify(self, codec):
        token = codec.sign({"id": "user-1"})
        payload = codec.verify(token)
        assert payload["id"] == "user-1"
        assert "exp" in payload
        assert "iat" in payload

    def test_default_ttl_is_four_hours(self, codec):
        payload = codec.verify(codec.sign({"id": "user-1"}))
        assert payload["exp"] - payload["iat"] == 4 * 60 * 60

    def test_expires_in_overrides_default(self, codec):
        payload = codec.verify(codec.sign({"id": "user-1"}, expires_in=60))
        assert payload["exp"] - payload["iat"] == 60

        payload = codec.verify(codec.sign({"id": "user-1"}, expires_in=timedelta(minutes=5)))
        assert payload["exp"] - payload["iat"] == 300

    def test_expired_token_rejected(self, codec):
        token = codec.sign({"id": "user-1"}, expires_in=timedelta(seconds=-30))
        with pytest.raises(TokenError, match="expired"):
            codec.verify(token)

    def test_wrong_secret_rejected(self, codec):
        other = TokenCodec(secret="another-secret-entirely-different-key")
        with pytest.raises(TokenError):
            codec.verify(other.sign({"id": "user-1"}))

    def test_garbage_rejected(self, codec):
        with pytest.raises(TokenError):
            codec.verify("not-a-token")

    def test_token_without_exp_rejected(self, codec):
        token = jwt.encode({"id": "user-1"}, SECRET, algorithm="HS256")
        with pytest.raises(TokenError):
            codec.verify(token)

    def test_caller_supplied_registered_claims_ignored(self, codec):
        token = codec.sign({"id": "user-1", "exp": 1, "iat": 1})
        payload = codec.verify(token)
        assert payload["exp"] > 1

    def test_strip_registered_claims(self):
        assert strip_registered_claims({"id": "u", "exp": 1, "iat": 2}) == {"id": "u"}

    def test_placeholder_secret_warns(self):
        with pytest.warns(UserWarning, match="placeholder"):
            TokenCodec(secret="CHANGE-ME")


class TestHashing:
    def test_hash_and_verify(self):
        hashed = hashing.hash_password("s3cret!", rounds=4)
        assert hashed != "s3cret!"
        assert hashing.verify_password("s3cret!", hashed)
        assert not hashing.verify_password("wrong", hashed)

    def test_malformed_hash_is_false(self):
        assert hashing.verify_password("s3cret!", "not-a-bcrypt-hash") is False
        assert hashing.verify_password("s3cret!", "") is False

    @pytest.mark.asyncio
    async def test_async_variants(self):
        hashed = await hashing.hash_password_async("s3cret!", rounds=4)
        assert await hashing.verify_password_async("s3cret!", hashed)
        assert not await hashing.verify_dummy_async("s3cret!")

    def test_dummy_hash_uses_requested_cost(self):
        assert hashing.dummy_hash().startswith(f"$2b${hashing.DEFAULT_ROUNDS:02d}$")
        assert hashing.dummy_hash(10).startswith("$2b$10$")
        assert hashing.dummy_hash(5).startswith("$2b$05$")
        assert hashing.dummy_hash(5) is hashing.dummy_hash(5)
