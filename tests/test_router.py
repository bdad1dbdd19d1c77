#!/usr/bin/env python3
"""Tests for the RPC pattern table."""

import json

import pytest

from aegis.bus import RpcRequest
from aegis.models import Role

from conftest import ADMIN_ID


def _request(pattern, data=None):
    return RpcRequest(channel="test", chat_id="chat-1", pattern=pattern, data=data)


async def _call(router, pattern, data=None):
    return await router.handle(_request(pattern, data))


async def _create(router, username, **extra):
    response = await _call(
        router,
        "users.create",
        {"username": username, "email": f"{username}@example.com", "created_by": ADMIN_ID, **extra},
    )
    assert response.ok, response.error
    return response.data


class TestRouter:
    def test_patterns(self, router):
        assert router.patterns == sorted(
            [
                "auth.login",
                "auth.verify",
                "users.create",
                "users.find.email",
                "users.find.id",
                "users.find.meta",
                "users.find.summary",
                "users.find.summary.batch",
                "users.find.username",
                "users.findAll",
                "users.health",
                "users.remove",
                "users.restore",
                "users.update",
            ]
        )

    @pytest.mark.asyncio
    async def test_health(self, router):
        response = await _call(router, "users.health")
        assert response.data == "users service is up and running!"

    @pytest.mark.asyncio
    async def test_response_correlation(self, router):
        request = _request("users.health")
        response = await router.handle(request)
        assert response.request_id == request.request_id
        assert response.channel == "test"
        assert response.chat_id == "chat-1"

    @pytest.mark.asyncio
    async def test_unknown_pattern(self, router):
        response = await _call(router, "users.explode")
        assert response.error == {"status": 404, "message": "No handler for pattern users.explode"}

    @pytest.mark.asyncio
    async def test_login_verify_roundtrip(self, router):
        created = await _create(router, "Owl", password="Hunter-22")

        login = await _call(router, "auth.login", {"username": "OWL", "password": "Hunter-22"})
        assert login.ok
        assert login.data["user"]["id"] == created["id"]

        verify = await _call(router, "auth.verify", {"token": login.data["token"]})
        assert verify.ok
        assert verify.data["user"]["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_bad_credentials(self, router):
        response = await _call(router, "auth.login", {"username": "ghost", "password": "x"})
        assert response.error == {"status": 401, "message": "Invalid credentials"}

    @pytest.mark.asyncio
    async def test_bad_token(self, router):
        response = await _call(router, "auth.verify", {"token": "garbage"})
        assert response.error == {"status": 401, "message": "Invalid token"}

    @pytest.mark.asyncio
    async def test_lookups(self, router):
        created = await _create(router, "owl")

        by_id = await _call(router, "users.find.id", {"id": created["id"]})
        by_name = await _call(router, "users.find.username", {"username": "OWL"})
        by_email = await _call(router, "users.find.email", {"email": "owl@example.com"})
        meta = await _call(router, "users.find.meta", {"id": created["id"]})
        summary = await _call(router, "users.find.summary", {"id": created["id"]})

        assert by_id.data["id"] == by_name.data["id"] == by_email.data["id"] == created["id"]
        assert meta.data["creator_of"] == []
        assert summary.data == {"id": created["id"], "username": "owl", "email": "owl@example.com"}

    @pytest.mark.asyncio
    async def test_find_id_requires_uuid(self, router):
        response = await _call(router, "users.find.id", {"id": "42"})
        assert response.error["status"] == 400
        assert response.error["message"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_summary_batch_fails_fast_before_store(self, router, monkeypatch):
        created = await _create(router, "owl")

        def boom(ids):
            raise AssertionError("store should not be reached")

        monkeypatch.setattr(router.users.store, "get_many", boom)
        response = await _call(router, "users.find.summary.batch", {"ids": [created["id"], "bad"]})
        assert response.error["message"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_summary_batch(self, router):
        owl = await _create(router, "owl")
        hawk = await _create(router, "hawk")
        response = await _call(router, "users.find.summary.batch", {"ids": [owl["id"], hawk["id"]]})
        assert [s["username"] for s in response.data] == ["owl", "hawk"]

    @pytest.mark.asyncio
    async def test_find_all_role_gated(self, router):
        owl = await _create(router, "owl")
        await _create(router, "hawk")
        await _call(router, "users.remove", {"id": owl["id"]})

        member = await _call(
            router, "users.findAll", {"pagination": {"page": 1, "limit": 10}, "user": {"roles": [Role.USER]}}
        )
        admin = await _call(router, "users.findAll", {"pagination": {}, "user": {"roles": [Role.ADMIN]}})

        assert member.data["meta"] == {"total": 1, "page": 1, "last_page": 1}
        assert admin.data["meta"]["total"] == 2

    @pytest.mark.asyncio
    async def test_find_all_rejects_unknown_envelope_keys(self, router):
        await _create(router, "owl")
        await _create(router, "hawk")

        misnamed = await _call(
            router, "users.findAll", {"paginationDto": {"page": 2, "limit": 1}, "user": {"roles": [Role.USER]}}
        )
        paged = await _call(
            router, "users.findAll", {"pagination": {"page": 2, "limit": 1}, "user": {"roles": [Role.USER]}}
        )

        assert misnamed.error["status"] == 400
        assert any("paginationDto" in e for e in misnamed.error["errors"])
        assert paged.data["meta"] == {"total": 2, "page": 2, "last_page": 2}
        assert len(paged.data["data"]) == 1

    @pytest.mark.asyncio
    async def test_update_remove_restore(self, router):
        owl = await _create(router, "owl")

        updated = await _call(router, "users.update", {"id": owl["id"], "username": " Barn "})
        assert updated.data["username"] == "barn"

        assert (await _call(router, "users.remove", {"id": owl["id"]})).ok
        conflict = await _call(router, "users.remove", {"id": owl["id"]})
        assert conflict.error == {"status": 409, "message": f"User with id {owl['id']} is already disabled"}

        assert (await _call(router, "users.restore", {"id": owl["id"]})).ok
        conflict = await _call(router, "users.restore", {"id": owl["id"]})
        assert conflict.error["status"] == 409

    @pytest.mark.asyncio
    async def test_no_response_leaks_password(self, router):
        owl = await _create(router, "owl")
        responses = [
            await _call(router, "users.findAll", {"user": {"roles": [Role.ADMIN]}}),
            await _call(router, "users.find.id", {"id": owl["id"]}),
            await _call(router, "users.update", {"id": owl["id"], "password": "Changed-1!"}),
            await _call(router, "users.remove", {"id": owl["id"]}),
            await _call(router, "users.restore", {"id": owl["id"]}),
        ]
        for response in responses:
            assert response.ok
            serialized = json.dumps(response.data)
            assert '"password"' not in serialized
            assert '"password_hash"' not in serialized

    @pytest.mark.asyncio
    async def test_unexpected_error_is_opaque(self, router, monkeypatch):
        def boom(user_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(router.users.store, "get", boom)
        response = await _call(router, "users.find.id", {"id": ADMIN_ID})
        assert response.error == {"status": 500, "message": "Internal server error"}

    @pytest.mark.asyncio
    async def test_request_id_in_diagnostics(self, router, event_log):
        request = _request("auth.verify", {"token": "garbage"})
        await router.handle(request)

        events = [json.loads(line) for line in event_log.read_text().splitlines()]
        assert events[-1]["event_type"] == "token_rejected"
        assert events[-1]["request_id"] == request.request_id
