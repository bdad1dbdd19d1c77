"""RPC endpoint table: maps message patterns onto the auth and user services."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from . import validation
from .auth.service import AuthService
from .bus import RpcRequest, RpcResponse
from .diagnostics import request_id_var
from .errors import INTERNAL_ERROR, NotFound, RpcError
from .users.service import UserService

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


class Router:
    """Dispatches an RpcRequest to the handler registered for its pattern."""

    def __init__(self, auth: AuthService, users: UserService) -> None:
        self.auth = auth
        self.users = users
        self.handlers: Dict[str, Handler] = {
            "users.health": self.health,
            "auth.login": self.login,
            "auth.verify": self.verify,
            "users.create": self.create,
            "users.findAll": self.find_all,
            "users.find.id": self.find_one,
            "users.find.username": self.find_by_username,
            "users.find.email": self.find_by_email,
            "users.find.meta": self.find_meta,
            "users.find.summary": self.find_summary,
            "users.find.summary.batch": self.find_summary_batch,
            "users.update": self.update,
            "users.remove": self.remove,
            "users.restore": self.restore,
        }

    @property
    def patterns(self) -> list[str]:
        return sorted(self.handlers)

    async def handle(self, request: RpcRequest) -> RpcResponse:
        """Run one request and wrap its outcome; never raises."""
        token = request_id_var.set(request.request_id)
        response = RpcResponse(
            channel=request.channel,
            chat_id=request.chat_id,
            request_id=request.request_id,
        )
        try:
            handler = self.handlers.get(request.pattern)
            if handler is None:
                raise NotFound(f"No handler for pattern {request.pattern}")
            response.data = await handler(request.data)
        except RpcError as exc:
            logger.info(f"[{request.request_id}] {request.pattern} -> {exc.status} {exc.message}")
            response.error = exc.to_dict()
        except Exception as exc:
            logger.error(f"[{request.request_id}] {request.pattern} failed: {exc}", exc_info=True)
            response.error = dict(INTERNAL_ERROR)
        finally:
            request_id_var.reset(token)
        return response

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    async def health(self, data: Any) -> str:
        return "users service is up and running!"

    async def login(self, data: Any) -> Dict[str, Any]:
        payload = validation.login_payload(data)
        return await self.auth.login(payload["username"], payload["password"])

    async def verify(self, data: Any) -> Dict[str, Any]:
        payload = validation.token_payload(data)
        return await self.auth.verify_token(payload["token"])

    async def create(self, data: Any) -> Dict[str, Any]:
        payload = validation.create_user_payload(data)
        return await self.users.create(
            username=payload["username"],
            email=payload["email"],
            created_by=payload["created_by"],
            password=payload.get("password"),
            roles=payload.get("roles"),
        )

    async def find_all(self, data: Any) -> Dict[str, Any]:
        payload = validation.find_all_payload(data)
        return await self.users.find_all(payload["page"], payload["limit"], payload["user"])

    async def find_one(self, data: Any) -> Dict[str, Any]:
        return await self.users.find_one(validation.id_payload(data))

    async def find_by_username(self, data: Any) -> Dict[str, Any]:
        return await self.users.find_by_username_or_email(username=validation.username_payload(data))

    async def find_by_email(self, data: Any) -> Dict[str, Any]:
        return await self.users.find_by_username_or_email(email=validation.email_payload(data))

    async def find_meta(self, data: Any) -> Dict[str, Any]:
        return await self.users.find_one_with_meta(validation.id_payload(data))

    async def find_summary(self, data: Any) -> Dict[str, Any]:
        return await self.users.find_one_with_summary(validation.id_payload(data))

    async def find_summary_batch(self, data: Any) -> list:
        return await self.users.find_summary(validation.ids_payload(data))

    async def update(self, data: Any) -> Dict[str, Any]:
        payload = validation.update_user_payload(data)
        user_id = payload.pop("id")
        return await self.users.update(user_id, payload)

    async def remove(self, data: Any) -> Dict[str, Any]:
        return await self.users.remove(validation.id_payload(data))

    async def restore(self, data: Any) -> Dict[str, Any]:
        return await self.users.restore(validation.id_payload(data))
