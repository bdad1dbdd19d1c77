"""Message bus for routing RPC calls between channels and the router.

Requests and responses flow through two async queues:

    Inbound:  Channel → publish_inbound() → Queue → consume_inbound() → Router
    Outbound: Router → publish_outbound() → Queue → consume_outbound() → Channel

RpcRequest names the endpoint (``pattern``) and carries the payload.
RpcResponse carries either ``data`` or ``error`` back to the originating
channel and connection, correlated by ``request_id``.

All queues are in-memory asyncio.Queue instances — no persistence layer.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass
class RpcRequest:
    """A call received from an external channel.

    Attributes:
        channel: Source channel identifier (e.g. "websocket").
        chat_id: Connection identifier within the channel.
        pattern: Endpoint name, e.g. "auth.login" or "users.find.id".
        data: Request payload.
        request_id: Correlation id, echoed on the response.
        metadata: Arbitrary key-value pairs for channel-specific data.
    """

    channel: str
    chat_id: str
    pattern: str
    data: Any = None
    request_id: str = field(default_factory=new_request_id)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RpcResponse:
    """A reply destined for an external channel.

    Exactly one of ``data`` / ``error`` is meaningful: ``error`` is set when
    the call failed and holds ``{"status", "message"}``.
    """

    channel: str
    chat_id: str
    request_id: str
    data: Any = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_frame(self) -> Dict[str, Any]:
        if self.error is not None:
            return {"id": self.request_id, "error": self.error}
        return {"id": self.request_id, "data": self.data}


class MessageBus:
    """Async message routing between channels and the router.

    Usage::

        bus = MessageBus()

        # Channel side
        await bus.publish_inbound(request)
        response = await bus.consume_outbound()

        # Router side
        request = await bus.consume_inbound()
        await bus.publish_outbound(response)
    """

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[RpcRequest] = asyncio.Queue()
        self.outbound: asyncio.Queue[RpcResponse] = asyncio.Queue()

    async def publish_inbound(self, msg: RpcRequest) -> None:
        await self.inbound.put(msg)

    async def consume_inbound(self) -> RpcRequest:
        """Consume the next request. Blocks until one is available."""
        return await self.inbound.get()

    async def publish_outbound(self, msg: RpcResponse) -> None:
        await self.outbound.put(msg)

    async def consume_outbound(self) -> RpcResponse:
        """Consume the next response. Blocks until one is available."""
        return await self.outbound.get()
