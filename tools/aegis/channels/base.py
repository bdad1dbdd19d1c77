"""Base channel interface for the Aegis gateway.

All transport implementations must inherit from BaseChannel.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..bus import MessageBus, RpcRequest, RpcResponse


class BaseChannel(ABC):
    """Abstract base class for RPC transports.

    Channels accept calls from remote services, turn them into RpcRequest
    and deliver the matching RpcResponse back on the same connection.

    Architecture:
        Caller → Channel → _handle_request() → MessageBus → Router
        Router → MessageBus → Channel.send() → Caller
    """

    name = "base"

    def __init__(self, config: Dict[str, Any], bus: MessageBus):
        self.config = config
        self.bus = bus

    @abstractmethod
    async def start(self) -> None:
        """Start accepting connections. Must be idempotent."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop gracefully and release resources. Must be idempotent."""

    @abstractmethod
    async def send(self, msg: RpcResponse) -> None:
        """Deliver a response to the connection identified by ``msg.chat_id``."""

    async def _handle_request(
        self,
        chat_id: str,
        pattern: str,
        data: Any,
        request_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> RpcRequest:
        """Wrap a decoded call in an RpcRequest and publish it to the bus."""
        msg = RpcRequest(
            channel=self.name,
            chat_id=chat_id,
            pattern=pattern,
            data=data,
            metadata=metadata or {},
        )
        if request_id:
            msg.request_id = request_id
        await self.bus.publish_inbound(msg)
        return msg
