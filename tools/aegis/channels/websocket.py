"""WebSocketChannel - JSON frames over an aiohttp WebSocket.

Frames in:  {"id": "<request id>", "pattern": "users.find.id", "data": {...}}
Frames out: {"id": "<request id>", "data": ...} or {"id": ..., "error": {...}}
"""

import json
import logging
import uuid
from typing import Any

from aiohttp import WSMsgType, web

from ..bus import RpcResponse
from ..diagnostics import log_event
from .base import BaseChannel

logger = logging.getLogger(__name__)


class WebSocketChannel(BaseChannel):
    """RPC transport serving a single WebSocket endpoint at /rpc."""

    name = "websocket"

    def __init__(self, config: dict[str, Any], bus):
        super().__init__(config, bus)
        self.host = config.get("host", "127.0.0.1")
        self.port = config.get("port", 8765)
        self.connections: dict[str, web.WebSocketResponse] = {}
        self.app = None
        self.runner = None
        self.site = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/rpc", self.handle_websocket)
        return app

    async def start(self) -> None:
        if self.runner is not None:
            return
        self.app = self.build_app()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        logger.info(f"WebSocketChannel started on {self.host}:{self.port}")

    async def stop(self) -> None:
        for ws in list(self.connections.values()):
            await ws.close()
        self.connections.clear()
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        self.site = None
        self.runner = None
        logger.info("WebSocketChannel stopped")

    async def send(self, msg: RpcResponse) -> None:
        ws = self.connections.get(msg.chat_id)
        if ws and not ws.closed:
            await ws.send_json(msg.to_frame())
        else:
            logger.warning(f"No active WebSocket for chat_id={msg.chat_id}")

    async def _reject(self, ws: web.WebSocketResponse, request_id: Any, message: str) -> None:
        await ws.send_json({"id": request_id, "error": {"status": 400, "message": message}})

    async def handle_websocket(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        chat_id = uuid.uuid4().hex
        self.connections[chat_id] = ws
        log_event("rpc_connection_opened", chat_id=chat_id, remote=request.remote)

        try:
            async for frame in ws:
                if frame.type == WSMsgType.TEXT:
                    try:
                        body = json.loads(frame.data)
                    except json.JSONDecodeError:
                        await self._reject(ws, None, "Malformed JSON frame")
                        continue

                    if not isinstance(body, dict) or not isinstance(body.get("pattern"), str):
                        request_id = body.get("id") if isinstance(body, dict) else None
                        await self._reject(ws, request_id, "Frame must carry a pattern")
                        continue

                    await self._handle_request(
                        chat_id=chat_id,
                        pattern=body["pattern"],
                        data=body.get("data"),
                        request_id=str(body["id"]) if body.get("id") is not None else None,
                        metadata={"remote": request.remote},
                    )
                elif frame.type == WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
        finally:
            self.connections.pop(chat_id, None)
            log_event("rpc_connection_closed", chat_id=chat_id)

        return ws
