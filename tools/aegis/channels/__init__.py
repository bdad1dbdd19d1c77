from .base import BaseChannel
from .websocket import WebSocketChannel

__all__ = ["BaseChannel", "WebSocketChannel"]
