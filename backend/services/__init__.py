"""Services package for the crash round server."""

from .websocket_service import WebSocketManager

__all__ = [
    "WebSocketManager"
]
