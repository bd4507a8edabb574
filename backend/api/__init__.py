"""API package for the crash round server."""

from .game_routes import router as game_router

__all__ = [
    "game_router"
]
