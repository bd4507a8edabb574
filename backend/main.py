"""
Crash round server.
FastAPI application wiring the game engine to WebSocket and REST clients.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from api import game_router
from config.settings import CORS_ORIGINS, get_config_summary, load_game_config
from game import GameEngine
from game.exceptions import RequestRejected
from logging_config import setup_logging
from services import WebSocketManager

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

WEBSOCKET_MAX_MESSAGE_SIZE = 1024
WEBSOCKET_ALLOWED_MESSAGE_TYPES = {"setName", "placeBet", "cashOut", "ping"}


def create_app(game_config: Optional[Dict[str, Any]] = None) -> FastAPI:
    """Build the application; game_config overrides the environment config."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        setup_logging()
        config = load_game_config(game_config)
        logger.info(get_config_summary(config))

        websocket_manager = WebSocketManager()
        game_engine = GameEngine(websocket_manager, config)
        app.state.websocket_manager = websocket_manager
        app.state.game_engine = game_engine

        await game_engine.start()
        yield
        await game_engine.stop()

    app = FastAPI(
        title="Crash Round API",
        description="Provably fair crash game server",
        version=APP_VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(game_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Crash Round API",
            "version": APP_VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health_check(request: Request):
        """System health check."""
        game_engine = getattr(request.app.state, 'game_engine', None)
        engine_healthy = bool(game_engine and game_engine.running)
        websocket_manager = getattr(request.app.state, 'websocket_manager', None)
        return {
            "status": "ok" if engine_healthy else "degraded",
            "game_engine": "ok" if engine_healthy else "error",
            "halted_reason": game_engine.halted_reason if game_engine else None,
            "websocket": websocket_manager.get_stats() if websocket_manager else None,
            "version": APP_VERSION
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for real-time round updates and player actions"""
        ws_manager: Optional[WebSocketManager] = getattr(websocket.app.state, 'websocket_manager', None)
        game_engine: Optional[GameEngine] = getattr(websocket.app.state, 'game_engine', None)
        if not ws_manager or not game_engine:
            logger.error("❌ WebSocket manager not available")
            await websocket.close(code=4503, reason="Service unavailable")
            return

        connection_id = uuid.uuid4().hex
        await ws_manager.connect(websocket, connection_id)
        await game_engine.register_participant(connection_id)

        try:
            await ws_manager.send_to(connection_id, "connected", {"connectionId": connection_id})
            await ws_manager.send_to(connection_id, "gameUpdate", game_engine.get_current_status(connection_id))

            while True:
                data = await websocket.receive_text()
                ws_manager.touch(connection_id)

                if len(data) > WEBSOCKET_MAX_MESSAGE_SIZE:
                    logger.warning(f"🚨 WebSocket message too large from {connection_id}: {len(data)} bytes")
                    await _send_error(ws_manager, connection_id, "MessageTooLarge", "Message too large")
                    continue

                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await _send_error(ws_manager, connection_id, "InvalidJson", "Invalid JSON format")
                    continue

                if not isinstance(message, dict) or message.get("type") not in WEBSOCKET_ALLOWED_MESSAGE_TYPES:
                    await _send_error(ws_manager, connection_id, "UnknownMessageType", "Unknown message type")
                    continue

                await _handle_message(game_engine, ws_manager, connection_id, message)

        except WebSocketDisconnect:
            logger.debug(f"🔌 WebSocket disconnected: {connection_id}")
        except Exception as e:
            logger.error(f"❌ WebSocket error for {connection_id}: {e}", exc_info=True)
        finally:
            await game_engine.unregister_participant(connection_id)
            await ws_manager.disconnect(connection_id)

    @app.get("/ws/stats")
    async def websocket_stats(request: Request):
        """WebSocket statistics"""
        ws_manager = getattr(request.app.state, 'websocket_manager', None)
        if ws_manager:
            return {"websocket_stats": ws_manager.get_stats()}
        return {"websocket_stats": {"error": "WebSocket manager not available"}}

    return app


async def _send_error(ws_manager: WebSocketManager, connection_id: str, code: str, message: str):
    await ws_manager.send_to(connection_id, "error", {"code": code, "message": message})


async def _handle_message(game_engine: GameEngine, ws_manager: WebSocketManager,
                          connection_id: str, message: Dict[str, Any]):
    message_type = message["type"]
    try:
        if message_type == "setName":
            await game_engine.set_name(connection_id, message.get("name"))
        elif message_type == "placeBet":
            await game_engine.place_bet(connection_id, message.get("amount"))
        elif message_type == "cashOut":
            await game_engine.cash_out(connection_id)
        elif message_type == "ping":
            await ws_manager.send_to(connection_id, "pong", {"timestamp": time.time()})
    except RequestRejected as e:
        await ws_manager.send_to(connection_id, "error", e.to_dict())


app = create_app()


def run():
    """Console entry point."""
    import os
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3001")),
        log_config=None,
    )


if __name__ == "__main__":
    run()
