"""Game-related API routes for the crash round server."""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from game.exceptions import RejectReason, RequestRejected
from game.fairness import verify_round

# Setup logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/game", tags=["game"])

HEX_64 = r"^[0-9a-fA-F]{64}$"


# Pydantic models for request/response
class BetRequest(BaseModel):
    connection_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class CashoutRequest(BaseModel):
    connection_id: str = Field(..., min_length=1, max_length=64)


class NameRequest(BaseModel):
    connection_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., max_length=256)


class VerifyRequest(BaseModel):
    sequence_number: int = Field(..., ge=1)
    revealed_secret: str = Field(..., pattern=r"^([0-9a-fA-F]{2})+$")
    commitment_hash: str = Field(..., pattern=HEX_64)
    crash_multiplier: Optional[float] = None


def get_game_engine(request: Request):
    """Get game engine from app state."""
    game_engine = getattr(request.app.state, 'game_engine', None)
    if not game_engine:
        raise HTTPException(503, "Game engine not available")
    return game_engine


def _rejection(e: RequestRejected) -> HTTPException:
    status_code = 404 if e.reason == RejectReason.UNKNOWN_PARTICIPANT else 400
    return HTTPException(status_code=status_code, detail=e.to_dict())


@router.get("/current-state")
async def get_current_state(request: Request, connection_id: Optional[str] = None):
    """Get current round state. Never includes the unrevealed secret."""
    game_engine = get_game_engine(request)
    return game_engine.get_current_status(connection_id)


@router.get("/recent-crashes")
async def get_recent_crashes(request: Request):
    """Last crash multipliers, oldest first."""
    game_engine = get_game_engine(request)
    return {"recentOutcomes": list(game_engine.recent_outcomes.snapshot())}


@router.post("/verify")
async def verify(request_data: VerifyRequest):
    """Recompute commitment and crash multiplier for a revealed round."""
    result = verify_round(
        request_data.revealed_secret,
        request_data.sequence_number,
        request_data.commitment_hash,
        request_data.crash_multiplier,
    )
    return result.to_dict()


@router.post("/bet")
async def place_bet(request_data: BetRequest, request: Request):
    """Place a bet for the current round."""
    game_engine = get_game_engine(request)
    try:
        bet = await game_engine.place_bet(request_data.connection_id, request_data.amount)
    except RequestRejected as e:
        raise _rejection(e)

    participant = game_engine.participants.get(request_data.connection_id)
    return {
        "success": True,
        "bet": bet.to_dict(),
        "balance": str(participant.balance),
    }


@router.post("/cashout")
async def cashout(request_data: CashoutRequest, request: Request):
    """Cash out the current bet at the live multiplier."""
    game_engine = get_game_engine(request)
    try:
        bet = await game_engine.cash_out(request_data.connection_id)
    except RequestRejected as e:
        raise _rejection(e)

    participant = game_engine.participants.get(request_data.connection_id)
    return {
        "success": True,
        "multiplier": str(bet.cash_out_multiplier),
        "winnings": str(bet.winnings),
        "balance": str(participant.balance),
    }


@router.post("/name")
async def set_name(request_data: NameRequest, request: Request):
    """Set the display name required before betting."""
    game_engine = get_game_engine(request)
    try:
        participant = await game_engine.set_name(request_data.connection_id, request_data.name)
    except RequestRejected as e:
        raise _rejection(e)
    return {"success": True, **participant.to_dict()}
