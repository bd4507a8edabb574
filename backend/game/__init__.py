"""Crash round core: fairness, round state machine, ledger and settlement."""

from .engine import GameEngine
from .exceptions import (
    FairnessGenerationFailure,
    GameError,
    InvalidBetRequest,
    InvalidCashOutRequest,
    InvalidNameRequest,
    RejectReason,
    RequestRejected,
    VerificationMismatch
)
from .fairness import FairnessCommitment, compute_crash_multiplier, verify_round
from .history import RecentOutcomesWindow
from .ledger import Bet, BetLedger, Participant, ParticipantRegistry
from .round import Phase, Round
from .settlement import LeaderboardEntry, SettlementEngine

__all__ = [
    "GameEngine",
    "FairnessCommitment",
    "compute_crash_multiplier",
    "verify_round",
    "RecentOutcomesWindow",
    "Bet",
    "BetLedger",
    "Participant",
    "ParticipantRegistry",
    "Phase",
    "Round",
    "LeaderboardEntry",
    "SettlementEngine",
    "FairnessGenerationFailure",
    "GameError",
    "InvalidBetRequest",
    "InvalidCashOutRequest",
    "InvalidNameRequest",
    "RejectReason",
    "RequestRejected",
    "VerificationMismatch"
]
