"""
Game engine for the crash round - the single owner of round state.
Drives the waiting -> running -> crashed cycle and serializes player actions.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from config.settings import load_game_config
from logging_config import get_audit_logger

from .exceptions import (
    GameError,
    InvalidBetRequest,
    InvalidCashOutRequest,
    InvalidNameRequest,
    RejectReason,
    RequestRejected,
    VerificationMismatch,
)
from .fairness import FairnessCommitment, compute_crash_multiplier
from .history import RecentOutcomesWindow
from .ledger import Bet, BetLedger, Participant, ParticipantRegistry
from .round import Phase, Round
from .settlement import LeaderboardEntry, SettlementEngine
from .timer import PhaseTimer

# Setup logging
logger = logging.getLogger(__name__)


class GameEngine:
    """Core game engine for the crash game.

    Every mutation of the round, the ledger or a balance happens while holding
    one asyncio lock, whether it comes from a phase timer or from a
    participant request. Only one phase timer is ever pending.
    """

    def __init__(self, broadcaster, game_config: Optional[Dict[str, Any]] = None,
                 fairness: Optional[FairnessCommitment] = None, timer=None, audit_logger=None,
                 crash_oracle=compute_crash_multiplier):
        self.broadcaster = broadcaster
        self.config = game_config or load_game_config()
        self.fairness = fairness or FairnessCommitment()
        self.crash_oracle = crash_oracle
        self.timer = timer or PhaseTimer()
        self.audit = audit_logger or get_audit_logger()

        self.participants = ParticipantRegistry(self.config["starting_balance"])
        self.ledger = BetLedger(self.participants)
        self.settlement = SettlementEngine(self.participants)
        self.recent_outcomes = RecentOutcomesWindow(self.config["recent_outcomes_capacity"])

        self.round: Optional[Round] = None
        self.leaderboard: List[LeaderboardEntry] = []
        self.running = False
        self.halted_reason: Optional[str] = None
        self._last_sequence_number = 0
        self._lock = asyncio.Lock()

    @property
    def phase(self) -> Optional[Phase]:
        return self.round.phase if self.round else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Start the game engine"""
        if self.running:
            return
        self.running = True
        self.halted_reason = None
        logger.info("🎮 Game engine started")
        await self._enter_waiting()

    async def stop(self):
        """Stop the game engine"""
        self.running = False
        self.timer.cancel()
        logger.info("🛑 Game engine stopped")

    def _halt(self, error: GameError):
        self.running = False
        self.timer.cancel()
        self.halted_reason = f"{error.code}: {error}"
        logger.critical(f"🚨 Round progression halted: {self.halted_reason}")

    def _schedule(self, delay: float, callback):
        if not self.running:
            return
        self.timer.schedule(delay, callback)

    # ------------------------------------------------------------------
    # Phase transitions
    # ------------------------------------------------------------------

    async def _enter_waiting(self):
        """Start a new round: fresh sequence number and commitment."""
        async with self._lock:
            self.timer.cancel()
            try:
                await self._open_round()
            except GameError as e:
                self._halt(e)
            except Exception as e:
                logger.error(f"❌ Failed to open round: {e}", exc_info=True)
                self._halt(GameError(f"Unexpected error opening round: {e!r}"))

    async def _open_round(self):
        """Caller holds the lock."""
        secret, commitment_hash = self.fairness.new_round_secret()

        self._last_sequence_number += 1
        self.ledger.clear()
        pruned = self.participants.prune_disconnected()
        if pruned:
            logger.debug(f"Dropped {len(pruned)} disconnected participants")
        self.leaderboard = []

        self.round = Round(
            sequence_number=self._last_sequence_number,
            secret=secret,
            commitment_hash=commitment_hash,
            countdown_remaining=int(self.config["countdown_seconds"]),
        )
        self.audit.commitment_published(self.round.sequence_number, commitment_hash)

        await self._emit("waitingPhase", {
            "sequenceNumber": self.round.sequence_number,
            "countdownRemaining": self.round.countdown_remaining,
            "commitmentHash": commitment_hash,
        })
        await self._emit("leaderboardUpdate", [])

        if self.round.countdown_remaining <= 0:
            await self._begin_running()
        else:
            self._schedule(self.config["countdown_interval"], self._countdown_tick)

    async def _countdown_tick(self):
        async with self._lock:
            if self.phase != Phase.WAITING:
                return
            self.round.countdown_remaining -= 1
            await self._emit("countdownUpdate", {"countdownRemaining": self.round.countdown_remaining})

            if self.round.countdown_remaining <= 0:
                await self._begin_running()
            else:
                self._schedule(self.config["countdown_interval"], self._countdown_tick)

    async def _begin_running(self):
        """Lock bets and derive the crash multiplier. Caller holds the lock."""
        self.timer.cancel()
        current = self.round
        if current.crash_multiplier is None:
            current.crash_multiplier = self.crash_oracle(current.secret, current.sequence_number)
        current.phase = Phase.RUNNING
        current.current_multiplier = Decimal("1.00")

        logger.info(f"🚀 Round {current.sequence_number} started with {len(self.ledger)} bets")
        await self._emit("gameStarted", {"sequenceNumber": current.sequence_number})

        if current.current_multiplier >= current.crash_multiplier:
            await self._crash()
            return
        self._schedule(self.config["tick_ms"] / 1000.0, self._multiplier_tick)

    async def _multiplier_tick(self):
        async with self._lock:
            if self.phase != Phase.RUNNING:
                return
            current = self.round
            next_multiplier = current.current_multiplier + self.config["multiplier_increment"]

            if next_multiplier >= current.crash_multiplier:
                await self._crash()
                return

            current.current_multiplier = next_multiplier
            await self._emit("multiplierUpdate", {"currentMultiplier": str(next_multiplier)})
            self._schedule(self.config["tick_ms"] / 1000.0, self._multiplier_tick)

    async def _crash(self):
        """Freeze, settle, reveal. Caller holds the lock."""
        self.timer.cancel()
        current = self.round
        current.phase = Phase.CRASHED
        current.current_multiplier = Decimal(current.crash_multiplier)

        self.leaderboard = self.settlement.settle(self.ledger)

        verified = self.fairness.verify(current.secret, current.commitment_hash)
        self.audit.secret_revealed(current.sequence_number, current.crash_multiplier, verified)
        if not verified:
            self._halt(VerificationMismatch(
                f"Round {current.sequence_number} secret does not match its commitment"
            ))
            return

        self.recent_outcomes.record(current.crash_multiplier)

        logger.info(f"💥 Round {current.sequence_number} crashed at {current.crash_multiplier:.2f}x")
        await self._emit("gameCrashed", {
            "sequenceNumber": current.sequence_number,
            "crashMultiplier": current.crash_multiplier,
            "revealedSecret": current.revealed_secret,
            "commitmentHash": current.commitment_hash,
        })
        await self._emit("leaderboardUpdate", [entry.to_dict() for entry in self.leaderboard])
        await self._emit("recentOutcomesUpdate", list(self.recent_outcomes.snapshot()))

        self._schedule(self.config["crash_delay_seconds"], self._enter_waiting)

    # ------------------------------------------------------------------
    # Participant requests
    # ------------------------------------------------------------------

    async def register_participant(self, connection_id: str) -> Participant:
        async with self._lock:
            return self.participants.register(connection_id)

    async def unregister_participant(self, connection_id: str):
        """Handle a disconnect. A bet placed this round stays and settles as usual."""
        async with self._lock:
            participant = self.participants.get(connection_id)
            if participant is None:
                return
            if self.ledger.has_bet(connection_id):
                participant.connected = False
            else:
                self.participants.remove(connection_id)

    def _require_participant(self, connection_id: str, error_cls) -> Participant:
        participant = self.participants.get(connection_id)
        if participant is None or not participant.connected:
            raise error_cls(RejectReason.UNKNOWN_PARTICIPANT, "Unknown participant")
        return participant

    async def set_name(self, connection_id: str, name: str) -> Participant:
        async with self._lock:
            try:
                participant = self._require_participant(connection_id, InvalidNameRequest)
                if participant.name:
                    raise InvalidNameRequest(RejectReason.NAME_ALREADY_SET, "Name already set")
                cleaned = name.strip() if isinstance(name, str) else ""
                if not cleaned or len(cleaned) > self.config["max_name_length"]:
                    raise InvalidNameRequest(RejectReason.INVALID_NAME, "Name must be 1-"
                                             f"{self.config['max_name_length']} characters")
            except RequestRejected as e:
                self.audit.request_rejected(connection_id, e.action, e.code)
                raise

            participant.name = cleaned
            await self._send(connection_id, "userUpdate", participant.to_dict())
            return participant

    async def place_bet(self, connection_id: str, amount) -> Bet:
        """Accept a wager during the waiting phase; the balance is debited now."""
        async with self._lock:
            try:
                participant = self._require_participant(connection_id, InvalidBetRequest)
                if self.phase != Phase.WAITING:
                    raise InvalidBetRequest(RejectReason.WRONG_PHASE, "Bets are only accepted while waiting")
                if not participant.name:
                    raise InvalidBetRequest(RejectReason.NAME_REQUIRED, "Set a name before betting")
                bet = self.ledger.place(connection_id, amount)
            except RequestRejected as e:
                self.audit.request_rejected(connection_id, e.action, e.code)
                raise

            await self._send(connection_id, "balanceUpdate", {"balance": str(participant.balance)})
            await self._emit("betPlaced", {"name": participant.name, "amount": str(bet.amount)})
            return bet

    async def cash_out(self, connection_id: str) -> Bet:
        """Cash out at the current multiplier; winnings are credited now."""
        async with self._lock:
            try:
                participant = self._require_participant(connection_id, InvalidCashOutRequest)
                if self.phase != Phase.RUNNING:
                    raise InvalidCashOutRequest(RejectReason.WRONG_PHASE, "Cash-out is only possible while running")
                bet = self.ledger.cash_out(connection_id, self.round.current_multiplier)
            except RequestRejected as e:
                self.audit.request_rejected(connection_id, e.action, e.code)
                raise

            multiplier = str(bet.cash_out_multiplier)
            await self._send(connection_id, "balanceUpdate", {"balance": str(participant.balance)})
            await self._send(connection_id, "cashOutSuccess", {
                "multiplier": multiplier,
                "winnings": str(bet.winnings),
            })
            await self._emit("playerCashedOut", {"name": participant.name, "multiplier": multiplier})
            return bet

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_current_status(self, connection_id: Optional[str] = None) -> Dict[str, Any]:
        """Snapshot for newly connected clients and the REST state endpoint."""
        status: Dict[str, Any] = self.round.public_view() if self.round else {"phase": None}
        status["recentOutcomes"] = list(self.recent_outcomes.snapshot())
        status["leaderboard"] = [entry.to_dict() for entry in self.leaderboard]
        status["engineRunning"] = self.running
        if self.halted_reason:
            status["haltedReason"] = self.halted_reason

        if connection_id is not None:
            participant = self.participants.get(connection_id)
            if participant is not None:
                status.update(participant.to_dict())
                bet = self.ledger.get(connection_id)
                status["bet"] = bet.to_dict() if bet else None
        return status

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    async def _emit(self, event: str, data):
        # A failed broadcast must never stall the round
        try:
            await self.broadcaster.broadcast(event, data)
        except Exception as e:
            logger.error(f"❌ Broadcast of {event} failed: {e}", exc_info=True)

    async def _send(self, connection_id: str, event: str, data):
        try:
            await self.broadcaster.send_to(connection_id, event, data)
        except Exception as e:
            logger.error(f"❌ Send of {event} to {connection_id} failed: {e}")
