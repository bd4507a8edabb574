"""
Participants and the per-round bet ledger.

Participants persist across rounds and hold the only persistent balance.
Bets live for one round only: the ledger is cleared whenever a new round
enters the waiting phase.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import InvalidBetRequest, InvalidCashOutRequest, RejectReason

logger = logging.getLogger(__name__)

# Wagers are whole cents; winnings are exact, never rounded
MONEY_QUANT = Decimal("0.01")


@dataclass
class Participant:
    connection_id: str
    balance: Decimal
    name: Optional[str] = None
    connected: bool = True

    def to_dict(self):
        return {"balance": str(self.balance), "name": self.name}


@dataclass
class Bet:
    amount: Decimal
    cash_out_multiplier: Optional[Decimal] = None
    placed_at: float = field(default_factory=time.time)

    @property
    def cashed_out(self) -> bool:
        return self.cash_out_multiplier is not None

    @property
    def winnings(self) -> Decimal:
        if self.cash_out_multiplier is None:
            return Decimal("0.00")
        return self.amount * self.cash_out_multiplier

    def to_dict(self):
        return {
            "amount": str(self.amount),
            "cash_out_multiplier": str(self.cash_out_multiplier) if self.cashed_out else None,
            "winnings": str(self.winnings),
        }


class ParticipantRegistry:
    """connection id -> Participant."""

    def __init__(self, starting_balance: Decimal = Decimal("1000")):
        self.starting_balance = Decimal(starting_balance)
        self._participants: Dict[str, Participant] = {}

    def register(self, connection_id: str) -> Participant:
        participant = self._participants.get(connection_id)
        if participant is None:
            participant = Participant(connection_id=connection_id, balance=self.starting_balance)
            self._participants[connection_id] = participant
        participant.connected = True
        return participant

    def get(self, connection_id: str) -> Optional[Participant]:
        return self._participants.get(connection_id)

    def remove(self, connection_id: str) -> Optional[Participant]:
        return self._participants.pop(connection_id, None)

    def prune_disconnected(self) -> List[str]:
        """Drop participants that left while holding a bet."""
        gone = [cid for cid, p in self._participants.items() if not p.connected]
        for cid in gone:
            del self._participants[cid]
        return gone

    def display_name(self, connection_id: str) -> str:
        participant = self._participants.get(connection_id)
        if participant and participant.name:
            return participant.name
        return "Anonymous"

    def __contains__(self, connection_id) -> bool:
        return connection_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(list(self._participants.values()))


class BetLedger:
    """Active wagers for the current round, one per participant."""

    def __init__(self, participants: ParticipantRegistry):
        self.participants = participants
        self._bets: Dict[str, Bet] = {}

    def place(self, participant_id: str, amount: Decimal) -> Bet:
        """Debit the wager immediately and record the bet."""
        participant = self.participants.get(participant_id)
        if participant is None:
            raise InvalidBetRequest(RejectReason.UNKNOWN_PARTICIPANT)
        if participant_id in self._bets:
            raise InvalidBetRequest(RejectReason.DUPLICATE_BET, "Bet already placed this round")

        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise InvalidBetRequest(RejectReason.INVALID_AMOUNT, "Bet amount must be a number")
        if not amount.is_finite() or amount <= 0:
            raise InvalidBetRequest(RejectReason.INVALID_AMOUNT, "Bet amount must be positive")
        if amount > participant.balance:
            raise InvalidBetRequest(RejectReason.INSUFFICIENT_BALANCE, "Bet exceeds balance")
        if amount != amount.quantize(MONEY_QUANT):
            raise InvalidBetRequest(RejectReason.INVALID_AMOUNT, "Bet amount must be whole cents")

        participant.balance -= amount
        bet = Bet(amount=amount)
        self._bets[participant_id] = bet
        return bet

    def cash_out(self, participant_id: str, multiplier: Decimal) -> Bet:
        """Lock in the multiplier and credit winnings right away."""
        bet = self._bets.get(participant_id)
        if bet is None:
            raise InvalidCashOutRequest(RejectReason.NO_ACTIVE_BET, "No active bet this round")
        if bet.cashed_out:
            raise InvalidCashOutRequest(RejectReason.ALREADY_CASHED_OUT, "Bet already cashed out")

        bet.cash_out_multiplier = Decimal(multiplier)
        participant = self.participants.get(participant_id)
        if participant is not None:
            participant.balance += bet.winnings
        else:
            logger.warning(f"Cash-out for unregistered participant {participant_id}, winnings not credited")
        return bet

    def get(self, participant_id: str) -> Optional[Bet]:
        return self._bets.get(participant_id)

    def has_bet(self, participant_id: str) -> bool:
        return participant_id in self._bets

    def snapshot(self) -> List[Tuple[str, Bet]]:
        """Copies of every bet in placement order."""
        return [(pid, replace(bet)) for pid, bet in self._bets.items()]

    def clear(self) -> None:
        self._bets.clear()

    def __len__(self) -> int:
        return len(self._bets)
