"""Crash-time settlement and leaderboard."""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from .ledger import BetLedger, ParticipantRegistry

CRASHED = "CRASHED"


@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    result: str
    money: Decimal
    cash_out_multiplier: Optional[Decimal] = None

    def to_dict(self):
        return {"name": self.name, "result": self.result, "money": str(self.money)}


def format_multiplier(multiplier) -> str:
    return f"{Decimal(multiplier):.2f}x"


class SettlementEngine:
    """Turns the ledger snapshot at crash time into a leaderboard.

    Balances are not touched: wagers were debited at placement and cash-out
    winnings were credited when the participant cashed out.
    """

    def __init__(self, participants: ParticipantRegistry):
        self.participants = participants

    def settle(self, ledger: BetLedger) -> List[LeaderboardEntry]:
        leaderboard = []
        for participant_id, bet in ledger.snapshot():
            name = self.participants.display_name(participant_id)
            if bet.cashed_out:
                entry = LeaderboardEntry(
                    name=name,
                    result=format_multiplier(bet.cash_out_multiplier),
                    money=bet.winnings,
                    cash_out_multiplier=bet.cash_out_multiplier,
                )
            else:
                entry = LeaderboardEntry(name=name, result=CRASHED, money=Decimal("0.00"))
            leaderboard.append(entry)
        return leaderboard
