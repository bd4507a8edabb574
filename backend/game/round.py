"""Round record owned by the game engine."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class Phase(str, Enum):
    WAITING = "waiting"
    RUNNING = "running"
    CRASHED = "crashed"


@dataclass
class Round:
    sequence_number: int
    secret: bytes = field(repr=False)
    commitment_hash: str
    countdown_remaining: int
    phase: Phase = Phase.WAITING
    current_multiplier: Decimal = Decimal("1.00")
    # Derived once when running begins; private until crashed
    crash_multiplier: Optional[float] = field(default=None, repr=False)

    @property
    def revealed_secret(self) -> Optional[str]:
        """Hex secret, available only after the crash."""
        if self.phase != Phase.CRASHED:
            return None
        return self.secret.hex()

    def public_view(self) -> Dict[str, Any]:
        """Wire view of the round; secret and crash point stay hidden until crashed."""
        data = {
            "phase": self.phase.value,
            "sequenceNumber": self.sequence_number,
            "commitmentHash": self.commitment_hash,
            "countdownRemaining": self.countdown_remaining if self.phase == Phase.WAITING else 0,
            "currentMultiplier": str(self.current_multiplier),
        }
        if self.phase == Phase.CRASHED:
            # Frozen at the oracle float; shortest round-trip form
            data["currentMultiplier"] = str(float(self.current_multiplier))
            data["crashMultiplier"] = self.crash_multiplier
            data["revealedSecret"] = self.revealed_secret
        return data
