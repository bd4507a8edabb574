"""Error taxonomy for the crash round engine."""

from enum import Enum


class RejectReason(str, Enum):
    WRONG_PHASE = "WrongPhase"
    DUPLICATE_BET = "DuplicateBet"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_AMOUNT = "InvalidAmount"
    NO_ACTIVE_BET = "NoActiveBet"
    ALREADY_CASHED_OUT = "AlreadyCashedOut"
    NAME_REQUIRED = "NameRequired"
    INVALID_NAME = "InvalidName"
    NAME_ALREADY_SET = "NameAlreadySet"
    UNKNOWN_PARTICIPANT = "UnknownParticipant"


class GameError(Exception):
    """Base engine error"""

    code = "GameError"


class FairnessGenerationFailure(GameError):
    """The secure random source could not produce a round secret. Fatal."""

    code = "FairnessGenerationFailure"


class VerificationMismatch(GameError):
    """A revealed secret does not match its commitment or crash multiplier."""

    code = "VerificationMismatch"


class RequestRejected(GameError):
    """A participant request was refused; no state was changed."""

    action = "request"

    def __init__(self, reason: RejectReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.value)

    @property
    def code(self) -> str:
        return self.reason.value

    def to_dict(self):
        return {"code": self.code, "message": str(self), "action": self.action}


class InvalidBetRequest(RequestRejected):
    action = "placeBet"


class InvalidCashOutRequest(RequestRejected):
    action = "cashOut"


class InvalidNameRequest(RequestRejected):
    action = "setName"
