"""
Provably fair commit/reveal for crash rounds.

Every round gets a fresh 256-bit secret. Its SHA-256 digest is published when
the round enters the waiting phase; the crash multiplier is derived from the
secret and the round's sequence number with HMAC-SHA256 and the secret itself
is revealed at crash time, so anyone can check after the fact that the house
committed to the outcome before bets were taken.

Verification recipe for players:

    sha256(bytes.fromhex(revealed_secret)).hexdigest() == commitment_hash
    compute_crash_multiplier(bytes.fromhex(revealed_secret), sequence_number)
        == crash_multiplier  (within 0.01)
"""

import hashlib
import hmac
import logging
import secrets
import struct
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .exceptions import FairnessGenerationFailure, VerificationMismatch

logger = logging.getLogger(__name__)

SECRET_BYTES = 32  # 256 bits of entropy

# Denominator and byte order are part of the public verification contract
UINT32_MAX = 0xFFFFFFFF
MULTIPLIER_MIN = 1.0
MULTIPLIER_SPAN = 9.0

VERIFICATION_TOLERANCE = 0.01

SecretLike = Union[bytes, str]


def _as_bytes(secret: SecretLike) -> bytes:
    """Accept raw bytes or the hex form used on the wire."""
    if isinstance(secret, (bytes, bytearray)):
        return bytes(secret)
    return bytes.fromhex(secret)


def hash_secret(secret: SecretLike) -> str:
    return hashlib.sha256(_as_bytes(secret)).hexdigest()


class FairnessCommitment:
    """Generates per-round secrets and their commitment hashes."""

    def __init__(self, token_source=secrets.token_bytes):
        # token_source(n) -> n random bytes; must be a CSPRNG
        self._token_source = token_source

    def new_round_secret(self) -> Tuple[bytes, str]:
        """Return (secret, commitment_hash) for a new round.

        Raises FairnessGenerationFailure if the secure random source fails.
        Never falls back to a weaker generator.
        """
        try:
            secret = self._token_source(SECRET_BYTES)
        except Exception as e:
            logger.critical(f"🚨 Secure random source unavailable: {e}")
            raise FairnessGenerationFailure(f"Secure random source unavailable: {e}") from e

        if not isinstance(secret, (bytes, bytearray)) or len(secret) < SECRET_BYTES:
            raise FairnessGenerationFailure("Secure random source returned too few bytes")

        secret = bytes(secret)
        return secret, hash_secret(secret)

    @staticmethod
    def verify(secret: SecretLike, commitment_hash: str) -> bool:
        """Recompute the commitment and compare in constant time."""
        try:
            expected = hash_secret(secret)
            return hmac.compare_digest(expected, commitment_hash.lower())
        except (ValueError, TypeError, AttributeError):
            return False


def compute_crash_multiplier(secret: SecretLike, sequence_number: int) -> float:
    """
    Map (secret, sequence_number) to a crash multiplier in [1, 10).

    digest = HMAC-SHA256(key=secret, msg=str(sequence_number))
    v = first 4 digest bytes as big-endian uint32
    result = 1 + v / (2**32 - 1) * 9
    """
    digest = hmac.new(
        key=_as_bytes(secret),
        msg=str(int(sequence_number)).encode("ascii"),
        digestmod=hashlib.sha256,
    ).digest()
    (value,) = struct.unpack(">I", digest[:4])
    normalized = value / UINT32_MAX
    return MULTIPLIER_MIN + normalized * MULTIPLIER_SPAN


@dataclass(frozen=True)
class VerificationResult:
    sequence_number: int
    hash_valid: bool
    crash_multiplier: float
    multiplier_valid: Optional[bool] = None

    @property
    def valid(self) -> bool:
        return self.hash_valid and self.multiplier_valid is not False

    def to_dict(self):
        return {
            "sequence_number": self.sequence_number,
            "hash_valid": self.hash_valid,
            "crash_multiplier": self.crash_multiplier,
            "multiplier_valid": self.multiplier_valid,
            "valid": self.valid,
        }


def verify_round(
    secret: SecretLike,
    sequence_number: int,
    commitment_hash: str,
    crash_multiplier: Optional[float] = None,
    tolerance: float = VERIFICATION_TOLERANCE,
    strict: bool = False,
) -> VerificationResult:
    """Check a revealed round the way an outside verifier would.

    With strict=True a failed check raises VerificationMismatch instead of
    being reported in the result.
    """
    hash_valid = FairnessCommitment.verify(secret, commitment_hash)
    recomputed = compute_crash_multiplier(secret, sequence_number)

    multiplier_valid = None
    if crash_multiplier is not None:
        multiplier_valid = abs(recomputed - float(crash_multiplier)) <= tolerance

    result = VerificationResult(
        sequence_number=sequence_number,
        hash_valid=hash_valid,
        crash_multiplier=recomputed,
        multiplier_valid=multiplier_valid,
    )
    if strict and not result.valid:
        raise VerificationMismatch(
            f"Round {sequence_number} failed verification: "
            f"hash_valid={hash_valid}, multiplier_valid={multiplier_valid}"
        )
    return result
