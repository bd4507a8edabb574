import hashlib
import hmac

import pytest

from game.exceptions import FairnessGenerationFailure, VerificationMismatch
from game.fairness import (
    FairnessCommitment,
    compute_crash_multiplier,
    hash_secret,
    verify_round,
)

ZERO_SECRET = bytes(32)


def reference_multiplier(secret: bytes, sequence_number: int) -> float:
    digest = hmac.new(secret, str(sequence_number).encode(), hashlib.sha256).digest()
    value = int.from_bytes(digest[:4], "big")
    return 1 + value / (2 ** 32 - 1) * 9


def test_new_round_secret_commits_to_sha256():
    secret, commitment_hash = FairnessCommitment().new_round_secret()
    assert len(secret) == 32
    assert commitment_hash == hashlib.sha256(secret).hexdigest()


def test_new_round_secret_is_fresh_each_call():
    fairness = FairnessCommitment()
    secrets_seen = {fairness.new_round_secret()[0] for _ in range(20)}
    assert len(secrets_seen) == 20


def test_entropy_failure_is_fatal():
    def broken_source(n):
        raise OSError("getrandom failed")

    with pytest.raises(FairnessGenerationFailure):
        FairnessCommitment(token_source=broken_source).new_round_secret()


def test_short_entropy_is_rejected():
    with pytest.raises(FairnessGenerationFailure):
        FairnessCommitment(token_source=lambda n: b"\x01" * 8).new_round_secret()


def test_verify_accepts_bytes_and_hex():
    commitment_hash = hash_secret(ZERO_SECRET)
    assert FairnessCommitment.verify(ZERO_SECRET, commitment_hash)
    assert FairnessCommitment.verify(ZERO_SECRET.hex(), commitment_hash)
    assert FairnessCommitment.verify(ZERO_SECRET, commitment_hash.upper())


def test_verify_rejects_other_secret_and_garbage():
    commitment_hash = hash_secret(ZERO_SECRET)
    assert not FairnessCommitment.verify(b"\x01" * 32, commitment_hash)
    assert not FairnessCommitment.verify("not-hex", commitment_hash)


def test_zero_secret_round_one_is_reproducible():
    first = compute_crash_multiplier(ZERO_SECRET, 1)
    second = compute_crash_multiplier(bytes(32), 1)
    assert first == second
    assert first == reference_multiplier(ZERO_SECRET, 1)


def test_hex_and_bytes_secret_agree():
    assert compute_crash_multiplier(ZERO_SECRET.hex(), 7) == compute_crash_multiplier(ZERO_SECRET, 7)


def test_sequence_number_changes_outcome():
    outcomes = {compute_crash_multiplier(ZERO_SECRET, n) for n in range(1, 50)}
    assert len(outcomes) > 1


def test_crash_multiplier_range():
    fairness = FairnessCommitment()
    for sequence_number in range(1, 500):
        secret, _ = fairness.new_round_secret()
        value = compute_crash_multiplier(secret, sequence_number)
        assert 1.0 <= value < 10.0


def test_verify_round_accepts_honest_round():
    secret, commitment_hash = FairnessCommitment().new_round_secret()
    crash = compute_crash_multiplier(secret, 42)

    result = verify_round(secret.hex(), 42, commitment_hash, crash)

    assert result.valid
    assert result.hash_valid
    assert result.multiplier_valid
    assert result.crash_multiplier == crash


def test_verify_round_tolerance():
    commitment_hash = hash_secret(ZERO_SECRET)
    crash = compute_crash_multiplier(ZERO_SECRET, 1)

    assert verify_round(ZERO_SECRET, 1, commitment_hash, crash + 0.005).multiplier_valid
    assert not verify_round(ZERO_SECRET, 1, commitment_hash, crash + 0.5).multiplier_valid


def test_verify_round_flags_wrong_commitment():
    result = verify_round(ZERO_SECRET, 1, hash_secret(b"\x02" * 32))
    assert not result.hash_valid
    assert result.multiplier_valid is None
    assert not result.valid


def test_verify_round_strict_raises():
    commitment_hash = hash_secret(ZERO_SECRET)
    with pytest.raises(VerificationMismatch):
        verify_round(ZERO_SECRET, 1, commitment_hash, 99.0, strict=True)


@pytest.mark.parametrize("commitment_hash", ["é" * 64, None])
def test_verify_rejects_malformed_commitment(commitment_hash):
    assert FairnessCommitment.verify(ZERO_SECRET, commitment_hash) is False


def test_unexpected_entropy_error_is_fatal():
    def broken_source(n):
        raise RuntimeError("rng backend crashed")

    with pytest.raises(FairnessGenerationFailure):
        FairnessCommitment(token_source=broken_source).new_round_secret()
