import logging

from logging_config import (
    FairnessAuditLogger,
    SecureFormatter,
    StructuredLogFilter,
    mask_sensitive_data,
)


def test_formatter_masks_secrets():
    formatter = SecureFormatter()
    text = formatter.mask_sensitive_data("round 3 secret=deadbeef token: abc123")
    assert "deadbeef" not in text
    assert "abc123" not in text
    assert "***MASKED***" in text


def test_commitment_hash_is_not_masked():
    text = mask_sensitive_data("commitment=ab12cd")
    assert text == "commitment=ab12cd"


def test_mask_nested_dict():
    masked = mask_sensitive_data({"round": 1, "meta": {"secret": "00ff", "hash": "aa"}})
    assert masked == {"round": 1, "meta": {"secret": "***MASKED***", "hash": "aa"}}


def test_filter_adds_service_and_masks_args():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "state %(seed)s", ({"seed": "1"},), None)
    assert StructuredLogFilter().filter(record)
    assert record.service == "crash-round-server"
    assert record.timestamp.endswith("Z")
    assert record.args == {"seed": "***MASKED***"}


def test_audit_trail(caplog):
    audit = FairnessAuditLogger()
    with caplog.at_level(logging.INFO, logger="fairness"):
        audit.commitment_published(4, "ab" * 32)
        audit.secret_revealed(4, 2.345678, True)
        audit.request_rejected("conn-1", "placeBet", "DuplicateBet")

    messages = [r.getMessage() for r in caplog.records]
    assert "round=4" in messages[0] and "ab" * 32 in messages[0]
    assert "crash=2.3457" in messages[1]
    assert "reason=DuplicateBet" in messages[2]
    assert [r.audit_event for r in caplog.records] == ["commitment", "reveal", "rejection"]


def test_failed_verification_is_critical(caplog):
    with caplog.at_level(logging.INFO, logger="fairness"):
        FairnessAuditLogger().secret_revealed(9, 1.5, False)
    assert caplog.records[0].levelno == logging.CRITICAL
