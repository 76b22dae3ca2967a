"""Tests for log_context module."""

import logging

from daycare_sync.log_context import get_logger


def test_bound_context_prefixes_message(caplog):
    log = get_logger("test_log_context", run_id="r1").bind(message_id="m1")
    with caplog.at_level(logging.INFO, logger="test_log_context"):
        log.info("Imported %d reports", 2)
    assert caplog.records[0].getMessage() == "[run_id=r1 message_id=m1] Imported 2 reports"


def test_bound_context_attached_to_record(caplog):
    log = get_logger("test_log_context").bind(sender="reports@tadpoles.com")
    with caplog.at_level(logging.WARNING, logger="test_log_context"):
        log.warning("Skipping", extra={"outcome": "SKIPPED_EXISTS"})
    record = caplog.records[0]
    assert record.sender == "reports@tadpoles.com"
    assert record.outcome == "SKIPPED_EXISTS"


def test_bind_does_not_mutate_parent():
    parent = get_logger("test_log_context", user_id="u1")
    child = parent.bind(message_id="m1")
    assert parent.extra == {"user_id": "u1"}
    assert child.extra == {"user_id": "u1", "message_id": "m1"}


def test_unbound_logger_leaves_message_alone(caplog):
    with caplog.at_level(logging.INFO, logger="test_log_context"):
        get_logger("test_log_context").info("plain")
    assert caplog.records[0].getMessage() == "plain"
