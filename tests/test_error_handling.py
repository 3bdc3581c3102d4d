import logging

import pytest

from pipchat.errors.handling import error_category, log_error
from pipchat.errors.internal import (
    ConfigError,
    InvalidPayload,
    InvalidState,
    MalformedMessage,
    MissingCredential,
    NetworkError,
    OAuthError,
    OAuthTimeout,
    PipChatError,
    SecurityError,
    UpstreamProtocolError,
)
from pipchat.logging_config import ErrorAggregator, error_aggregator, log_structured_error


@pytest.mark.parametrize(
    "error, category",
    [
        (NetworkError("x"), "network"),
        (ConnectionResetError(), "network"),
        (SecurityError("x"), "security"),
        (OAuthTimeout("x"), "auth"),
        (MissingCredential("x"), "auth"),
        (MalformedMessage("x"), "protocol"),
        (UpstreamProtocolError("msg_banned", "banned"), "protocol"),
        (InvalidState("x"), "state"),
        (InvalidPayload("x"), "state"),
        (ConfigError("x"), "internal"),
        (ValueError("x"), "unknown"),
    ],
)
def test_error_category(error, category):
    assert error_category(error) == category


@pytest.mark.parametrize(
    "error, reason",
    [
        (PipChatError("x"), "internal_error"),
        (InvalidState("x"), "invalid_state"),
        (InvalidPayload("x"), "invalid_payload"),
        (SecurityError("x"), "security_error"),
        (MissingCredential("x"), "missing_credential"),
        (OAuthError("x"), "oauth_error"),
        (OAuthTimeout("x"), "oauth_timeout"),
        (NetworkError("x"), "connect_failed"),
    ],
)
def test_reason_used_for_error_reports(error, reason):
    assert error.reason == reason


def test_upstream_protocol_error_carries_server_reason():
    error = UpstreamProtocolError("msg_channel_suspended", "This channel does not exist")
    assert error.reason == "msg_channel_suspended"
    assert error.description == "This channel does not exist"


def test_error_data_is_copied():
    data = {"url": "wss://x"}
    error = NetworkError("refused", data=data)
    data["url"] = "changed"
    assert error.data == {"url": "wss://x"}


def test_log_error_records_category(caplog):
    with caplog.at_level(logging.WARNING):
        log_error("Rejected", InvalidState("busy"), context={"phase": "LIVE"}, level=logging.WARNING)

    assert "[STATE] Rejected: busy" in caplog.text
    assert "phase=LIVE" in caplog.text
    assert error_aggregator.get_error_summary()["state"]["total_count"] == 1


def test_structured_error_alerts_on_high_rate(caplog):
    with caplog.at_level(logging.CRITICAL):
        for _ in range(11):
            log_structured_error("network", "refused")
    assert "HIGH ERROR RATE ALERT" in caplog.text


def test_aggregator_caps_entries_per_type():
    aggregator = ErrorAggregator(max_per_type=3)
    for i in range(5):
        aggregator.record_error("network", f"e{i}")

    summary = aggregator.get_error_summary()["network"]

    assert summary["total_count"] == 3
    assert summary["last_occurrence"]["message"] == "e4"


def test_aggregator_reset():
    aggregator = ErrorAggregator()
    aggregator.record_error("auth", "denied")
    aggregator.reset()
    assert aggregator.get_error_summary() == {}
    assert not aggregator.should_alert("auth")
