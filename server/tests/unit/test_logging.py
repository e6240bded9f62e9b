from __future__ import annotations

import logging

from agent_relay.core.context import bind_user_id, reset_request_id, reset_user_id, set_request_id
from agent_relay.core.logging import RelayContextFilter, _build_logging_config


def make_record() -> logging.LogRecord:
    return logging.LogRecord("agent_relay.test", logging.INFO, __file__, 1, "chat.completed", None, None)


def test_filter_stamps_placeholders_outside_a_request() -> None:
    record = make_record()

    assert RelayContextFilter().filter(record) is True
    assert record.request_id == "-"
    assert record.user_id == "-"


def test_filter_stamps_request_and_user_ids() -> None:
    request_token = set_request_id("req-1")
    user_token = bind_user_id("u1")
    try:
        record = make_record()
        RelayContextFilter().filter(record)
    finally:
        reset_user_id(user_token)
        reset_request_id(request_token)

    assert record.request_id == "req-1"
    assert record.user_id == "u1"


def test_logging_config_applies_level_to_relay_logger() -> None:
    config = _build_logging_config("DEBUG")

    assert config["loggers"]["agent_relay"]["level"] == "DEBUG"
    assert config["handlers"]["default"]["filters"] == ["relay_context"]
