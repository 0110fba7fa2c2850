"""Tests for structlog setup and the channel/session context carried by log events."""

import io
import json
import logging

import pytest
import structlog

from logging_config import bind_session, get_logger, log_context, setup_logging
from realtime.eclipse import EclipseRealtimeRouter


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    logging.root.handlers.clear()


@pytest.fixture
def json_stream():
    stream = io.StringIO()
    setup_logging("sentineliq-test", level="DEBUG", json_logs=True, stream=stream)
    return stream


def _events(stream, name=None):
    events = [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
    return [e for e in events if name is None or e["event"] == name]


def test_json_events_carry_service_level_and_logger(json_stream):
    get_logger("tests.logging").info("hello", answer=42)

    event = _events(json_stream, "hello")[-1]
    assert event["service"] == "sentineliq-test"
    assert event["level"] == "info"
    assert event["logger"] == "tests.logging"
    assert event["answer"] == 42
    assert "timestamp" in event


def test_log_context_is_merged_then_restored(json_stream):
    logger = get_logger("tests.logging.context")
    with log_context(channel="alerts"):
        logger.info("inside")
    logger.info("outside")

    assert _events(json_stream, "inside")[-1]["channel"] == "alerts"
    assert "channel" not in _events(json_stream, "outside")[-1]


def test_callback_failure_logs_channel_and_session(json_stream, bridge, scheduler):
    def broken_refresh():
        raise RuntimeError("boom")

    bind_session(user_id="u-1", workspace_id="ws-1")
    bridge.subscribe("cases", broken_refresh)
    scheduler.advance(1.0)

    failure = _events(json_stream, "realtime_callback_failed")[-1]
    assert failure["channel"] == "cases"
    assert failure["user_id"] == "u-1"
    assert failure["workspace_id"] == "ws-1"
    assert failure["level"] == "error"
    assert "RuntimeError: boom" in failure["exception"]


def test_router_authenticate_binds_session_for_handler_failures(json_stream):
    def broken_handler(data):
        raise ValueError("bad payload")

    router = EclipseRealtimeRouter(handlers={"eclipse.alert.created": broken_handler})
    frame = json.loads(router.authenticate("u-9", "ws-9"))
    router.handle_message({"type": "eclipse_update", "eventType": "eclipse.alert.created", "data": {}})

    assert frame == {"type": "auth", "payload": {"userId": "u-9", "workspaceId": "ws-9"}}
    failure = _events(json_stream, "eclipse_handler_failed")[-1]
    assert failure["event_type"] == "eclipse.alert.created"
    assert failure["workspace_id"] == "ws-9"


def test_console_renderer_when_json_is_off():
    stream = io.StringIO()
    setup_logging(json_logs=False, level="INFO", stream=stream)
    logger = get_logger("tests.logging.console")
    logger.debug("too_quiet")
    logger.warning("plain_event", channel="alerts")

    output = stream.getvalue()
    assert "plain_event" in output
    assert "too_quiet" not in output
    assert not output.lstrip().startswith("{")
    assert logging.getLogger("werkzeug").level == logging.WARNING
