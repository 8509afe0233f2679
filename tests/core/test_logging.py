"""Tests for log processors and request context."""

from postcomment.core.context import (
    begin_request,
    bind_user,
    clear_context,
    current_context,
)
from postcomment.core.logging import add_context_processor, filter_sensitive_data
from postcomment.core.middleware import _extract_traceparent


def test_context_added_to_events():
    begin_request("req-1")
    bind_user(7)
    try:
        event = add_context_processor(None, "info", {"event": "post_created"})
    finally:
        clear_context()

    assert event == {"event": "post_created", "request_id": "req-1", "user_id": 7}
    assert current_context().as_log_fields() == {}


def test_sensitive_values_masked():
    event = filter_sensitive_data(
        None,
        "info",
        {"event": "x", "api_key": "abcdefgh", "nested": {"token": "abc"}, "n": 1},
    )
    assert event["api_key"] == "ab****gh"
    assert event["nested"] == {"token": "***"}
    assert event["n"] == 1


def test_traceparent_trace_id():
    header = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"
    assert _extract_traceparent(header) == "4bf92f3577b34da6a3ce929d0e0e4736"
    assert _extract_traceparent(None) is None


def test_request_id_echoed(client):
    response = client.get("/health/live", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
