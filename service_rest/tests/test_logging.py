"""
Tests for the structured logging processors.
"""

import pytest

from shared.logging import (
    add_correlation_context,
    clear_context,
    service_context,
    set_client_context,
    set_request_id,
)


@pytest.fixture(autouse=True)
def reset_context():
    clear_context()
    yield
    clear_context()


def test_correlation_fields_follow_context():
    set_request_id("req-1")
    set_client_context("10.0.0.7")

    event = add_correlation_context(None, "info", {"event": "HTTP request"})

    assert event["request_id"] == "req-1"
    assert event["client_id"] == "10.0.0.7"


def test_clear_context_drops_fields():
    set_request_id("req-1")
    set_client_context("10.0.0.7")
    clear_context()

    event = add_correlation_context(None, "info", {"event": "idle"})

    assert "request_id" not in event
    assert "client_id" not in event


def test_request_id_generated_when_missing():
    first = set_request_id(None)
    second = set_request_id("")

    assert first and second and first != second


def test_service_context_stamps_name():
    processor = service_context("rest")

    assert processor(None, "info", {"event": "x"})["service"] == "rest"
    assert processor(None, "info", {"event": "x", "service": "other"})["service"] == "other"
