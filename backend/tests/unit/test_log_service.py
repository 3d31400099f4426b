"""
Unit tests for the structured audit log.
"""

from __future__ import annotations

import json
import logging

from backend.app.services import log_service


def test_entry_shape():
    entry = log_service.build_log_entry("event", "login_success", {"user_id": "u-1"})
    assert set(entry) == {"timestamp", "level", "event", "details"}
    assert entry["timestamp"].endswith("Z")
    assert entry["details"] == {"user_id": "u-1"}


def test_entry_details_default_to_empty():
    assert log_service.build_log_entry("error", "x")["details"] == {}


def test_log_event_emits_json_at_info(caplog):
    with caplog.at_level(logging.INFO, logger="auth.audit"):
        returned = log_service.log_event("register_success", user_id="u-1")

    record = caplog.records[-1]
    assert record.levelno == logging.INFO
    assert json.loads(record.getMessage()) == returned
    assert returned["level"] == "event"


def test_log_error_emits_at_error(caplog):
    with caplog.at_level(logging.ERROR, logger="auth.audit"):
        log_service.log_error("logout_error", message="OperationalError")

    assert caplog.records[-1].levelno == logging.ERROR
    assert json.loads(caplog.records[-1].getMessage())["event"] == "logout_error"


def test_structural_entries_are_debug(caplog):
    with caplog.at_level(logging.INFO, logger="auth.audit"):
        log_service.log_structured("request_received", path="/health")
    assert not [r for r in caplog.records if "request_received" in r.getMessage()]

    with caplog.at_level(logging.DEBUG, logger="auth.audit"):
        log_service.log_structured("request_received", path="/health")
    assert caplog.records[-1].levelno == logging.DEBUG


def test_non_json_details_are_stringified(caplog):
    with caplog.at_level(logging.INFO, logger="auth.audit"):
        log_service.log_event("profile_updated", fields=["a", "b"], when=object())
    details = json.loads(caplog.records[-1].getMessage())["details"]
    assert details["fields"] == ["a", "b"]
    assert details["when"].startswith("<object")
