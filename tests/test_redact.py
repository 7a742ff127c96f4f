from __future__ import annotations

from pymedtrip._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "apikey": "anon-key",
        "Authorization": "Bearer eyJ...",
        "user": {"id": "user-1", "email": "someone@example.com"},
        "session": {"access_token": "AT", "refresh_token": "RT"},
        "state_data": {"passport": True},
    }

    redacted = redact_for_log(payload)
    assert redacted["apikey"] == "<redacted>"
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["user"]["id"] == "user-1"
    assert redacted["user"]["email"] == "<redacted>"
    assert redacted["session"]["access_token"] == "<redacted>"
    assert redacted["session"]["refresh_token"] == "<redacted>"
    assert redacted["state_data"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_walks_lists_and_bytes() -> None:
    redacted = redact_for_log([{"password": "pw"}, b"\x00\x01"])
    assert redacted == [{"password": "<redacted>"}, "<bytes:2b>"]


def test_redact_for_log_hides_planner_state_in_upsert_rows() -> None:
    row = {
        "user_id": "user-1",
        "booking_id": "booking-1",
        "state_key": "pre-op-checklist",
        "state_data": {"medications": ["warfarin"], "passport": "X1234567"},
    }

    redacted = redact_for_log([row])
    assert redacted == [
        {
            "user_id": "user-1",
            "booking_id": "booking-1",
            "state_key": "pre-op-checklist",
            "state_data": "<redacted>",
        }
    ]
