"""
Tests unitarios para los tipos puros del sync (cursor, token, content key).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.infrastructure.external.lead_sync.types import (
    CursorState,
    SyncRunResult,
    SyncRunStatus,
    isoformat_z,
    make_event_key,
    parse_iso_datetime,
)

T0 = datetime(2025, 9, 15, 8, 0, 0, 123456, tzinfo=timezone.utc)


def test_cursor_ordering_matches_seek_order() -> None:
    a = CursorState(T0, "1")
    b = CursorState(T0, "2")
    c = CursorState(T0 + timedelta(seconds=1), "1")

    assert a < b < c
    assert sorted([c, a, b]) == [a, b, c]


def test_token_round_trip_keeps_microseconds() -> None:
    cursor = CursorState(T0, "abc123")

    token = cursor.to_token()

    assert "=" not in token
    assert CursorState.from_token(token) == cursor


@pytest.mark.parametrize("token", ["", "not-base64!", "eyJmb28iOiAxfQ"])
def test_invalid_token_raises_value_error(token: str) -> None:
    with pytest.raises(ValueError):
        CursorState.from_token(token)


def test_parse_iso_datetime_accepts_z_suffix_and_naive() -> None:
    assert parse_iso_datetime("2025-09-15T08:00:00Z") == datetime(2025, 9, 15, 8, tzinfo=timezone.utc)
    assert parse_iso_datetime(datetime(2025, 9, 15, 8)) == datetime(2025, 9, 15, 8, tzinfo=timezone.utc)
    assert isoformat_z(T0) == "2025-09-15T08:00:00.123456Z"


def test_make_event_key_is_deterministic() -> None:
    fields = dict(lead_id="L1", status="1", created_at="2025-09-15T08:00:00Z", revenue="1,50", cost=None)

    key = make_event_key(**fields)

    assert key == make_event_key(**fields)
    assert len(key) == 64
    assert key != make_event_key(**{**fields, "cost": "0,15"})


def test_next_cursor_only_when_timeboxed() -> None:
    done = SyncRunResult(status=SyncRunStatus.DONE, cursor=CursorState(T0, "k"))
    partial = SyncRunResult(status=SyncRunStatus.TIMEBOXED_STOP, cursor=CursorState(T0, "k"))

    assert done.has_more is False
    assert done.next_cursor is None
    assert partial.has_more is True
    assert CursorState.from_token(partial.next_cursor) == CursorState(T0, "k")
    assert partial.as_details()["last_event_key"] == "k"
