"""
Tests unitarios para las proyecciones a staging y dedupe.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from app.infrastructure.external.lead_sync.directus_client import map_directus_item
from app.infrastructure.external.lead_sync.projection import (
    collapse_first_wins,
    local_day,
    to_dedup_row,
    to_staging_row,
)
from app.infrastructure.external.lead_sync.sync_config import DEDUP_KEY_COLUMNS
from lead_sync_fakes import T0, make_item

AMS = ZoneInfo("Europe/Amsterdam")


def test_local_day_uses_reference_timezone() -> None:
    # 22:30 UTC en verano ya es el día siguiente en Amsterdam (UTC+2)
    assert local_day(datetime(2025, 9, 15, 22, 30, tzinfo=timezone.utc), AMS) == date(2025, 9, 16)
    assert local_day(datetime(2025, 9, 15, 21, 59, tzinfo=timezone.utc), AMS) == date(2025, 9, 15)
    # en invierno el offset es UTC+1
    assert local_day(datetime(2025, 1, 15, 23, 0, tzinfo=timezone.utc), AMS) == date(2025, 1, 16)
    assert local_day(datetime(2025, 1, 15, 22, 59, tzinfo=timezone.utc), AMS) == date(2025, 1, 15)


def test_staging_row_normalizes_money_and_counts_failures() -> None:
    event = map_directus_item(make_item(1, cost="gratis"))

    row, warnings = to_staging_row(event, synced_at=T0)

    assert row["event_key"] == "k000001"
    assert row["revenue"] == Decimal("1.50")
    assert row["cost"] is None
    assert warnings == 1
    assert row["raw"] == {"seq": 1}


def test_dedup_row_substitutes_null_dimensions() -> None:
    event = map_directus_item(make_item(1, affiliate_id=None, campaign_id=None))
    staging, _ = to_staging_row(event, synced_at=T0)

    row = to_dedup_row(staging, tz=AMS)

    assert row == {
        "day": date(2025, 9, 15),
        "affiliate_id": "",
        "offer_id": "7",
        "campaign_id": "",
        "t_id": "t-1",
        "cost": Decimal("0.15"),
    }


def test_dedup_row_skipped_without_t_id() -> None:
    staging, _ = to_staging_row(map_directus_item(make_item(1, t_id="")), synced_at=T0)

    assert to_dedup_row(staging, tz=AMS) is None


def test_collapse_keeps_first_occurrence() -> None:
    rows = [
        {"day": date(2025, 9, 15), "affiliate_id": "42", "offer_id": "7", "campaign_id": "100", "t_id": "t", "cost": c}
        for c in (Decimal("1.00"), Decimal("2.00"))
    ]

    collapsed = collapse_first_wins(rows, DEDUP_KEY_COLUMNS)

    assert len(collapsed) == 1
    assert collapsed[0]["cost"] == Decimal("1.00")
