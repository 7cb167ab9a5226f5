"""
Proyecciones puras de RawEvent hacia las filas de Postgres.

- staging: una fila por event_key, importes normalizados
- dedupe: una fila por (día local, affiliate, offer, campaign, t_id)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from .money import parse_money
from .types import RawEvent, ensure_utc


def _money_field(value: Any) -> tuple[Optional[Any], bool]:
    """Retorna (importe, hubo_warning). Un valor no vacío que no parsea cuenta como warning."""
    parsed = parse_money(value)
    failed = parsed is None and value is not None and str(value).strip() != ""
    return parsed, failed


def to_staging_row(event: RawEvent, *, synced_at: datetime) -> tuple[dict[str, Any], int]:
    """
    Mapea un RawEvent a la fila de staging.

    Retorna la fila y cuántos importes no se pudieron interpretar (quedan NULL).
    """
    revenue, revenue_failed = _money_field(event.revenue)
    cost, cost_failed = _money_field(event.cost)

    row = {
        "event_key": event.event_key,
        "lead_id": event.lead_id,
        "status": event.status,
        "revenue": revenue,
        "cost": cost,
        "currency": event.currency,
        "offer_id": event.offer_id,
        "campaign_id": event.campaign_id,
        "affiliate_id": event.affiliate_id,
        "sub_id": event.sub_id,
        "t_id": event.t_id,
        "created_at": ensure_utc(event.created_at),
        "raw": event.raw,
        "synced_at": ensure_utc(synced_at),
    }
    return row, int(revenue_failed) + int(cost_failed)


def local_day(ts: datetime, tz: ZoneInfo) -> date:
    """Día calendario del timestamp en la zona de referencia (no la del servidor)."""
    return ensure_utc(ts).astimezone(tz).date()


def to_dedup_row(staging_row: dict[str, Any], *, tz: ZoneInfo) -> Optional[dict[str, Any]]:
    """
    Fila de dedupe a partir de la fila de staging, o None si no tiene t_id
    (solo se excluye de este camino; en staging sí queda).

    Las columnas de la PK son NOT NULL: None -> "".
    """
    if not staging_row.get("t_id"):
        return None
    return {
        "day": local_day(staging_row["created_at"], tz),
        "affiliate_id": staging_row.get("affiliate_id") or "",
        "offer_id": staging_row.get("offer_id") or "",
        "campaign_id": staging_row.get("campaign_id") or "",
        "t_id": staging_row["t_id"],
        "cost": staging_row.get("cost"),
    }


def collapse_first_wins(rows: Iterable[dict[str, Any]], key_columns: tuple[str, ...]) -> list[dict[str, Any]]:
    """Quita duplicados de bucket dentro del mismo batch conservando el primero."""
    seen: set[tuple[Any, ...]] = set()
    out: list[dict[str, Any]] = []
    for row in rows:
        key = tuple(row[c] for c in key_columns)
        if key in seen:
            continue
        seen.add(key)
        out.append(row)
    return out
