"""
Tipos y utilidades puras para el pipeline Directus -> Postgres.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Directus devuelve ISO8601 con zona; aun así, normalizamos para
    comparar/almacenar de forma consistente.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Any) -> datetime:
    """
    Parsea un timestamp ISO8601 (acepta sufijo 'Z') o un datetime.

    Levanta ValueError si no se puede interpretar.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not value:
        raise ValueError("timestamp vacío")
    return ensure_utc(datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")))


def isoformat_z(dt: datetime) -> str:
    """
    Serializa datetime a ISO8601 con 'Z' (UTC).

    Conserva microsegundos: truncar haría que el filtro seek (_eq) no matchee
    el valor guardado upstream.
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def make_event_key(
    *,
    lead_id: Any,
    status: Any,
    created_at: Any,
    revenue: Any,
    cost: Any,
) -> str:
    """
    Content key determinístico de un evento: sha256 de lead_id|status|created_at|revenue|cost.

    Es la misma receta que usa el webhook productor; se sugiere al rechazar un
    item upstream que todavía no tiene event_key.
    """
    parts = ["" if v is None else str(v) for v in (lead_id, status, created_at, revenue, cost)]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RawEvent:
    """
    Registro upstream (Databowl_lead_events).

    revenue/cost se conservan tal cual llegan (texto o número); la normalización
    ocurre al proyectar a staging. `raw` es el payload opaco, se guarda verbatim.
    """

    event_key: str
    lead_id: Optional[str]
    status: Optional[str]
    revenue: Any
    cost: Any
    currency: Optional[str]
    offer_id: Optional[str]
    campaign_id: Optional[str]
    affiliate_id: Optional[str]
    sub_id: Optional[str]
    t_id: Optional[str]
    created_at: datetime
    raw: Any = None


@dataclass(frozen=True, order=True)
class CursorState:
    """
    Posición del sync: todo evento con (created_at, event_key) <= cursor ya fue intentado.

    El orden de la dataclass es exactamente el orden seek.
    """

    last_timestamp: datetime
    last_tiebreak: str = ""

    @classmethod
    def after_event(cls, event: RawEvent) -> "CursorState":
        return cls(last_timestamp=ensure_utc(event.created_at), last_tiebreak=event.event_key)

    def to_token(self) -> str:
        """Token de reanudación opaco (base64url de JSON)."""
        payload = json.dumps(
            {"ts": isoformat_z(self.last_timestamp), "key": self.last_tiebreak},
            separators=(",", ":"),
        )
        return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def from_token(cls, token: str) -> "CursorState":
        """
        Decodifica un token generado por `to_token`.

        Levanta ValueError si el token está corrupto.
        """
        padded = token.strip() + "=" * (-len(token.strip()) % 4)
        try:
            data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
            return cls(last_timestamp=parse_iso_datetime(data["ts"]), last_tiebreak=str(data.get("key") or ""))
        except (binascii.Error, UnicodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Token de reanudación inválido: {token!r}") from e


class SyncRunStatus(str, Enum):
    """Estados de la máquina de estados del run loop."""

    IDLE = "idle"
    FETCHING = "fetching"
    WRITING = "writing"
    CURSOR_ADVANCING = "cursor_advancing"
    DONE = "done"
    TIMEBOXED_STOP = "timeboxed_stop"
    FAILED = "failed"


@dataclass
class SyncRunResult:
    """Contadores de una corrida. En caso de fallo refleja solo lo ya confirmado."""

    status: SyncRunStatus = SyncRunStatus.IDLE
    synced: int = 0
    staged_rows: int = 0
    dedup_rows: int = 0
    iterations: int = 0
    money_warnings: int = 0
    start_cursor: Optional[CursorState] = None
    cursor: Optional[CursorState] = None
    views_refreshed: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return self.status == SyncRunStatus.TIMEBOXED_STOP

    @property
    def next_cursor(self) -> Optional[str]:
        if self.has_more and self.cursor is not None:
            return self.cursor.to_token()
        return None

    def as_details(self) -> dict[str, Any]:
        """Representación serializable (para logs y reportes de error)."""
        return {
            "status": self.status.value,
            "synced": self.synced,
            "staged_rows": self.staged_rows,
            "dedup_rows": self.dedup_rows,
            "iterations": self.iterations,
            "money_warnings": self.money_warnings,
            "last_created_at": isoformat_z(self.cursor.last_timestamp) if self.cursor else None,
            "last_event_key": self.cursor.last_tiebreak if self.cursor else None,
        }
