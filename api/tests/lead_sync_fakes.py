"""
Dobles en memoria del pipeline de sync.

- FakeDirectusSession: reemplaza requests.Session y evalúa el filtro JSON real
  (_and/_or/_gt/_eq/_neq/_null), el sort y el limit como lo haría Directus.
- InMemoryLeadSyncRepository: misma interfaz que PostgresLeadSyncRepository, con
  escrituras pendientes que solo se aplican en commit().
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


from app.infrastructure.external.lead_sync.types import CursorState, parse_iso_datetime
from app.shared.exceptions.sync import DownstreamWriteError


T0 = datetime(2025, 9, 15, 8, 0, 0, tzinfo=timezone.utc)


def make_item(
    seq: int,
    *,
    created_at: Optional[datetime] = None,
    event_key: Optional[str] = None,
    campaign_id: Optional[str] = "100",
    t_id: Optional[str] = None,
    cost: Any = "0,15",
    **extra: Any,
) -> dict[str, Any]:
    """Item tal como lo devuelve Directus (created_at como string ISO)."""
    ts = created_at or (T0 + timedelta(seconds=seq))
    item = {
        "event_key": event_key if event_key is not None else f"k{seq:06d}",
        "lead_id": f"lead-{seq}",
        "status": "1",
        "revenue": "1,50",
        "cost": cost,
        "currency": "EUR",
        "offer_id": "7",
        "campaign_id": campaign_id,
        "affiliate_id": "42",
        "sub_id": None,
        "t_id": t_id if t_id is not None else f"t-{seq}",
        "created_at": ts.isoformat().replace("+00:00", "Z"),
        "raw": {"seq": seq},
    }
    item.update(extra)
    return item


# ---------------------------------------------------------------------------
# Directus falso
# ---------------------------------------------------------------------------

def _field_value(item: dict[str, Any], field: str) -> Any:
    value = item.get(field)
    if field == "created_at" and value is not None:
        return parse_iso_datetime(value)
    return value


def _coerce(field: str, value: Any) -> Any:
    if field == "created_at" and value is not None:
        return parse_iso_datetime(value)
    return value


def matches_filter(item: dict[str, Any], flt: dict[str, Any]) -> bool:
    """Evaluador mínimo del lenguaje de filtros de Directus."""
    for key, cond in flt.items():
        if key == "_and":
            if not all(matches_filter(item, sub) for sub in cond):
                return False
        elif key == "_or":
            if not any(matches_filter(item, sub) for sub in cond):
                return False
        else:
            value = _field_value(item, key)
            for op, operand in cond.items():
                operand = _coerce(key, operand)
                if op == "_null":
                    ok = (value is None) == bool(operand)
                elif value is None:
                    ok = False  # semántica SQL: NULL no compara
                elif op == "_gt":
                    ok = value > operand
                elif op == "_eq":
                    ok = value == operand
                elif op == "_neq":
                    ok = value != operand
                else:
                    raise AssertionError(f"operador no soportado en el fake: {op}")
                if not ok:
                    return False
    return True


class FakeResponse:
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self._body = body
        self.text = json.dumps(body) if not isinstance(body, str) else body

    def json(self) -> Any:
        if isinstance(self._body, str):
            raise ValueError("not json")
        return self._body


class FakeDirectusSession:
    """Sirve `items` aplicando filter/sort/limit. `fail_on_call` fuerza un 503 en esa llamada (1-based)."""

    def __init__(self, items: list[dict[str, Any]]) -> None:
        self.items = list(items)
        self.calls: list[dict[str, Any]] = []
        self.fail_on_call: Optional[int] = None

    def request(self, method, url, params=None, headers=None, timeout=None):
        query = dict(params or [])
        self.calls.append(query)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            return FakeResponse(503, {"errors": [{"message": "Service Unavailable"}]})

        flt = json.loads(query.get("filter") or "{}")
        selected = [it for it in self.items if matches_filter(it, flt)]
        sort_fields = query["sort"].split(",")
        # ASC con NULLS LAST, como Postgres
        selected.sort(key=lambda it: tuple((_field_value(it, f) is None, _field_value(it, f) or "") for f in sort_fields))
        limit = int(query["limit"])
        return FakeResponse(200, {"data": [dict(it) for it in selected[:limit]]})


# ---------------------------------------------------------------------------
# Postgres falso
# ---------------------------------------------------------------------------

class FakeConn:
    def __init__(self) -> None:
        self.pending: list = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False


class InMemoryLeadSyncRepository:
    """
    Semántica equivalente a PostgresLeadSyncRepository:
    - staging: overwrite por event_key
    - dedupe: insert-if-absent
    - cursor: solo avanza
    `fail_on` = "staging" | "dedup" | "cursor" fuerza DownstreamWriteError (una vez o siempre).
    """

    def __init__(self) -> None:
        self.staging: dict[str, dict[str, Any]] = {}
        self.dedup: dict[tuple, dict[str, Any]] = {}
        self.cursor: Optional[CursorState] = None
        self.cursor_history: list[CursorState] = []
        self.run_status: Optional[str] = None
        self.run_error: Optional[str] = None
        self.refreshed: list[str] = []
        self.fail_on: Optional[str] = None
        self.fail_on_call: Optional[int] = None
        self._calls: dict[str, int] = {}
        self.conns: list[FakeConn] = []

    def _maybe_fail(self, target: str) -> None:
        self._calls[target] = self._calls.get(target, 0) + 1
        if self.fail_on == target and (self.fail_on_call is None or self._calls[target] == self.fail_on_call):
            raise DownstreamWriteError(f"fallo simulado en {target}", target=target)

    def connect(self) -> FakeConn:
        conn = FakeConn()
        self.conns.append(conn)
        return conn

    def commit(self, conn: FakeConn) -> None:
        for apply in conn.pending:
            apply()
        conn.pending.clear()
        conn.commits += 1

    def rollback(self, conn: FakeConn) -> None:
        conn.pending.clear()
        conn.rollbacks += 1

    def ensure_tables(self, conn, config) -> None:
        return None

    def mark_run_started(self, conn, config) -> None:
        self.run_status = "running"

    def mark_run_finished(self, conn, config, *, status, error) -> None:
        self.run_status = status
        self.run_error = error

    def read_cursor(self, conn, config) -> Optional[CursorState]:
        return self.cursor

    def reset_cursor(self, conn, config) -> None:
        def apply():
            self.cursor = None
        conn.pending.append(apply)

    def write_cursor(self, conn, config, cursor: CursorState) -> bool:
        self._maybe_fail("cursor")

        def apply():
            if self.cursor is None or cursor > self.cursor:
                self.cursor = cursor
                self.cursor_history.append(cursor)
        conn.pending.append(apply)
        return True

    def upsert_staging(self, conn, config, rows) -> int:
        self._maybe_fail("staging")
        rows = [dict(r) for r in rows]

        def apply():
            for r in rows:
                self.staging[r["event_key"]] = r
        conn.pending.append(apply)
        return len(rows)

    def upsert_dedup(self, conn, config, rows) -> int:
        self._maybe_fail("dedup")
        rows = [dict(r) for r in rows]
        new = [r for r in rows if tuple(r[c] for c in config.dedup_key_columns) not in self.dedup]

        def apply():
            for r in rows:
                self.dedup.setdefault(tuple(r[c] for c in config.dedup_key_columns), r)
        conn.pending.append(apply)
        return len(new)

    def refresh_views(self, conn, function_name: str) -> None:
        self.refreshed.append(function_name)

