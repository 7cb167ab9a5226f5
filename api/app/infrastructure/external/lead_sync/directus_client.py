"""
Cliente mínimo de la REST API de Directus (sin SDKs externos).

Requisitos cubiertos:
- requests
- paginación seek por (created_at, event_key), nunca por offset/página
- exclusión de la campaña bloqueada en el propio filtro
- sin reintentos: cualquier falla se levanta como UpstreamFetchError
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

import requests

from app.shared.exceptions.sync import UpstreamFetchError

from .sync_config import SOURCE_FIELDS
from .types import CursorState, RawEvent, isoformat_z, make_event_key, parse_iso_datetime


@dataclass(frozen=True)
class DirectusCredentials:
    base_url: str
    token: str


def build_seek_filter(cursor: Optional[CursorState], excluded_campaign: Optional[str]) -> dict[str, Any]:
    """
    Construye el filtro Directus para la página siguiente:

        created_at > ts  OR  (created_at == ts AND (event_key > key OR event_key IS NULL))

    Un cursor solo por timestamp saltaría (o repetiría) eventos con el mismo
    created_at partidos entre dos páginas.

    Postgres ordena los event_key NULL al final del timestamp: se incluyen en
    el filtro para que lleguen a `map_directus_item`, que los rechaza, en vez de
    quedar fuera del seek sin aviso.

    La exclusión de campaña acepta campaign_id NULL: en SQL `_neq` solo
    descartaría también los nulos.
    """
    clauses: list[dict[str, Any]] = []

    if cursor is not None:
        ts = isoformat_z(cursor.last_timestamp)
        clauses.append(
            {
                "_or": [
                    {"created_at": {"_gt": ts}},
                    {
                        "_and": [
                            {"created_at": {"_eq": ts}},
                            {
                                "_or": [
                                    {"event_key": {"_gt": cursor.last_tiebreak}},
                                    {"event_key": {"_null": True}},
                                ]
                            },
                        ]
                    },
                ]
            }
        )

    if excluded_campaign:
        clauses.append(
            {
                "_or": [
                    {"campaign_id": {"_neq": excluded_campaign}},
                    {"campaign_id": {"_null": True}},
                ]
            }
        )

    return {"_and": clauses} if clauses else {}


def _as_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def map_directus_item(item: dict[str, Any]) -> RawEvent:
    """
    Mapea un item de Databowl_lead_events a RawEvent.

    Falla temprano si falta created_at o event_key: sin ellos el evento no tiene
    posición seek que Directus pueda filtrar.
    """
    if not isinstance(item, dict):
        raise UpstreamFetchError(f"Item de Directus inesperado: {str(item)[:200]}")

    raw_created_at = item.get("created_at")
    try:
        created_at = parse_iso_datetime(raw_created_at)
    except (TypeError, ValueError) as e:
        raise UpstreamFetchError(
            f"Item de Directus con created_at inválido ({raw_created_at!r}): lead_id={item.get('lead_id')!r}"
        ) from e

    event_key = _as_text(item.get("event_key"))
    if event_key is None:
        suggested = make_event_key(
            lead_id=item.get("lead_id"),
            status=item.get("status"),
            created_at=raw_created_at,
            revenue=item.get("revenue"),
            cost=item.get("cost"),
        )
        raise UpstreamFetchError(
            f"Item de Directus sin event_key (lead_id={item.get('lead_id')!r}, created_at={raw_created_at!r}). "
            f"Completar event_key upstream, p.ej. con el content key {suggested}"
        )

    return RawEvent(
        event_key=event_key,
        lead_id=_as_text(item.get("lead_id")),
        status=_as_text(item.get("status")),
        revenue=item.get("revenue"),
        cost=item.get("cost"),
        currency=_as_text(item.get("currency")),
        offer_id=_as_text(item.get("offer_id")),
        campaign_id=_as_text(item.get("campaign_id")),
        affiliate_id=_as_text(item.get("affiliate_id")),
        sub_id=_as_text(item.get("sub_id")),
        t_id=_as_text(item.get("t_id")),
        created_at=created_at,
        raw=item.get("raw"),
    )


class DirectusClient:
    """
    Cliente HTTP de Directus. Expone `fetch_page`, que devuelve una página ordenada de RawEvent.

    Importante:
    - No normaliza importes: eso se decide al proyectar a staging.
    - Una página más corta que `limit` indica que upstream está al día.
    """

    def __init__(
        self,
        credentials: DirectusCredentials,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
    ) -> None:
        self._creds = credentials
        self._base_url = credentials.base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def fetch_page(
        self,
        *,
        collection: str,
        cursor: Optional[CursorState],
        limit: int,
        excluded_campaign: Optional[str] = None,
        fields: tuple[str, ...] = SOURCE_FIELDS,
    ) -> list[RawEvent]:
        """Trae hasta `limit` eventos estrictamente posteriores al cursor, ascendentes."""
        url = f"{self._base_url}/items/{collection}"
        query: list[tuple[str, Any]] = [
            ("fields", ",".join(fields)),
            ("filter", json.dumps(build_seek_filter(cursor, excluded_campaign), separators=(",", ":"))),
            ("sort", "created_at,event_key"),
            ("limit", str(limit)),
        ]

        payload = self._request_json("GET", url, query=query)
        data = payload.get("data")
        if not isinstance(data, list):
            raise UpstreamFetchError(f"Respuesta de Directus sin lista 'data': {str(payload)[:300]}")

        return [map_directus_item(item) for item in data]

    def _request_json(self, method: str, url: str, *, query: list[tuple[str, Any]]) -> dict[str, Any]:
        """
        Request HTTP sin reintentos.

        El caller externo re-invoca la corrida completa; el cursor no se movió.
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Accept": "application/json",
        }

        try:
            resp = self._session.request(
                method=method,
                url=url,
                params=query,
                headers=headers,
                timeout=self._timeout_s,
            )
        except requests.RequestException as e:
            raise UpstreamFetchError(f"Directus no accesible: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise UpstreamFetchError(
                f"Directus {resp.status_code}: {resp.text[:500]}",
                status=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamFetchError(f"Directus devolvió JSON inválido: {resp.text[:300]}") from e

        if not isinstance(body, dict):
            raise UpstreamFetchError(f"Directus devolvió un payload inesperado: {str(body)[:300]}")
        return body
