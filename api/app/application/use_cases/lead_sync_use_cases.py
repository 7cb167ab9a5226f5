"""
Casos de uso para la sincronización Directus -> Postgres de lead events.

La corrida es bloqueante (requests + psycopg), así que se ejecuta en un thread
para no bloquear el event loop. No hay estado en memoria entre invocaciones:
la posición vive en Postgres o en el token que devuelve la respuesta.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, time
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from loguru import logger

from app.application.dto.lead_sync_dto import LeadSyncRequestDTO, LeadSyncResponseDTO
from app.infrastructure.external.lead_sync.sync_service import LeadEventSync
from app.infrastructure.external.lead_sync.types import SyncRunResult, ensure_utc, isoformat_z
from app.shared.exceptions.sync import InvalidSyncParameters


def parse_since(value: Optional[str], reference_tz: str) -> Optional[datetime]:
    """
    Interpreta el parámetro `since`.

    - "YYYY-MM-DD": medianoche de ese día en la zona de referencia
    - ISO8601: tal cual (sin zona se asume UTC)
    """
    if not value:
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            day = datetime.strptime(text, "%Y-%m-%d").date()
            return ensure_utc(datetime.combine(day, time.min, tzinfo=ZoneInfo(reference_tz)))
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError as e:
        raise InvalidSyncParameters(f"'since' inválido: {value!r} (usa YYYY-MM-DD o ISO8601)") from e


def to_response(result: SyncRunResult) -> LeadSyncResponseDTO:
    start = result.start_cursor
    end = result.cursor
    return LeadSyncResponseDTO(
        ok=True,
        status=result.status.value,
        synced=result.synced,
        dedup_rows=result.dedup_rows,
        iterations=result.iterations,
        money_warnings=result.money_warnings,
        since=isoformat_z(start.last_timestamp) if start else None,
        last_created_at=isoformat_z(end.last_timestamp) if end else None,
        last_event_key=end.last_tiebreak if end else None,
        has_more=result.has_more,
        next_cursor=result.next_cursor,
        views_refreshed=result.views_refreshed,
    )


class LeadSyncUseCases:
    """Dispara una corrida acotada del sync y la traduce al contrato HTTP."""

    def __init__(self, service_factory: Callable[[], LeadEventSync]):
        self._service_factory = service_factory

    async def run_sync(self, dto: LeadSyncRequestDTO) -> LeadSyncResponseDTO:
        # La factory valida conexiones: sin DIRECTUS/DATABASE falla antes de cualquier I/O.
        service = self._service_factory()
        since = parse_since(dto.since, service.config.reference_tz)

        logger.info(
            f"Sync de lead events solicitado (since={dto.since}, cursor={'si' if dto.cursor else 'no'}, "
            f"reset={dto.reset}, batch={dto.batch}, pages={dto.pages})"
        )
        result = await asyncio.to_thread(
            service.run,
            since=since,
            resume_token=dto.cursor,
            reset=dto.reset,
            batch_size=dto.batch,
            max_pages=dto.pages,
            time_budget_s=dto.time_budget_s,
        )
        return to_response(result)
