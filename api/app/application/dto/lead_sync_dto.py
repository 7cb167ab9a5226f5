"""
DTOs para la sincronización incremental de lead events (Directus -> Postgres).

Contrato de la invocación:
- request: posición de arranque opcional (since / cursor / reset) y límites de la corrida
- response: contadores, posición final, `has_more` y token para continuar
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LeadSyncRequestDTO(BaseModel):
    """
    Parámetros de una corrida.

    Precedencia de la posición inicial: `cursor` > `since` > `reset` > cursor guardado.
    """
    since: Optional[str] = Field(
        None,
        description="Arranque explícito: YYYY-MM-DD (medianoche en la zona de referencia) o ISO8601."
    )
    cursor: Optional[str] = Field(None, description="Token de reanudación (next_cursor de una corrida anterior).")
    reset: bool = Field(False, description="Vacía el cursor guardado y arranca desde el inicio del log.")
    batch: Optional[int] = Field(None, ge=1, le=10000, description="Eventos por página.")
    pages: Optional[int] = Field(None, ge=0, le=1000, description="Máximo de páginas en esta corrida (0 = sin límite).")
    time_budget_s: Optional[float] = Field(None, ge=0, le=900, description="Presupuesto de tiempo (0 = sin timebox).")


class LeadSyncResponseDTO(BaseModel):
    """Resultado de una corrida de sync."""
    ok: bool = True
    status: str = Field(..., description="done | timeboxed_stop")
    synced: int = Field(..., description="Eventos escritos en staging en esta corrida")
    dedup_rows: int = Field(0, description="Buckets únicos nuevos insertados")
    iterations: int = Field(0, description="Batches completados")
    money_warnings: int = Field(0, description="Importes no interpretables guardados como NULL")
    since: Optional[str] = Field(None, description="created_at de la posición inicial")
    last_created_at: Optional[str] = Field(None, description="created_at del cursor final")
    last_event_key: Optional[str] = Field(None, description="event_key del cursor final")
    has_more: bool = Field(False, description="True si la corrida se cortó por timebox/páginas")
    next_cursor: Optional[str] = Field(None, description="Token para continuar (solo si has_more)")
    views_refreshed: bool = False
