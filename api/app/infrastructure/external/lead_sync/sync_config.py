"""
Configuración del sync (Directus -> Postgres).

Aquí se concentra:
- colección origen en Directus y campos a pedir
- tablas destino en Postgres (staging, dedupe, cursor)
- límites de la corrida (batch, páginas, presupuesto de tiempo, pausa entre batches)

Este módulo no realiza I/O: solo define configuración.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

SOURCE_FIELDS: tuple[str, ...] = (
    "event_key",
    "lead_id",
    "status",
    "revenue",
    "cost",
    "currency",
    "offer_id",
    "campaign_id",
    "affiliate_id",
    "sub_id",
    "t_id",
    "created_at",
    "raw",
)

# Columnas que forman la PK de la tabla de dedupe (NOT NULL en Postgres).
DEDUP_KEY_COLUMNS: tuple[str, ...] = ("day", "affiliate_id", "offer_id", "campaign_id", "t_id")


@dataclass(frozen=True)
class LeadSyncConfig:
    """
    Config de una corrida Directus -> Postgres.

    NOTA sobre el cursor:
    - Es un singleton en `cursor_table` con id fijo `cursor_id`.
    - El tiebreak es el event_key (content key), el mismo que usa staging como PK.
    """

    source_collection: str = "Databowl_lead_events"
    source_fields: tuple[str, ...] = SOURCE_FIELDS
    excluded_campaign: Optional[str] = "925"
    staging_table: str = "events_staging"
    dedup_table: str = "lead_uniques_day_grp"
    cursor_table: str = "sync_state"
    cursor_id: str = "directus-events"
    reference_tz: str = "Europe/Amsterdam"
    batch_size: int = 1000
    max_pages: int = 0
    time_budget_s: float = 50.0
    inter_batch_delay_s: float = 0.12
    upsert_chunk_size: int = 500
    refresh_views_function: Optional[str] = None
    dedup_key_columns: tuple[str, ...] = field(default=DEDUP_KEY_COLUMNS)


def lead_sync_config_from_settings(settings) -> LeadSyncConfig:
    """Construye la config a partir de `app.core.config.Settings`."""
    return LeadSyncConfig(
        excluded_campaign=settings.SYNC_EXCLUDED_CAMPAIGN or None,
        reference_tz=settings.SYNC_REFERENCE_TZ,
        batch_size=settings.SYNC_BATCH_SIZE,
        max_pages=settings.SYNC_MAX_PAGES,
        time_budget_s=settings.SYNC_TIME_BUDGET_S,
        inter_batch_delay_s=settings.SYNC_INTER_BATCH_DELAY_S,
        upsert_chunk_size=settings.SYNC_UPSERT_CHUNK_SIZE,
        refresh_views_function=settings.SYNC_REFRESH_VIEWS_FUNCTION or None,
    )
