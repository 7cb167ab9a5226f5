"""
Repositorio Postgres (psycopg) para:
- staging de eventos (UPSERT por event_key)
- dedupe de leads únicos por día/grupo (INSERT ... ON CONFLICT DO NOTHING)
- cursor/estado del sync (fila singleton)

Se usa psycopg (v3). El caller controla commits: el cursor se escribe en una
transacción posterior a la de los datos.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Iterable, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from loguru import logger

from app.shared.exceptions.sync import DownstreamWriteError

from .sync_config import LeadSyncConfig
from .types import CursorState, ensure_utc

STAGING_COLUMNS: tuple[str, ...] = (
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
    "synced_at",
)

DEDUP_COLUMNS: tuple[str, ...] = ("day", "affiliate_id", "offer_id", "campaign_id", "t_id", "cost")


def schema_ddl(config: LeadSyncConfig) -> list[str]:
    """DDL recomendado (CREATE IF NOT EXISTS). No hay migraciones: el esquema es fijo."""
    return [
        f"""
        CREATE TABLE IF NOT EXISTS "{config.staging_table}" (
            event_key     TEXT          PRIMARY KEY,
            lead_id       TEXT          NULL,
            status        TEXT          NULL,
            revenue       NUMERIC(14,2) NULL,
            cost          NUMERIC(14,2) NULL,
            currency      TEXT          NULL,
            offer_id      TEXT          NULL,
            campaign_id   TEXT          NULL,
            affiliate_id  TEXT          NULL,
            sub_id        TEXT          NULL,
            t_id          TEXT          NULL,
            created_at    TIMESTAMPTZ   NOT NULL,
            raw           JSONB         NULL,
            synced_at     TIMESTAMPTZ   NOT NULL DEFAULT now()
        );
        """,
        f"""
        CREATE TABLE IF NOT EXISTS "{config.dedup_table}" (
            day           DATE          NOT NULL,
            affiliate_id  TEXT          NOT NULL DEFAULT '',
            offer_id      TEXT          NOT NULL DEFAULT '',
            campaign_id   TEXT          NOT NULL DEFAULT '',
            t_id          TEXT          NOT NULL,
            cost          NUMERIC(14,2) NULL,
            first_seen_at TIMESTAMPTZ   NOT NULL DEFAULT now(),
            PRIMARY KEY ({", ".join(config.dedup_key_columns)})
        );
        """,
        f"""
        CREATE TABLE IF NOT EXISTS "{config.cursor_table}" (
            id                    TEXT        PRIMARY KEY,
            last_created_at       TIMESTAMPTZ NULL,
            last_event_key        TEXT        NOT NULL DEFAULT '',
            last_run_started_at   TIMESTAMPTZ NULL,
            last_run_completed_at TIMESTAMPTZ NULL,
            last_run_status       TEXT        NULL,
            last_run_error        TEXT        NULL,
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        """,
    ]


def _chunks(rows: list[dict[str, Any]], size: int) -> Iterator[list[dict[str, Any]]]:
    size = max(1, size)
    for i in range(0, len(rows), size):
        yield rows[i : i + size]


class PostgresLeadSyncRepository:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def connect(self) -> psycopg.Connection:
        """
        Abre conexión (autocommit False). El caller controla commits.
        """
        try:
            return psycopg.connect(self._dsn, row_factory=dict_row)
        except psycopg.OperationalError as e:
            raise DownstreamWriteError(
                f"No se pudo conectar a Postgres: {e}. "
                f"Verifica que DATABASE_URL sea accesible desde donde corre el sync.",
                target="connection",
            ) from e

    def commit(self, conn: psycopg.Connection) -> None:
        try:
            conn.commit()
        except psycopg.Error as e:
            raise DownstreamWriteError(f"Falló el commit: {e}", target="commit") from e

    def rollback(self, conn: psycopg.Connection) -> None:
        """
        Rollback best-effort. Con la conexión caída el rollback también falla;
        se loguea para que se propague el error original del batch.
        """
        try:
            conn.rollback()
        except psycopg.Error as e:
            logger.warning(f"Rollback fallido (conexión no utilizable): {e}")

    def ensure_tables(self, conn: psycopg.Connection, config: LeadSyncConfig) -> None:
        try:
            with conn.cursor() as cur:
                for statement in schema_ddl(config):
                    cur.execute(statement)
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudo crear el esquema del sync: {e}", target="schema") from e

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def read_cursor(self, conn: psycopg.Connection, config: LeadSyncConfig) -> Optional[CursorState]:
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f'SELECT last_created_at, last_event_key FROM "{config.cursor_table}" WHERE id = %s',
                    (config.cursor_id,),
                )
                row = cur.fetchone()
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudo leer el cursor: {e}", target=config.cursor_table) from e

        if not row or row.get("last_created_at") is None:
            return None
        return CursorState(
            last_timestamp=ensure_utc(row["last_created_at"]),
            last_tiebreak=row.get("last_event_key") or "",
        )

    def write_cursor(self, conn: psycopg.Connection, config: LeadSyncConfig, cursor: CursorState) -> bool:
        """
        UPSERT del cursor singleton. Solo avanza: si el valor guardado ya es
        mayor o igual (p.ej. otra corrida concurrente fue más lejos) no se pisa.

        Retorna True si la fila cambió.
        """
        table = config.cursor_table
        sql = f"""
            INSERT INTO "{table}" (id, last_created_at, last_event_key, updated_at)
            VALUES (%s, %s, %s, now())
            ON CONFLICT (id)
            DO UPDATE SET
                last_created_at = EXCLUDED.last_created_at,
                last_event_key = EXCLUDED.last_event_key,
                updated_at = now()
            WHERE "{table}".last_created_at IS NULL
               OR ("{table}".last_created_at, "{table}".last_event_key)
                  < (EXCLUDED.last_created_at, EXCLUDED.last_event_key)
        """
        try:
            with conn.cursor() as cur:
                cur.execute(sql, (config.cursor_id, ensure_utc(cursor.last_timestamp), cursor.last_tiebreak))
                return bool(cur.rowcount)
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudo guardar el cursor: {e}", target=table) from e

    def reset_cursor(self, conn: psycopg.Connection, config: LeadSyncConfig) -> None:
        """Vacía la posición: la próxima corrida arranca desde el inicio del log."""
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO "{config.cursor_table}" (id, last_created_at, last_event_key, updated_at)
                    VALUES (%s, NULL, '', now())
                    ON CONFLICT (id)
                    DO UPDATE SET last_created_at = NULL, last_event_key = '', updated_at = now()
                    """,
                    (config.cursor_id,),
                )
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudo resetear el cursor: {e}", target=config.cursor_table) from e

    def mark_run_started(self, conn: psycopg.Connection, config: LeadSyncConfig) -> None:
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO "{config.cursor_table}" (id, last_run_started_at, last_run_status, last_run_error)
                    VALUES (%s, now(), 'running', NULL)
                    ON CONFLICT (id)
                    DO UPDATE SET last_run_started_at = now(),
                                  last_run_status = 'running',
                                  last_run_error = NULL,
                                  updated_at = now()
                    """,
                    (config.cursor_id,),
                )
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudo marcar el inicio del run: {e}", target=config.cursor_table) from e

    def mark_run_finished(
        self,
        conn: psycopg.Connection,
        config: LeadSyncConfig,
        *,
        status: str,
        error: Optional[str],
    ) -> None:
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE "{config.cursor_table}"
                    SET last_run_completed_at = now(),
                        last_run_status = %s,
                        last_run_error = %s,
                        updated_at = now()
                    WHERE id = %s
                    """,
                    (status, error, config.cursor_id),
                )
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudo marcar el fin del run: {e}", target=config.cursor_table) from e

    # ------------------------------------------------------------------
    # Datos
    # ------------------------------------------------------------------

    def upsert_staging(
        self,
        conn: psycopg.Connection,
        config: LeadSyncConfig,
        rows: Iterable[dict[str, Any]],
    ) -> int:
        """
        UPSERT por event_key, en chunks de `upsert_chunk_size`.

        Re-aplicar el mismo evento deja el mismo estado (overwrite). Si un chunk
        falla, se levanta DownstreamWriteError y el caller hace rollback del batch entero.
        """
        rows_list = list(rows)
        if not rows_list:
            return 0

        table = config.staging_table
        quoted_cols = ", ".join(f'"{c}"' for c in STAGING_COLUMNS)
        placeholders = ", ".join(["%s"] * len(STAGING_COLUMNS))
        set_sql = ", ".join(f'"{c}" = EXCLUDED."{c}"' for c in STAGING_COLUMNS if c != "event_key")
        sql = f"""
            INSERT INTO "{table}" ({quoted_cols})
            VALUES ({placeholders})
            ON CONFLICT ("event_key")
            DO UPDATE SET
                {set_sql}
        """

        written = 0
        try:
            with conn.cursor() as cur:
                for chunk in _chunks(rows_list, config.upsert_chunk_size):
                    values = [
                        tuple(Jsonb(row[c]) if c == "raw" and row[c] is not None else row[c] for c in STAGING_COLUMNS)
                        for row in chunk
                    ]
                    cur.executemany(sql, values)
                    written += len(chunk)
        except psycopg.Error as e:
            raise DownstreamWriteError(f"Falló el upsert a staging: {e}", target=table) from e
        return written

    def upsert_dedup(
        self,
        conn: psycopg.Connection,
        config: LeadSyncConfig,
        rows: Iterable[dict[str, Any]],
    ) -> int:
        """
        INSERT-if-absent en la tabla de dedupe. La primera ocurrencia de
        (day, affiliate_id, offer_id, campaign_id, t_id) gana, incluido su cost.

        Retorna cuántos buckets nuevos se insertaron.
        """
        rows_list = list(rows)
        if not rows_list:
            return 0

        table = config.dedup_table
        quoted_cols = ", ".join(f'"{c}"' for c in DEDUP_COLUMNS)
        placeholders = ", ".join(["%s"] * len(DEDUP_COLUMNS))
        conflict_cols = ", ".join(f'"{c}"' for c in config.dedup_key_columns)
        sql = f"""
            INSERT INTO "{table}" ({quoted_cols})
            VALUES ({placeholders})
            ON CONFLICT ({conflict_cols}) DO NOTHING
        """

        inserted = 0
        try:
            with conn.cursor() as cur:
                for chunk in _chunks(rows_list, config.upsert_chunk_size):
                    cur.executemany(sql, [tuple(row[c] for c in DEDUP_COLUMNS) for row in chunk])
                    inserted += max(cur.rowcount or 0, 0)
        except psycopg.Error as e:
            raise DownstreamWriteError(f"Falló el upsert a dedupe: {e}", target=table) from e
        return inserted

    def refresh_views(self, conn: psycopg.Connection, function_name: str) -> None:
        """Ejecuta la función SQL que refresca las materialized views del dashboard."""
        quoted = ".".join(f'"{part}"' for part in function_name.split("."))
        try:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {quoted}()")
        except psycopg.Error as e:
            raise DownstreamWriteError(f"No se pudieron refrescar las vistas: {e}", target=function_name) from e
