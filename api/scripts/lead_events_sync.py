"""
CLI: Directus -> Postgres (sync incremental de lead events).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer), o a mano para backfills.
  - Cada corrida es acotada (páginas / tiempo); el script encadena corridas
    siguiendo next_cursor hasta quedar al día (salvo --once).

Variables de entorno requeridas:
  - DIRECTUS_URL
  - DIRECTUS_TOKEN
  - DATABASE_URL (debe ser postgresql://... o postgres://...)

Ejecución:
  python scripts/lead_events_sync.py
  python scripts/lead_events_sync.py --since 2025-09-15 --batch 500 --pages 10
  python scripts/lead_events_sync.py --reset
  python scripts/lead_events_sync.py --schema-only
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `app/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe (api/.env o raíz del repo).
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from app.application.use_cases.lead_sync_use_cases import parse_since
from app.infrastructure.external.lead_sync.pg_repository import schema_ddl
from app.infrastructure.external.lead_sync.sync_config import LeadSyncConfig
from app.infrastructure.external.lead_sync.sync_service import LeadEventSync, build_from_env
from app.infrastructure.external.lead_sync.types import SyncRunResult
from app.shared.exceptions.base import AppException


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync incremental Directus -> Postgres de lead events")
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Solo imprime el DDL recomendado (no ejecuta sync).",
    )
    parser.add_argument("--since", help="Arranque explícito: YYYY-MM-DD o ISO8601.")
    parser.add_argument("--cursor", help="Token next_cursor para continuar una corrida cortada.")
    parser.add_argument("--reset", action="store_true", help="Vacía el cursor guardado y re-sincroniza todo.")
    parser.add_argument("--batch", type=int, default=None, help="Eventos por página.")
    parser.add_argument("--pages", type=int, default=None, help="Máximo de páginas por corrida (0 = sin límite).")
    parser.add_argument("--time-budget", type=float, default=None, help="Segundos por corrida (0 = sin timebox).")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Ejecuta una sola corrida e imprime next_cursor en vez de encadenar.",
    )
    return parser


def run_until_caught_up(
    service: LeadEventSync,
    *,
    since: Optional[str] = None,
    cursor: Optional[str] = None,
    reset: bool = False,
    batch: Optional[int] = None,
    pages: Optional[int] = None,
    time_budget_s: Optional[float] = None,
    once: bool = False,
) -> list[SyncRunResult]:
    """
    Encadena corridas siguiendo next_cursor hasta has_more=False.

    `since` y `reset` solo aplican a la primera corrida; las siguientes
    continúan desde el token.
    """
    results: list[SyncRunResult] = []
    total = 0
    round_no = 0

    while True:
        round_no += 1
        first = round_no == 1
        result = service.run(
            since=parse_since(since, service.config.reference_tz) if first and not cursor else None,
            resume_token=cursor,
            reset=reset and first,
            batch_size=batch,
            max_pages=pages,
            time_budget_s=time_budget_s,
        )
        results.append(result)
        total += result.synced
        logger.info(f"Corrida #{round_no}: synced={result.synced}, total={total}, estado={result.status.value}")

        if not result.has_more or once:
            break
        cursor = result.next_cursor

    if results and results[-1].has_more:
        logger.info(f"Corte voluntario. Continuar con --cursor {results[-1].next_cursor}")
    else:
        logger.info(f"Al día. Total sincronizado: {total} evento(s)")
    return results


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.schema_only:
        for statement in schema_ddl(LeadSyncConfig()):
            print(statement.strip() + "\n")
        return 0

    try:
        service = build_from_env()
        logger.info("Iniciando Directus -> Postgres sync...")
        run_until_caught_up(
            service,
            since=args.since,
            cursor=args.cursor,
            reset=args.reset,
            batch=args.batch,
            pages=args.pages,
            time_budget_s=args.time_budget,
            once=args.once,
        )
    except AppException as e:
        logger.error(f"Sync falló [{e.error_code}]: {e.message} | details={e.details}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
