"""
Endpoints para sincronizacion de lead events.
Permite disparar el sync Directus -> PostgreSQL desde un scheduler (cron, Vercel, etc).
"""
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from app.api.v1.dependencies.use_case_deps import get_lead_sync_use_cases
from app.application.dto.lead_sync_dto import LeadSyncRequestDTO, LeadSyncResponseDTO
from app.application.use_cases.lead_sync_use_cases import LeadSyncUseCases
from app.core.config import settings
from app.shared.exceptions.auth import UnauthorizedException


router = APIRouter(prefix="/sync", tags=["Sync"])


def _check_secret(provided: Optional[str]) -> None:
    """Secreto compartido simple (?secret=). Si no hay secreto configurado no se exige."""
    expected = settings.SYNC_ENDPOINT_SECRET
    if not expected:
        return
    # compare_digest requiere mismo tipo: str vs str
    if not hmac.compare_digest(provided or "", expected):
        raise UnauthorizedException("Secreto invalido o ausente")


@router.post(
    "/lead-events",
    response_model=LeadSyncResponseDTO,
    status_code=status.HTTP_200_OK,
    summary="Sincronizar lead events Directus -> PostgreSQL"
)
async def sync_lead_events(
    secret: Optional[str] = Query(default=None, description="Secreto compartido del endpoint"),
    since: Optional[str] = Query(default=None, description="YYYY-MM-DD o ISO8601; arranca desde ahi"),
    cursor: Optional[str] = Query(default=None, description="Token next_cursor de una corrida anterior"),
    reset: bool = Query(default=False, description="Vacia el cursor guardado (full re-sync)"),
    batch: Optional[int] = Query(default=None, ge=1, le=10000, description="Eventos por pagina"),
    pages: Optional[int] = Query(default=None, ge=0, le=1000, description="Maximo de paginas (0 = sin limite)"),
    time_budget_s: Optional[float] = Query(default=None, ge=0, le=900, description="Presupuesto de tiempo"),
    use_cases: LeadSyncUseCases = Depends(get_lead_sync_use_cases),
) -> LeadSyncResponseDTO:
    """
    Ejecuta una corrida acotada del sync.

    La corrida:
    - Lee el cursor guardado (o since / cursor / reset)
    - Procesa batches hasta quedar al dia, agotar `pages` o el presupuesto de tiempo
    - Si se corto antes de quedar al dia, responde has_more=true y next_cursor

    Los errores se devuelven como JSON estructurado {error, message, details};
    details.committed contiene lo ya confirmado antes de la falla.
    """
    _check_secret(secret)

    dto = LeadSyncRequestDTO(
        since=since,
        cursor=cursor,
        reset=reset,
        batch=batch,
        pages=pages,
        time_budget_s=time_budget_s,
    )
    response = await use_cases.run_sync(dto)

    logger.info(
        f"Sync {response.status}: {response.synced} evento(s), has_more={response.has_more}"
    )
    return response
