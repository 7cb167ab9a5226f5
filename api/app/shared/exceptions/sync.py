"""
Excepciones del pipeline de sincronización Directus -> Postgres.

Ninguna se reintenta internamente: la primera falla no recuperada sube hasta
el punto de invocación (endpoint / CLI).
"""
from typing import Any, Dict, Optional

from app.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepción base para errores del sync."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "SYNC_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class ConfigurationError(SyncException):
    """Faltan parámetros de conexión obligatorios. Se levanta antes de cualquier I/O."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="SYNC_CONFIGURATION_ERROR",
            details={"missing": missing or []}
        )


class UpstreamFetchError(SyncException):
    """Error de red, auth o forma del payload al leer una página de Directus."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="UPSTREAM_FETCH_ERROR",
            details={"upstream_status": status} if status is not None else None
        )


class DownstreamWriteError(SyncException):
    """Falla al escribir staging, dedupe o cursor en Postgres."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="DOWNSTREAM_WRITE_ERROR",
            details={"target": target} if target else None
        )


class NormalizationAmbiguity(SyncException):
    """
    Importe monetario no interpretable.

    Falla blanda: el normalizador la captura, el campo se guarda NULL
    y el batch continúa.
    """

    def __init__(self, raw: Any):
        super().__init__(
            message=f"Importe monetario no interpretable: {raw!r}",
            status_code=422,
            error_code="NORMALIZATION_AMBIGUITY",
            details={"raw": raw if isinstance(raw, (str, int, float)) else repr(raw)}
        )


class SyncRunAborted(SyncException):
    """
    Envuelve la falla que abortó una corrida junto con los contadores
    ya confirmados antes del paso que falló.
    """

    def __init__(self, cause: SyncException, committed: Dict[str, Any]):
        super().__init__(
            message=cause.message,
            status_code=cause.status_code,
            error_code=cause.error_code,
            details={**cause.details, "committed": committed}
        )
        self.cause = cause


class InvalidSyncParameters(SyncException):
    """Parámetros de invocación inválidos (token de reanudación corrupto, batch <= 0)."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_SYNC_PARAMETERS"
        )
