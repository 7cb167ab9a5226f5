"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable
from fastapi import FastAPI
from loguru import logger

from app.core.config import settings


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            # Validar configuracion critica
            _validate_config()

            # Configurar logging adicional
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )

            logger.success("Aplicacion iniciada correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """
    Valida que la configuracion critica este presente.

    Solo advierte: el endpoint de sync levanta ConfigurationError al invocarse
    sin conexiones, sin tumbar el resto de la API.
    """
    warnings = []

    if not settings.DIRECTUS_URL or not settings.DIRECTUS_TOKEN:
        warnings.append("DIRECTUS_URL/DIRECTUS_TOKEN no configurados - el sync no funcionara")
    if not settings.DATABASE_URL:
        warnings.append("DATABASE_URL no configurada - el sync no funcionara")
    if not settings.SYNC_ENDPOINT_SECRET:
        warnings.append("SYNC_ENDPOINT_SECRET vacio - el endpoint de sync queda abierto")

    # Mostrar advertencias
    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")
        # Cada corrida de sync abre y cierra su propia conexion: no hay pool que liberar.
        logger.success("Aplicacion cerrada correctamente")

    return shutdown
