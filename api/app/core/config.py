"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.
Soporta configuracion dinamica para desarrollo (ENVIRONMENT=development)
y produccion (ENVIRONMENT=production).
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Conexiones requeridas por el sync (sin default, se validan al construir el pipeline):
    - DIRECTUS_URL / DIRECTUS_TOKEN: event log upstream
    - DATABASE_URL: Postgres destino (acepta formato SQLAlchemy, se normaliza para psycopg)
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Lead Events Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Upstream (Directus)
    DIRECTUS_URL: str = Field(default="")
    DIRECTUS_TOKEN: str = Field(default="")
    DIRECTUS_TIMEOUT_S: float = Field(default=30.0)

    # Downstream (Postgres)
    DATABASE_URL: str = Field(default="")

    # Secreto compartido del endpoint de sync (?secret=). Vacio = sin chequeo.
    SYNC_ENDPOINT_SECRET: str = Field(default="")

    # Parametros del sync
    SYNC_EXCLUDED_CAMPAIGN: str = Field(default="925")
    SYNC_BATCH_SIZE: int = Field(default=1000, gt=0)
    SYNC_MAX_PAGES: int = Field(default=0, ge=0)  # 0 = sin limite de paginas
    SYNC_TIME_BUDGET_S: float = Field(default=50.0, ge=0)  # 0 = sin timebox
    SYNC_INTER_BATCH_DELAY_S: float = Field(default=0.12, ge=0)
    SYNC_UPSERT_CHUNK_SIZE: int = Field(default=500, gt=0)
    SYNC_REFERENCE_TZ: str = Field(default="Europe/Amsterdam")
    SYNC_REFRESH_VIEWS_FUNCTION: str = Field(default="")

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuración
settings = Settings()
