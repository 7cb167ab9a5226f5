"""
Dependencias para inyeccion de casos de uso.
"""
from app.application.use_cases.lead_sync_use_cases import LeadSyncUseCases
from app.core.config import settings
from app.infrastructure.external.lead_sync.sync_service import build_from_settings


def get_lead_sync_use_cases() -> LeadSyncUseCases:
    """
    Dependencia para obtener los casos de uso del sync de lead events.

    El pipeline se construye por invocacion (lee la configuracion vigente).

    Returns:
        LeadSyncUseCases: Instancia de casos de uso del sync
    """
    return LeadSyncUseCases(lambda: build_from_settings(settings))
