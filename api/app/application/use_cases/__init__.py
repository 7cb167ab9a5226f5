"""
Casos de uso de la aplicacion.
"""
from .lead_sync_use_cases import LeadSyncUseCases

__all__ = ["LeadSyncUseCases"]
