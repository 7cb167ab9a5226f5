"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .lead_sync_dto import LeadSyncRequestDTO, LeadSyncResponseDTO

__all__ = [
    "LeadSyncRequestDTO",
    "LeadSyncResponseDTO",
]
