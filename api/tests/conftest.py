"""
Configuración de fixtures para pytest.

Los dobles en memoria viven en `lead_sync_fakes`; acá solo se arman las fixtures.
"""
from __future__ import annotations

import pytest

from app.infrastructure.external.lead_sync.directus_client import DirectusClient, DirectusCredentials
from app.infrastructure.external.lead_sync.sync_config import LeadSyncConfig
from app.infrastructure.external.lead_sync.sync_service import LeadEventSync
from lead_sync_fakes import FakeDirectusSession, InMemoryLeadSyncRepository


@pytest.fixture
def sync_config() -> LeadSyncConfig:
    return LeadSyncConfig(batch_size=1000, max_pages=0, time_budget_s=0, inter_batch_delay_s=0)


@pytest.fixture
def repo() -> InMemoryLeadSyncRepository:
    return InMemoryLeadSyncRepository()


@pytest.fixture
def directus_session() -> FakeDirectusSession:
    return FakeDirectusSession([])


@pytest.fixture
def directus(directus_session: FakeDirectusSession) -> DirectusClient:
    return DirectusClient(
        DirectusCredentials(base_url="https://directus.test/", token="tok"),
        session=directus_session,
    )


@pytest.fixture
def make_service(repo, directus):
    """Factory de LeadEventSync con dobles en memoria; acepta overrides de config."""
    def _make(config: LeadSyncConfig, **kwargs) -> LeadEventSync:
        kwargs.setdefault("sleep", lambda s: None)
        return LeadEventSync(pg_repo=repo, upstream=directus, config=config, **kwargs)
    return _make
