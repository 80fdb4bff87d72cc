"""Dependencies for the Facilitator API.

Long-lived collaborators are built once per application by
`build_container` and stored on `app.state`; request-scoped services are
assembled from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from ...application.facilitator.use_cases.settlement import SettlementService
from ...application.facilitator.use_cases.verification import VerificationService
from ...application.facilitator.verdict_cache import VerdictCache
from ...domain.shared import LightningBackendFactory
from ...envs.facilitator_env import Settings
from ...infrastructure.database import DatabaseClient
from ...infrastructure.facilitator.settlement_repository_impl import (
    SettlementRepositoryImpl,
)
from ...infrastructure.lightning.factory import build_lightning_backend_factory
from ...infrastructure.memory_storage import InMemoryKeyValueStore
from ...infrastructure.storage import KeyValueStore, RedisKeyValueStore


@dataclass
class FacilitatorContainer:
    settings: Settings
    store: KeyValueStore
    verdict_cache: VerdictCache
    lightning_backend_factory: LightningBackendFactory
    db_client: Optional[DatabaseClient] = None

    async def aclose(self) -> None:
        if self.db_client is not None:
            await self.db_client.close()


def build_container(settings: Settings) -> FacilitatorContainer:
    db_client: Optional[DatabaseClient] = None
    store: KeyValueStore
    if settings.storage_backend == "redis":
        db_client = DatabaseClient(settings)
        store = RedisKeyValueStore(db_client)
    else:
        store = InMemoryKeyValueStore()
    return FacilitatorContainer(
        settings=settings,
        store=store,
        verdict_cache=VerdictCache(max_entries=settings.verdict_cache_max_entries),
        lightning_backend_factory=build_lightning_backend_factory(settings),
        db_client=db_client,
    )


def get_container(request: Request) -> FacilitatorContainer:
    return request.app.state.container


def get_verification_service(
    container: FacilitatorContainer = Depends(get_container),
) -> VerificationService:
    settings = container.settings
    return VerificationService(
        container.lightning_backend_factory,
        supported_versions=settings.supported_x402_versions,
        supported_networks=settings.supported_networks,
        lnurl_payees=settings.lnurl_payees,
        backend_timeout_seconds=settings.backend_timeout_seconds,
        verdict_cache=container.verdict_cache,
    )


def get_settlement_service(
    container: FacilitatorContainer = Depends(get_container),
    verification_service: VerificationService = Depends(get_verification_service),
) -> SettlementService:
    settings = container.settings
    return SettlementService(
        verification_service,
        SettlementRepositoryImpl(container.store),
        verdict_cache=container.verdict_cache,
        verdict_ttl_seconds=settings.verdict_cache_ttl_seconds,
        retention_grace_seconds=settings.settlement_retention_grace_seconds,
    )
