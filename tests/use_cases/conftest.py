"""Pytest fixtures for use case tests."""

from __future__ import annotations

import pytest

from lnx402.application.facilitator.use_cases.settlement import SettlementService
from lnx402.application.facilitator.use_cases.verification import VerificationService
from lnx402.domain.facilitator.entities import PaymentRequirements
from lnx402.infrastructure.facilitator.settlement_repository_impl import (
    SettlementRepositoryImpl,
)
from lnx402.infrastructure.memory_storage import InMemoryKeyValueStore
from tests.fixtures import FakeLightningBackend, NodeKey, SignedInvoice, encode_invoice


@pytest.fixture
def verification_service(fake_backend: FakeLightningBackend) -> VerificationService:
    return VerificationService(fake_backend.factory, backend_timeout_seconds=1.0)


@pytest.fixture
def settlement_repository(
    memory_store: InMemoryKeyValueStore,
) -> SettlementRepositoryImpl:
    return SettlementRepositoryImpl(memory_store)


@pytest.fixture
def settlement_service(
    verification_service: VerificationService,
    settlement_repository: SettlementRepositoryImpl,
) -> SettlementService:
    return SettlementService(verification_service, settlement_repository)


@pytest.fixture
def paid_invoice(node_key: NodeKey, fake_backend: FakeLightningBackend) -> SignedInvoice:
    """A live 1000 sat mainnet invoice the backend reports as paid in full."""
    invoice = encode_invoice(node_key, amount_msat=1_000_000)
    fake_backend.set_paid(invoice.payment_hash, 1_000_000, payer="payer-node")
    return invoice


@pytest.fixture
def requirements(requirements_factory) -> PaymentRequirements:
    return requirements_factory()
