"""Tests for SettlementRepositoryImpl over the in-memory key-value store."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from lnx402.domain.facilitator.entities import ConsumeResult, SettlementRecord
from lnx402.domain.facilitator.networks import MAINNET
from lnx402.infrastructure.facilitator.settlement_repository_impl import (
    SETTLEMENTS_INDEX_KEY,
    SettlementRepositoryImpl,
    settlement_key,
)
from lnx402.infrastructure.memory_storage import InMemoryKeyValueStore

PAYMENT_HASH = "ab" * 32
RESOURCE = "https://api.example.com/report"


def _record(
    payment_hash: str = PAYMENT_HASH,
    resource: str = RESOURCE,
    payer: str = "payer-1",
    consumed_at: Optional[datetime] = None,
) -> SettlementRecord:
    return SettlementRecord(
        payment_hash=payment_hash,
        resource=resource,
        consumed_at=consumed_at or datetime.now(timezone.utc),
        transaction=payment_hash,
        network=MAINNET,
        payer=payer,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_settlement_key_hashes_resource() -> None:
    key = settlement_key(PAYMENT_HASH.upper(), RESOURCE)
    assert key.startswith(f"settlement:{PAYMENT_HASH}:")
    assert RESOURCE not in key
    assert key != settlement_key(PAYMENT_HASH, RESOURCE + "?page=2")


@pytest.mark.asyncio
async def test_first_consume_wins(memory_store: InMemoryKeyValueStore) -> None:
    repository = SettlementRepositoryImpl(memory_store)

    first_status, first = await repository.try_consume(_record(payer="first"))
    second_status, second = await repository.try_consume(_record(payer="second"))

    assert first_status is ConsumeResult.CONSUMED
    assert second_status is ConsumeResult.ALREADY_CONSUMED
    assert second.payer == "first"
    assert first == second


@pytest.mark.asyncio
async def test_concurrent_consumes_insert_once(memory_store: InMemoryKeyValueStore) -> None:
    repository = SettlementRepositoryImpl(memory_store)

    results = await asyncio.gather(
        *(repository.try_consume(_record(payer=f"p{i}")) for i in range(25))
    )

    statuses = [status for status, _ in results]
    assert statuses.count(ConsumeResult.CONSUMED) == 1
    assert statuses.count(ConsumeResult.ALREADY_CONSUMED) == 24
    assert len({stored.payer for _, stored in results}) == 1


@pytest.mark.asyncio
async def test_get_returns_stored_record(memory_store: InMemoryKeyValueStore) -> None:
    repository = SettlementRepositoryImpl(memory_store)
    record = _record()
    await repository.try_consume(record)

    assert await repository.get(PAYMENT_HASH, RESOURCE) == record
    assert await repository.get(PAYMENT_HASH, RESOURCE + "/other") is None
    assert await repository.get("cd" * 32, RESOURCE) is None


@pytest.mark.asyncio
async def test_list_recent_orders_by_consumption_time(
    memory_store: InMemoryKeyValueStore,
) -> None:
    repository = SettlementRepositoryImpl(memory_store)
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i, payment_hash in enumerate(["01" * 32, "02" * 32, "03" * 32]):
        await repository.try_consume(
            _record(payment_hash=payment_hash, consumed_at=base + timedelta(seconds=i))
        )

    recent = await repository.list_recent(limit=2)
    rest = await repository.list_recent(skip=2, limit=2)

    assert [r.payment_hash for r in recent] == ["03" * 32, "02" * 32]
    assert [r.payment_hash for r in rest] == ["01" * 32]


@pytest.mark.asyncio
async def test_ttl_releases_key_after_expiry() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)
    repository = SettlementRepositoryImpl(store)

    await repository.try_consume(_record(), ttl_seconds=10)
    clock.now = 9.0
    assert (await repository.try_consume(_record()))[0] is ConsumeResult.ALREADY_CONSUMED

    clock.now = 10.0
    assert await repository.get(PAYMENT_HASH, RESOURCE) is None
    assert await repository.list_recent() == []
    assert (await repository.try_consume(_record()))[0] is ConsumeResult.CONSUMED


@pytest.mark.asyncio
async def test_expired_records_leave_the_index() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)
    repository = SettlementRepositoryImpl(store)
    for i in range(200):
        await repository.try_consume(_record(payment_hash=f"{i:064x}"), ttl_seconds=10)
    assert len(await store.zrevrange(SETTLEMENTS_INDEX_KEY, 0, -1)) == 200

    # When the retention window has passed and another payment settles
    clock.now = 100.0
    await repository.try_consume(_record(), ttl_seconds=10)

    # Then only the live record is still indexed
    assert await store.zrevrange(SETTLEMENTS_INDEX_KEY, 0, -1) == [
        settlement_key(PAYMENT_HASH, RESOURCE)
    ]
    assert [r.payment_hash for r in await repository.list_recent()] == [PAYMENT_HASH]


@pytest.mark.asyncio
async def test_records_without_ttl_are_permanent() -> None:
    clock = FakeClock()
    repository = SettlementRepositoryImpl(InMemoryKeyValueStore(clock=clock))

    await repository.try_consume(_record())
    clock.now = 10**9

    assert await repository.get(PAYMENT_HASH, RESOURCE) is not None


@pytest.mark.asyncio
async def test_unknown_script_is_rejected(memory_store: InMemoryKeyValueStore) -> None:
    with pytest.raises(ValueError, match="not registered"):
        await memory_store.run_script("drop_everything", [SETTLEMENTS_INDEX_KEY], [])
