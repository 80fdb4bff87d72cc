"""Shared pytest fixtures for facilitator tests."""

from __future__ import annotations

import os
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio

from lnx402.domain.facilitator.entities import PaymentRequirements
from lnx402.infrastructure.database import DatabaseClient
from lnx402.infrastructure.memory_storage import InMemoryKeyValueStore
from lnx402.infrastructure.storage import RedisKeyValueStore
from tests.fixtures import (
    FakeLightningBackend,
    NodeKey,
    generate_node_key,
    make_requirements,
)


@pytest.fixture
def node_key() -> NodeKey:
    """Key of the Lightning node the resource server is paid through."""
    return generate_node_key()


@pytest.fixture
def other_node_key() -> NodeKey:
    return generate_node_key()


@pytest.fixture
def fake_backend() -> FakeLightningBackend:
    return FakeLightningBackend()


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def requirements_factory(node_key: NodeKey) -> Callable[..., PaymentRequirements]:
    """Requirements paying node_key unless pay_to is overridden."""

    def _factory(**overrides: object) -> PaymentRequirements:
        pay_to = str(overrides.pop("pay_to", node_key.pubkey_hex))
        return make_requirements(pay_to, **overrides)

    return _factory


class RedisTestSettings:
    """Test settings for Redis connection."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url


@pytest_asyncio.fixture
async def redis_db_client() -> AsyncGenerator[DatabaseClient, None]:
    """Create a Redis database client for testing.

    Uses database 15 by default, or TEST_REDIS_URL if set. Tests depending
    on it are skipped when Redis is not reachable.
    """
    test_redis_url = os.getenv("TEST_REDIS_URL", "redis://localhost:6379/15")
    client = DatabaseClient(RedisTestSettings(database_url=test_redis_url))
    client.initialize_database()

    try:
        async with client.get_connection() as conn:
            await conn.ping()
    except Exception as e:
        await client.close()
        pytest.skip(f"Redis not available at {test_redis_url}: {e}")

    async with client.get_connection() as conn:
        await conn.flushdb()

    yield client

    async with client.get_connection() as conn:
        await conn.flushdb()
    await client.close()


@pytest_asyncio.fixture
async def redis_store(redis_db_client: DatabaseClient) -> RedisKeyValueStore:
    """Create a Redis-backed key-value store for testing."""
    return RedisKeyValueStore(redis_db_client)
