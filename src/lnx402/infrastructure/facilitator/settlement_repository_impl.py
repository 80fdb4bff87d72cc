"""Settlement repository implementation over a storage abstraction."""

from __future__ import annotations

import hashlib
from typing import List, Optional

from ...domain.facilitator.entities import ConsumeResult, SettlementRecord
from ...domain.facilitator.settlement_repository import SettlementRepository
from ..scripts import CONSUME_INSERTED
from ..storage import KeyValueStore

SETTLEMENTS_INDEX_KEY = "settlements:all"
SETTLEMENTS_EXPIRY_KEY = "settlements:expiry"


def settlement_key(payment_hash: str, resource: str) -> str:
    # Resources are opaque and unbounded, so they are hashed into the key
    resource_digest = hashlib.sha256(resource.encode("utf-8")).hexdigest()
    return f"settlement:{payment_hash.lower()}:{resource_digest}"


class SettlementRepositoryImpl(SettlementRepository):
    """Settlement repository using a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def try_consume(
        self, record: SettlementRecord, *, ttl_seconds: Optional[int] = None
    ) -> tuple[ConsumeResult, SettlementRecord]:
        result = await self.store.run_script(
            "consume_settlement",
            [
                settlement_key(record.payment_hash, record.resource),
                SETTLEMENTS_INDEX_KEY,
                SETTLEMENTS_EXPIRY_KEY,
            ],
            [
                record.model_dump_json(),
                str(record.consumed_at.timestamp()),
                str(ttl_seconds or 0),
            ],
        )
        status, raw = int(result[0]), result[1]
        stored = SettlementRecord.model_validate_json(raw)
        if status == CONSUME_INSERTED:
            return ConsumeResult.CONSUMED, stored
        return ConsumeResult.ALREADY_CONSUMED, stored

    async def get(self, payment_hash: str, resource: str) -> Optional[SettlementRecord]:
        data = await self.store.get(settlement_key(payment_hash, resource))
        if not data:
            return None
        return SettlementRecord.model_validate_json(data)

    async def list_recent(self, skip: int = 0, limit: int = 100) -> List[SettlementRecord]:
        keys = await self.store.zrevrange(SETTLEMENTS_INDEX_KEY, skip, skip + limit - 1)
        records: List[SettlementRecord] = []
        for data in await self.store.mget(keys):
            if data:
                records.append(SettlementRecord.model_validate_json(data))
        return records
