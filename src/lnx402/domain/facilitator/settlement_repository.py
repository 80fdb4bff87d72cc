"""Settlement (replay guard) domain repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from .entities import ConsumeResult, SettlementRecord


class SettlementRepository(ABC):
    """Keyed store enforcing at-most-once settlement per (payment_hash, resource)."""

    @abstractmethod
    async def try_consume(
        self, record: SettlementRecord, *, ttl_seconds: Optional[int] = None
    ) -> tuple[ConsumeResult, SettlementRecord]:
        """
        Atomically insert the record unless one already exists for its key.

        Returns:
          (CONSUMED, record) -> this caller won and the record is persisted
          (ALREADY_CONSUMED, existing) -> another caller won earlier
        """
        pass

    @abstractmethod
    async def get(self, payment_hash: str, resource: str) -> Optional[SettlementRecord]:
        """Read a settlement record for diagnostics."""
        pass

    @abstractmethod
    async def list_recent(self, skip: int = 0, limit: int = 100) -> List[SettlementRecord]:
        """List settlement records, newest first."""
        pass
