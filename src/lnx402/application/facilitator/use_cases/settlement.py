"""Settlement use case: verify, then consume the invoice exactly once."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from ....domain.facilitator.entities import (
    ConsumeResult,
    ErrorReason,
    PaymentRequirements,
    SettlementRecord,
    SettlementResponse,
    VerificationOutcome,
)
from ....domain.facilitator.settlement_repository import SettlementRepository
from ..verdict_cache import VerdictCache, verdict_fingerprint
from .requirements_validators import invoice_expired
from .verification import PaymentHeaderInput, VerificationService, coerce_payment_header

logger = logging.getLogger(__name__)


class SettlementService:
    """Turns a valid payment into a permanent SettlementRecord.

    Per (payment_hash, resource): Unknown -> Verified -> Settled | Failed.
    Settled is terminal; Failed leaves no trace so the client may retry.
    The replay store is only touched after a positive verdict.
    """

    def __init__(
        self,
        verification_service: VerificationService,
        settlement_repository: SettlementRepository,
        *,
        verdict_cache: Optional[VerdictCache] = None,
        verdict_ttl_seconds: float = 30.0,
        retention_grace_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.verification_service = verification_service
        self.settlement_repository = settlement_repository
        self.verdict_cache = verdict_cache
        self.verdict_ttl_seconds = verdict_ttl_seconds
        self.retention_grace_seconds = retention_grace_seconds
        self.clock = clock

    def _cached_outcome(
        self, requirements: PaymentRequirements, fingerprint: Optional[str]
    ) -> Optional[VerificationOutcome]:
        if self.verdict_cache is None or fingerprint is None:
            return None
        max_age = min(self.verdict_ttl_seconds, float(requirements.max_timeout_seconds))
        outcome = self.verdict_cache.get(fingerprint, max_age)
        if outcome is None or outcome.invoice is None:
            return None
        if invoice_expired(outcome.invoice, requirements, self.clock()):
            self.verdict_cache.discard(fingerprint)
            return None
        return outcome

    def _retention_ttl(self, expiry_timestamp: int) -> Optional[int]:
        if self.retention_grace_seconds is None:
            return None
        remaining = max(expiry_timestamp - int(self.clock()), 0)
        return remaining + self.retention_grace_seconds

    async def settle(
        self, requirements: PaymentRequirements, header: PaymentHeaderInput
    ) -> SettlementResponse:
        """Settle a payment for a resource.

        Failures are reported in the response. Only unexpected errors from
        the backend client propagate.
        """
        fingerprint: Optional[str] = None
        try:
            fingerprint = verdict_fingerprint(requirements, coerce_payment_header(header))
        except ValueError:
            pass  # undecodable headers are rejected by the verification below

        # 1) Reuse a fresh verdict or run the full verification
        outcome = self._cached_outcome(requirements, fingerprint)
        if outcome is None:
            outcome = await self.verification_service.evaluate(requirements, header)

        # 2) Invalid payments never touch the replay store
        if not outcome.result.is_valid:
            return SettlementResponse(
                success=False,
                error_reason=outcome.result.invalid_reason,
                network=requirements.network,
            )
        invoice = outcome.invoice
        assert invoice is not None

        # 3) Exactly one caller per (payment_hash, resource) gets through
        record = SettlementRecord(
            payment_hash=invoice.payment_hash,
            resource=requirements.resource,
            transaction=invoice.payment_hash,
            network=requirements.network,
            payer=outcome.result.payer,
            invoice_expiry_timestamp=invoice.expiry_timestamp,
        )
        try:
            status, stored = await self.settlement_repository.try_consume(
                record, ttl_seconds=self._retention_ttl(invoice.expiry_timestamp)
            )
        except Exception:
            logger.exception(
                "Replay store unavailable while settling %s", invoice.payment_hash
            )
            return SettlementResponse(
                success=False,
                error_reason=ErrorReason.BACKEND_UNAVAILABLE,
                network=requirements.network,
            )

        if fingerprint is not None and self.verdict_cache is not None:
            self.verdict_cache.discard(fingerprint)

        if status is ConsumeResult.ALREADY_CONSUMED:
            logger.warning(
                "Invoice %s already used for %s (settled at %s)",
                invoice.payment_hash,
                requirements.resource,
                stored.consumed_at.isoformat(),
            )
            return SettlementResponse(
                success=False,
                error_reason=ErrorReason.INVOICE_ALREADY_USED,
                network=requirements.network,
            )

        # 4) The record is persisted; report it
        logger.info(
            "Settled invoice %s for %s on %s",
            invoice.payment_hash,
            requirements.resource,
            requirements.network,
        )
        return SettlementResponse(
            success=True,
            transaction=stored.transaction,
            network=stored.network,
            payer=stored.payer,
        )

    async def get_settlement(
        self, payment_hash: str, resource: str
    ) -> Optional[SettlementRecord]:
        return await self.settlement_repository.get(payment_hash.lower(), resource)

    async def list_settlements(
        self, skip: int = 0, limit: int = 100
    ) -> List[SettlementRecord]:
        """Most recent settlements first."""
        return await self.settlement_repository.list_recent(skip=skip, limit=limit)
