"""Verification use case: the ordered checks behind isValid/invalidReason."""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Callable, Iterable, Mapping, Optional, Union

from ....crypto.bolt11 import decode_invoice
from ....domain.errors import (
    BackendUnavailable,
    InvalidInvoiceFormat,
    InvalidPaymentRequirements,
)
from ....domain.facilitator.entities import (
    EXACT_SCHEME,
    BackendPaymentStatus,
    DecodedInvoice,
    ErrorReason,
    PaymentRequirements,
    PaymentState,
    VerificationOutcome,
    VerificationResult,
    XPaymentHeader,
)
from ....domain.facilitator.networks import NETWORK_CURRENCY_PREFIXES
from ....domain.shared import LightningBackendFactory
from ...shared.amounts import covers
from ..verdict_cache import VerdictCache, verdict_fingerprint
from .requirements_validators import (
    invoice_expired,
    payee_matches,
    validate_requirements,
)

logger = logging.getLogger(__name__)

PaymentHeaderInput = Union[XPaymentHeader, str]


class _Rejected(Exception):
    """Internal short-circuit carrying the first failing reason."""

    def __init__(self, reason: ErrorReason, invoice: Optional[DecodedInvoice] = None):
        super().__init__(reason.value)
        self.reason = reason
        self.invoice = invoice


def decode_payment_header(raw: str) -> XPaymentHeader:
    """Decode a base64 (standard or URL-safe) JSON X-PAYMENT header.

    Raises:
        ValueError: If the header is not valid base64, JSON or shape.
    """
    text = raw.strip()
    padded = text + "=" * (-len(text) % 4)
    if "-" in text or "_" in text:
        data = base64.urlsafe_b64decode(padded)
    else:
        data = base64.b64decode(padded, validate=True)
    return XPaymentHeader.model_validate_json(data)


def coerce_payment_header(header: PaymentHeaderInput) -> XPaymentHeader:
    if isinstance(header, XPaymentHeader):
        return header
    return decode_payment_header(header)


class VerificationService:
    """Decides whether an X-PAYMENT header pays the given requirements.

    `evaluate` is the canonical decision function. Payment-logic failures,
    backend outages and timeouts become a structured VerificationResult;
    any other error from a backend client propagates to the caller.
    """

    def __init__(
        self,
        lightning_backend_factory: LightningBackendFactory,
        *,
        supported_versions: Iterable[int] = (1,),
        supported_networks: Optional[Iterable[str]] = None,
        lnurl_payees: Optional[Mapping[str, str]] = None,
        backend_timeout_seconds: float = 10.0,
        verdict_cache: Optional[VerdictCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.lightning_backend_factory = lightning_backend_factory
        self.supported_versions = frozenset(supported_versions)
        self.supported_networks = frozenset(
            NETWORK_CURRENCY_PREFIXES if supported_networks is None else supported_networks
        ).intersection(NETWORK_CURRENCY_PREFIXES)
        self.lnurl_payees = dict(lnurl_payees or {})
        self.backend_timeout_seconds = backend_timeout_seconds
        self.verdict_cache = verdict_cache
        self.clock = clock

    async def verify(
        self, requirements: PaymentRequirements, header: PaymentHeaderInput
    ) -> VerificationResult:
        """Side-effect free verification. Positive verdicts are cached."""
        outcome = await self.evaluate(requirements, header)
        if outcome.result.is_valid and self.verdict_cache is not None:
            fingerprint = verdict_fingerprint(requirements, coerce_payment_header(header))
            self.verdict_cache.put(fingerprint, outcome)
        return outcome.result

    async def evaluate(
        self, requirements: PaymentRequirements, header: PaymentHeaderInput
    ) -> VerificationOutcome:
        try:
            # Header must decode before any step can run
            try:
                decoded = coerce_payment_header(header)
            except ValueError:
                raise _Rejected(ErrorReason.INVALID_EXACT_LIGHTNING_PAYLOAD)
            invoice, required_sats = self._check_offline(requirements, decoded)
            status = await self._check_status(
                invoice, decoded.payload.invoice_id, requirements
            )
        except _Rejected as rejected:
            logger.debug(
                "Payment for %s rejected: %s", requirements.resource, rejected.reason.value
            )
            return VerificationOutcome(
                result=VerificationResult.invalid(rejected.reason),
                invoice=rejected.invoice,
            )

        # 11) Backend must report the invoice as paid
        if status.state is not PaymentState.PAID:
            return VerificationOutcome(
                result=VerificationResult.invalid(ErrorReason.INVOICE_NOT_PAID),
                invoice=invoice,
            )

        # 12) What actually arrived must cover the price
        if not covers(status.amount_received_msat, required_sats):
            return VerificationOutcome(
                result=VerificationResult.invalid(ErrorReason.INSUFFICIENT_FUNDS),
                invoice=invoice,
            )

        return VerificationOutcome(
            result=VerificationResult.valid(payer=status.payer_identifier),
            invoice=invoice,
        )

    def _check_offline(
        self, requirements: PaymentRequirements, header: XPaymentHeader
    ) -> tuple[DecodedInvoice, int]:
        """Steps 1-9: everything decidable without I/O."""
        # 1) Header must carry a supported protocol version
        if header.x402_version not in self.supported_versions:
            raise _Rejected(ErrorReason.UNSUPPORTED_VERSION)

        # 2) Only the exact scheme is handled here
        if header.scheme != EXACT_SCHEME:
            raise _Rejected(ErrorReason.INVALID_SCHEME)

        # 3) Header and requirements must agree on the network
        if header.network != requirements.network:
            raise _Rejected(ErrorReason.INVALID_NETWORK)

        # 4) Requirements must be well-formed
        try:
            required_sats = validate_requirements(requirements)
        except InvalidPaymentRequirements as e:
            logger.debug("Invalid payment requirements: %s", e)
            raise _Rejected(ErrorReason.INVALID_PAYMENT_REQUIREMENTS)

        # 5) The invoice must decode and authenticate
        if not header.payload.bolt11:
            raise _Rejected(ErrorReason.INVALID_EXACT_LIGHTNING_PAYLOAD)
        try:
            invoice = decode_invoice(header.payload.bolt11)
        except InvalidInvoiceFormat as e:
            logger.debug("Invalid BOLT11 invoice: %s", e)
            raise _Rejected(ErrorReason.INVALID_EXACT_LIGHTNING_PAYLOAD)

        # 6) Invoice network must be the one the requirements name
        if (
            requirements.network not in self.supported_networks
            or invoice.network != requirements.network
        ):
            raise _Rejected(ErrorReason.INVALID_NETWORK, invoice)

        # 7) Invoice must pay the requested destination
        if not payee_matches(
            invoice.payee_identifier, requirements.pay_to, self.lnurl_payees
        ):
            raise _Rejected(ErrorReason.INVALID_PAYMENT_REQUIREMENTS, invoice)

        # 8) A fixed-amount invoice must ask for at least the price
        if invoice.amount_msat is not None and not covers(
            invoice.amount_msat, required_sats
        ):
            raise _Rejected(ErrorReason.INSUFFICIENT_FUNDS, invoice)

        # 9) Invoice must still be live, within the optional tighter bound too
        if invoice_expired(invoice, requirements, self.clock()):
            raise _Rejected(ErrorReason.INVOICE_EXPIRED, invoice)

        return invoice, required_sats

    def backend_timeout_for(self, requirements: PaymentRequirements) -> float:
        return min(self.backend_timeout_seconds, float(requirements.max_timeout_seconds))

    async def _check_status(
        self,
        invoice: DecodedInvoice,
        invoice_id: Optional[str],
        requirements: PaymentRequirements,
    ) -> BackendPaymentStatus:
        """Step 10: query the backend, bounded by the request timeout."""

        async def _query() -> BackendPaymentStatus:
            async with self.lightning_backend_factory() as backend:
                return await backend.check_status(invoice.payment_hash, invoice_id)

        timeout = self.backend_timeout_for(requirements)
        try:
            return await asyncio.wait_for(_query(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Lightning backend timed out after %.1fs for %s",
                timeout,
                invoice.payment_hash,
            )
        except BackendUnavailable as e:
            logger.warning(
                "Lightning backend unavailable for %s: %s", invoice.payment_hash, e
            )
        raise _Rejected(ErrorReason.BACKEND_UNAVAILABLE, invoice)
