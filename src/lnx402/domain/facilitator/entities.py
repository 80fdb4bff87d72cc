"""Facilitator domain entities for the x402 `exact` scheme over Lightning."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

EXACT_SCHEME = "exact"
BTC_ASSET = "BTC"
SATS_UNIT = "sats"


class WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ErrorReason(str, Enum):
    """The invalidReason / errorReason taxonomy."""

    INVALID_SCHEME = "invalid_scheme"
    INVALID_NETWORK = "invalid_network"
    INVALID_PAYMENT_REQUIREMENTS = "invalid_payment_requirements"
    INVALID_EXACT_LIGHTNING_PAYLOAD = "invalid_exact_lightning_payload"
    INVOICE_EXPIRED = "invoice_expired"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVOICE_NOT_PAID = "invoice_not_paid"
    INVOICE_ALREADY_USED = "invoice_already_used"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    UNSUPPORTED_VERSION = "unsupported_version"

    @property
    def is_transient(self) -> bool:
        """Transient failures may be retried; everything else is a verdict."""
        return self is ErrorReason.BACKEND_UNAVAILABLE


class RequirementsExtra(WireModel):
    """Recognized keys of PaymentRequirements.extra. Unknown keys are ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    unit: Optional[str] = None
    expiry_seconds: Optional[int] = None


class PaymentRequirements(WireModel):
    """What the resource server demands in exchange for the resource."""

    scheme: str
    network: str
    max_amount_required: str = Field(..., description="Sats as a base-10 digit string")
    asset: str
    pay_to: str = Field(..., description="Node public key or LNURL-pay string")
    resource: str
    description: str
    mime_type: str
    output_schema: Optional[dict[str, Any]] = None
    max_timeout_seconds: int
    extra: RequirementsExtra = Field(default_factory=RequirementsExtra)


class ExactLightningPayload(WireModel):
    bolt11: Optional[str] = None
    invoice_id: Optional[str] = None


class XPaymentHeader(WireModel):
    """Decoded contents of the X-PAYMENT header."""

    x402_version: int
    scheme: str
    network: str
    payload: ExactLightningPayload


class DecodedInvoice(BaseModel):
    """Structured view of a BOLT11 invoice. Identified by its payment hash."""

    model_config = ConfigDict(frozen=True)

    payment_hash: str = Field(..., description="Hex-encoded 32-byte payment hash")
    payee_identifier: str = Field(..., description="Hex-encoded compressed node key")
    network: str
    amount_msat: Optional[int] = Field(None, ge=1)
    timestamp: int
    expiry_seconds: int
    description: Optional[str] = None
    description_hash: Optional[str] = None
    payment_secret: Optional[str] = None
    min_final_cltv_expiry: int = 18

    @property
    def expiry_timestamp(self) -> int:
        return self.timestamp + self.expiry_seconds


class PaymentState(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class BackendPaymentStatus(BaseModel):
    """Payment state as reported by the Lightning backend."""

    state: PaymentState
    amount_received_msat: int = Field(0, ge=0)
    payer_identifier: Optional[str] = None


class VerificationResult(WireModel):
    is_valid: bool
    invalid_reason: Optional[ErrorReason] = None
    payer: Optional[str] = None

    @classmethod
    def valid(cls, payer: Optional[str] = None) -> "VerificationResult":
        return cls(is_valid=True, payer=payer)

    @classmethod
    def invalid(cls, reason: ErrorReason) -> "VerificationResult":
        return cls(is_valid=False, invalid_reason=reason)

    @property
    def is_transient(self) -> bool:
        return self.invalid_reason is not None and self.invalid_reason.is_transient


class VerificationOutcome(BaseModel):
    """Verification verdict plus the invoice it was reached on."""

    model_config = ConfigDict(frozen=True)

    result: VerificationResult
    invoice: Optional[DecodedInvoice] = None


class ConsumeResult(str, Enum):
    CONSUMED = "consumed"
    ALREADY_CONSUMED = "already_consumed"


class SettlementRecord(WireModel):
    """Irreversible proof that (payment_hash, resource) has been consumed."""

    payment_hash: str
    resource: str
    consumed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    transaction: str
    network: str
    payer: Optional[str] = None
    invoice_expiry_timestamp: Optional[int] = None

    @field_serializer("consumed_at")
    def serialize_consumed_at(self, value: datetime) -> str:
        return value.isoformat()


class SettlementResponse(WireModel):
    success: bool
    error_reason: Optional[ErrorReason] = None
    transaction: str = ""
    network: str
    payer: Optional[str] = None

    @property
    def is_transient(self) -> bool:
        return self.error_reason is not None and self.error_reason.is_transient
