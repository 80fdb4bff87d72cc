"""Builders for payment requirements and X-PAYMENT headers."""

from __future__ import annotations

import base64
from typing import Optional

from lnx402.domain.facilitator.entities import (
    ExactLightningPayload,
    PaymentRequirements,
    RequirementsExtra,
    XPaymentHeader,
)
from lnx402.domain.facilitator.networks import MAINNET

RESOURCE = "https://api.example.com/premium/report"


def make_requirements(pay_to: str, **overrides: object) -> PaymentRequirements:
    """Well-formed requirements for 1000 sats on mainnet, with overrides."""
    fields: dict[str, object] = {
        "scheme": "exact",
        "network": MAINNET,
        "max_amount_required": "1000",
        "asset": "BTC",
        "pay_to": pay_to,
        "resource": RESOURCE,
        "description": "Premium report",
        "mime_type": "application/json",
        "max_timeout_seconds": 60,
        "extra": RequirementsExtra(unit="sats"),
    }
    fields.update(overrides)
    return PaymentRequirements(**fields)  # type: ignore[arg-type]


def make_header(
    bolt11: Optional[str],
    *,
    network: str = MAINNET,
    scheme: str = "exact",
    x402_version: int = 1,
    invoice_id: Optional[str] = None,
) -> XPaymentHeader:
    return XPaymentHeader(
        x402_version=x402_version,
        scheme=scheme,
        network=network,
        payload=ExactLightningPayload(bolt11=bolt11, invoice_id=invoice_id),
    )


def encode_header(header: XPaymentHeader) -> str:
    """Base64 X-PAYMENT header value, as a client would send it."""
    raw = header.model_dump_json(by_alias=True, exclude_none=True)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")
