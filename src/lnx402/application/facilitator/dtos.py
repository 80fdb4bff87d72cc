"""Data Transfer Objects for the facilitator HTTP surface."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from ...domain.facilitator.entities import PaymentRequirements, XPaymentHeader
from .use_cases.verification import PaymentHeaderInput


class CamelDTO(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FacilitatorRequestDTO(CamelDTO):
    """Body of /verify and /settle.

    The payment arrives either as the raw base64 X-PAYMENT header value or
    as its already-decoded JSON object.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "x402Version": 1,
                "paymentHeader": "eyJ4NDAyVmVyc2lvbiI6MSwic2NoZW1lIjoiZXhhY3QiLC4uLn0=",
                "paymentRequirements": {
                    "scheme": "exact",
                    "network": "btc-lightning-mainnet",
                    "maxAmountRequired": "1000",
                    "asset": "BTC",
                    "payTo": "03" + "ab" * 32,
                    "resource": "https://api.example.com/report",
                    "description": "Premium report",
                    "mimeType": "application/json",
                    "maxTimeoutSeconds": 60,
                    "extra": {"unit": "sats"},
                },
            }
        },
    )

    x402_version: int = 1
    payment_header: Optional[str] = None
    payment_payload: Optional[XPaymentHeader] = None
    payment_requirements: PaymentRequirements

    @model_validator(mode="after")
    def check_single_payment_source(self) -> "FacilitatorRequestDTO":
        if (self.payment_header is None) == (self.payment_payload is None):
            raise ValueError("Exactly one of paymentHeader or paymentPayload is required")
        return self

    def payment(self) -> PaymentHeaderInput:
        if self.payment_payload is not None:
            return self.payment_payload
        assert self.payment_header is not None
        return self.payment_header


class SupportedKindDTO(CamelDTO):
    x402_version: int
    scheme: str
    network: str


class SupportedResponseDTO(CamelDTO):
    kinds: List[SupportedKindDTO]
