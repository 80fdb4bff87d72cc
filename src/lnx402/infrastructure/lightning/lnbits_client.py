"""LNbits wallet API backend."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel

from ...domain.facilitator.entities import BackendPaymentStatus, PaymentState
from .base import HttpLightningBackend


class LnbitsPaymentDetails(BaseModel):
    amount: int = 0
    status: Optional[str] = None


class LnbitsPayment(BaseModel):
    paid: bool = False
    details: Optional[LnbitsPaymentDetails] = None


class LnbitsClient(HttpLightningBackend):
    """Looks invoices up with `GET /api/v1/payments/{payment_hash}`."""

    name = "lnbits"

    def auth_headers(self, credential: str) -> Dict[str, str]:
        return {"X-Api-Key": credential} if credential else {}

    async def _fetch_status(
        self, payment_hash: str, invoice_id: Optional[str]
    ) -> BackendPaymentStatus:
        resp = await self._http.get(f"/api/v1/payments/{payment_hash}")
        payment = LnbitsPayment.model_validate(resp.json())
        details = payment.details or LnbitsPaymentDetails()
        if payment.paid:
            state = PaymentState.PAID
        elif details.status == "failed":
            state = PaymentState.EXPIRED
        else:
            state = PaymentState.UNPAID
        # LNbits signs amounts by direction; incoming invoices are positive
        return BackendPaymentStatus(
            state=state,
            amount_received_msat=abs(details.amount) if payment.paid else 0,
        )
