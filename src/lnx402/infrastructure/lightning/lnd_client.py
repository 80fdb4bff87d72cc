"""LND REST backend."""

from __future__ import annotations

from typing import Dict, Optional, Union

from pydantic import BaseModel

from ...domain.facilitator.entities import BackendPaymentStatus, PaymentState
from .base import HttpLightningBackend, parse_msat

LND_STATES = {
    "SETTLED": PaymentState.PAID,
    "OPEN": PaymentState.UNPAID,
    # Held HTLCs are not final until the invoice settles
    "ACCEPTED": PaymentState.UNPAID,
    "CANCELED": PaymentState.EXPIRED,
}


class LndInvoice(BaseModel):
    state: str = "OPEN"
    amt_paid_msat: Union[int, str, None] = None


class LndRestClient(HttpLightningBackend):
    """Looks invoices up with `GET /v1/invoice/{r_hash_str}`."""

    name = "lnd"

    def auth_headers(self, credential: str) -> Dict[str, str]:
        return {"Grpc-Metadata-macaroon": credential} if credential else {}

    async def _fetch_status(
        self, payment_hash: str, invoice_id: Optional[str]
    ) -> BackendPaymentStatus:
        resp = await self._http.get(f"/v1/invoice/{payment_hash}")
        invoice = LndInvoice.model_validate(resp.json())
        return BackendPaymentStatus(
            state=LND_STATES.get(invoice.state, PaymentState.UNKNOWN),
            amount_received_msat=parse_msat(invoice.amt_paid_msat),
        )
