"""Core Lightning (clnrest) backend."""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from pydantic import BaseModel

from ...domain.facilitator.entities import BackendPaymentStatus, PaymentState
from .base import HttpLightningBackend, parse_msat

CLN_STATES = {
    "paid": PaymentState.PAID,
    "unpaid": PaymentState.UNPAID,
    "expired": PaymentState.EXPIRED,
}


class ClnInvoice(BaseModel):
    payment_hash: str
    status: str
    amount_received_msat: Union[int, str, None] = None


class ClnListInvoices(BaseModel):
    invoices: List[ClnInvoice] = []


class ClnRestClient(HttpLightningBackend):
    """Looks invoices up with `POST /v1/listinvoices`, authenticated by rune."""

    name = "cln"

    def auth_headers(self, credential: str) -> Dict[str, str]:
        return {"Rune": credential} if credential else {}

    async def _fetch_status(
        self, payment_hash: str, invoice_id: Optional[str]
    ) -> BackendPaymentStatus:
        resp = await self._http.post(
            "/v1/listinvoices", json={"payment_hash": payment_hash}
        )
        listing = ClnListInvoices.model_validate(resp.json())
        matching = [i for i in listing.invoices if i.payment_hash.lower() == payment_hash]
        if not matching:
            return BackendPaymentStatus(state=PaymentState.UNKNOWN)
        invoice = matching[0]
        return BackendPaymentStatus(
            state=CLN_STATES.get(invoice.status, PaymentState.UNKNOWN),
            amount_received_msat=parse_msat(invoice.amount_received_msat),
        )
