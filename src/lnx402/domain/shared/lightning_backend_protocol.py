"""Protocol interface for Lightning backend client implementations.

The facilitator never talks to a particular node implementation directly.
LND, Core Lightning, LNbits and custodial APIs all sit behind this contract
and are selected at configuration time.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Type
from types import TracebackType

from ..facilitator.entities import BackendPaymentStatus


class LightningBackendProtocol(Protocol):
    """Read-only view of invoice payment state on a Lightning backend."""

    async def check_status(
        self, payment_hash: str, invoice_id: Optional[str] = None
    ) -> BackendPaymentStatus:
        """Return the current payment state of the invoice.

        Args:
            payment_hash: Hex-encoded payment hash decoded from the invoice
            invoice_id: Optional backend lookup hint. Never a substitute for
                the payment hash; implementations must check correspondence.

        Raises:
            BackendUnavailable: On transport, timeout or backend-side errors.
        """
        ...

    async def __aenter__(self) -> "LightningBackendProtocol":
        ...

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        ...


# Each call site opens its own client: `async with factory() as backend:`
LightningBackendFactory = Callable[[], LightningBackendProtocol]
