"""Shared plumbing for HTTP-based Lightning backend clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional, Type, Union
from types import TracebackType

import httpx

from ...domain.errors import BackendUnavailable
from ...domain.facilitator.entities import BackendPaymentStatus, PaymentState
from ..http.http_client import AsyncHttpClient, HttpRequestError, HttpResponseError


def parse_msat(value: Union[int, str, None]) -> int:
    """Backends report msat as ints, decimal strings or '123msat' strings."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    text = value.strip()
    if text.endswith("msat"):
        text = text[: -len("msat")]
    return int(text)


class HttpLightningBackend(ABC):
    """Base for backends reached over HTTP.

    Subclasses only translate one backend's invoice lookup into a
    BackendPaymentStatus. Transport errors, timeouts, unreadable bodies and
    non-404 error statuses all surface as BackendUnavailable; 404 means the
    backend does not know the invoice.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        credential: str = "",
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(
            base_url,
            timeout=timeout,
            headers=self.auth_headers(credential),
            transport=transport,
        )

    @abstractmethod
    def auth_headers(self, credential: str) -> Dict[str, str]:
        pass

    @abstractmethod
    async def _fetch_status(
        self, payment_hash: str, invoice_id: Optional[str]
    ) -> BackendPaymentStatus:
        pass

    async def check_status(
        self, payment_hash: str, invoice_id: Optional[str] = None
    ) -> BackendPaymentStatus:
        try:
            return await self._fetch_status(payment_hash.lower(), invoice_id)
        except HttpResponseError as e:
            if e.response.status_code == 404:
                return BackendPaymentStatus(state=PaymentState.UNKNOWN)
            raise BackendUnavailable(
                f"{self.name} returned HTTP {e.response.status_code}", cause=e
            ) from e
        except HttpRequestError as e:
            raise BackendUnavailable(f"Could not reach {self.name}: {e}", cause=e) from e
        except (KeyError, TypeError, ValueError) as e:
            raise BackendUnavailable(
                f"Unreadable response from {self.name}: {e}", cause=e
            ) from e

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HttpLightningBackend":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
