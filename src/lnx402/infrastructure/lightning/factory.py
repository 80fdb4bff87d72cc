"""Selects the configured Lightning backend implementation."""

from __future__ import annotations

from functools import partial
from typing import Dict, Protocol, Type

from ...domain.shared import LightningBackendFactory
from .base import HttpLightningBackend
from .cln_client import ClnRestClient
from .custodial_client import CustodialApiClient
from .lnbits_client import LnbitsClient
from .lnd_client import LndRestClient

BACKENDS: Dict[str, Type[HttpLightningBackend]] = {
    "lnd": LndRestClient,
    "cln": ClnRestClient,
    "lnbits": LnbitsClient,
    "custodial": CustodialApiClient,
}


class HasLightningSettings(Protocol):
    lightning_backend: str
    lightning_base_url: str
    lightning_credential: str
    backend_timeout_seconds: float


def build_lightning_backend_factory(settings: HasLightningSettings) -> LightningBackendFactory:
    try:
        backend_cls = BACKENDS[settings.lightning_backend]
    except KeyError:
        raise ValueError(f"Unknown Lightning backend {settings.lightning_backend!r}")
    return partial(
        backend_cls,
        settings.lightning_base_url,
        settings.lightning_credential,
        timeout=settings.backend_timeout_seconds,
    )
