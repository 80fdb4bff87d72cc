from __future__ import annotations

import json
import os
from typing import Optional

from pydantic import BaseModel, field_validator

from ..crypto.secp256k1 import is_valid_node_pubkey
from ..domain.facilitator.networks import NETWORK_CURRENCY_PREFIXES, is_lightning_network

STORAGE_BACKENDS = ("memory", "redis")
LIGHTNING_BACKENDS = ("lnd", "cln", "lnbits", "custodial")


class Settings(BaseModel):
    """Typed facilitator settings built from environment variables."""

    api_host: str = "0.0.0.0"
    api_port: int = 8402
    api_debug: bool = False
    api_workers: int = 1
    api_cors_origins: list[str] = ["*"]

    app_name: str = "lnx402"
    app_version: str = "0.1.0"

    # Replay store
    storage_backend: str = "memory"
    database_url: str = "redis://localhost:6379/0"
    settlement_retention_grace_seconds: Optional[int] = None

    # Lightning backend
    lightning_backend: str = "lnd"
    lightning_base_url: str = "https://localhost:8080"
    lightning_credential: str = ""
    backend_timeout_seconds: float = 10.0

    # Protocol
    supported_x402_versions: list[int] = [1]
    supported_networks: list[str] = list(NETWORK_CURRENCY_PREFIXES)
    lnurl_payees: dict[str, str] = {}

    # Verdict cache
    verdict_cache_ttl_seconds: float = 30.0
    verdict_cache_max_entries: int = 10_000

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        if v not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {STORAGE_BACKENDS}")
        return v

    @field_validator("lightning_backend")
    @classmethod
    def validate_lightning_backend(cls, v: str) -> str:
        if v not in LIGHTNING_BACKENDS:
            raise ValueError(f"lightning_backend must be one of {LIGHTNING_BACKENDS}")
        return v

    @field_validator("supported_networks")
    @classmethod
    def validate_supported_networks(cls, v: list[str]) -> list[str]:
        unknown = [n for n in v if not is_lightning_network(n)]
        if unknown:
            raise ValueError(f"Unknown Lightning networks: {unknown}")
        return v

    @field_validator("lnurl_payees")
    @classmethod
    def validate_lnurl_payees(cls, v: dict[str, str]) -> dict[str, str]:
        for lnurl, pubkey in v.items():
            if not is_valid_node_pubkey(pubkey):
                raise ValueError(f"Payee for {lnurl!r} is not a valid node public key")
        return v


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() == "true"


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.environ.get(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def get_settings() -> Settings:
    """Return typed settings instance sourced from FACILITATOR_* env vars."""
    defaults = Settings()
    grace = os.environ.get("FACILITATOR_SETTLEMENT_RETENTION_GRACE_SECONDS")
    lnurl_payees = os.environ.get("FACILITATOR_LNURL_PAYEES")

    return Settings(
        api_host=os.environ.get("FACILITATOR_API_HOST", defaults.api_host),
        api_port=int(os.environ.get("FACILITATOR_API_PORT", defaults.api_port)),
        api_debug=_env_bool("FACILITATOR_API_DEBUG", defaults.api_debug),
        api_workers=int(os.environ.get("FACILITATOR_API_WORKERS", defaults.api_workers)),
        api_cors_origins=_env_list("FACILITATOR_API_CORS_ORIGINS", defaults.api_cors_origins),
        app_name=os.environ.get("FACILITATOR_APP_NAME", defaults.app_name),
        app_version=os.environ.get("FACILITATOR_APP_VERSION", defaults.app_version),
        storage_backend=os.environ.get(
            "FACILITATOR_STORAGE_BACKEND", defaults.storage_backend
        ),
        database_url=os.environ.get("FACILITATOR_DATABASE_URL", defaults.database_url),
        settlement_retention_grace_seconds=int(grace) if grace else None,
        lightning_backend=os.environ.get(
            "FACILITATOR_LIGHTNING_BACKEND", defaults.lightning_backend
        ),
        lightning_base_url=os.environ.get(
            "FACILITATOR_LIGHTNING_BASE_URL", defaults.lightning_base_url
        ),
        lightning_credential=os.environ.get(
            "FACILITATOR_LIGHTNING_CREDENTIAL", defaults.lightning_credential
        ),
        backend_timeout_seconds=float(
            os.environ.get(
                "FACILITATOR_BACKEND_TIMEOUT_SECONDS", defaults.backend_timeout_seconds
            )
        ),
        supported_x402_versions=[
            int(v)
            for v in _env_list(
                "FACILITATOR_SUPPORTED_X402_VERSIONS",
                [str(v) for v in defaults.supported_x402_versions],
            )
        ],
        supported_networks=_env_list(
            "FACILITATOR_SUPPORTED_NETWORKS", defaults.supported_networks
        ),
        lnurl_payees=json.loads(lnurl_payees) if lnurl_payees else {},
        verdict_cache_ttl_seconds=float(
            os.environ.get(
                "FACILITATOR_VERDICT_CACHE_TTL_SECONDS", defaults.verdict_cache_ttl_seconds
            )
        ),
        verdict_cache_max_entries=int(
            os.environ.get(
                "FACILITATOR_VERDICT_CACHE_MAX_ENTRIES", defaults.verdict_cache_max_entries
            )
        ),
    )
