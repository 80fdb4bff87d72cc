"""Lightning network identifiers and their BOLT11 currency prefixes."""

from __future__ import annotations

from typing import Optional

MAINNET = "btc-lightning-mainnet"
TESTNET = "btc-lightning-testnet"
SIGNET = "btc-lightning-signet"
REGTEST = "btc-lightning-regtest"

NETWORK_CURRENCY_PREFIXES: dict[str, str] = {
    MAINNET: "bc",
    TESTNET: "tb",
    SIGNET: "tbs",
    REGTEST: "bcrt",
}

CURRENCY_PREFIX_NETWORKS: dict[str, str] = {
    prefix: network for network, prefix in NETWORK_CURRENCY_PREFIXES.items()
}

# Longest first so that "bcrt" wins over "bc" and "tbs" over "tb".
CURRENCY_PREFIXES_BY_LENGTH: tuple[str, ...] = tuple(
    sorted(CURRENCY_PREFIX_NETWORKS, key=len, reverse=True)
)


def network_for_prefix(prefix: str) -> Optional[str]:
    return CURRENCY_PREFIX_NETWORKS.get(prefix)


def is_lightning_network(network: str) -> bool:
    return network in NETWORK_CURRENCY_PREFIXES
