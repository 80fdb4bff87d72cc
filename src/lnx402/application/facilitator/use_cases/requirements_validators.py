"""Pure validation functions for PaymentRequirements and payee identity.

These functions contain business logic validation rules that can be tested
in isolation without dependencies on repositories or infrastructure.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional
from urllib.parse import urlparse

from ....crypto.bech32 import Bech32Error, bech32_decode, words_to_bytes
from ....crypto.secp256k1 import is_valid_node_pubkey
from ....domain.errors import InvalidPaymentRequirements
from ....domain.facilitator.entities import (
    BTC_ASSET,
    EXACT_SCHEME,
    SATS_UNIT,
    DecodedInvoice,
    PaymentRequirements,
)
from ...shared.amounts import MAX_SATS

_AMOUNT_RE = re.compile(r"0|[1-9][0-9]*")
LNURL_HRP = "lnurl"
LUD17_SCHEME = "lnurlp"


def decode_lnurl(value: str) -> Optional[str]:
    """Return the URL behind an LNURL-pay string, or None if it is not one.

    Accepts bech32 `lnurl1...` strings (optionally `lightning:`-prefixed) and
    LUD-17 `lnurlp://` URLs.
    """
    candidate = value.strip()
    if candidate.lower().startswith("lightning:"):
        candidate = candidate[len("lightning:") :]

    if candidate.lower().startswith(f"{LUD17_SCHEME}://"):
        url = "https://" + candidate[len(LUD17_SCHEME) + 3 :]
    else:
        try:
            hrp, data = bech32_decode(candidate)
            if hrp != LNURL_HRP:
                return None
            url = words_to_bytes(data).decode("utf-8")
        except (Bech32Error, UnicodeDecodeError):
            return None

    parsed = urlparse(url)
    if not parsed.netloc:
        return None
    if parsed.scheme == "https":
        return url
    # LUD-01 allows clearnet http only for onion services.
    if parsed.scheme == "http" and parsed.hostname and parsed.hostname.endswith(".onion"):
        return url
    return None


def parse_max_amount_required(value: str) -> int:
    """Parse maxAmountRequired into sats.

    Raises:
        InvalidPaymentRequirements: If it is not a canonical base-10 digit string or
            exceeds the total bitcoin supply.
    """
    if not _AMOUNT_RE.fullmatch(value):
        raise InvalidPaymentRequirements(
            "maxAmountRequired",
            f"must be digits without sign or leading zeros, got {value!r}",
        )
    amount = int(value)
    if amount > MAX_SATS:
        raise InvalidPaymentRequirements(
            "maxAmountRequired", f"{amount} sats exceeds the bitcoin supply"
        )
    return amount


def validate_pay_to(pay_to: str) -> None:
    if is_valid_node_pubkey(pay_to):
        return
    if decode_lnurl(pay_to) is not None:
        return
    raise InvalidPaymentRequirements(
        "payTo", "must be a compressed node public key or an LNURL-pay string"
    )


def validate_requirements(requirements: PaymentRequirements) -> int:
    """Check PaymentRequirements for well-formedness. Pure function.

    Returns:
        The required amount in sats.

    Raises:
        InvalidPaymentRequirements: Naming the first offending field.
    """
    if requirements.scheme != EXACT_SCHEME:
        raise InvalidPaymentRequirements(
            "scheme", f"expected {EXACT_SCHEME!r}, got {requirements.scheme!r}"
        )
    if requirements.asset != BTC_ASSET:
        raise InvalidPaymentRequirements(
            "asset", f"expected {BTC_ASSET!r}, got {requirements.asset!r}"
        )
    amount = parse_max_amount_required(requirements.max_amount_required)
    validate_pay_to(requirements.pay_to)
    if requirements.max_timeout_seconds <= 0:
        raise InvalidPaymentRequirements("maxTimeoutSeconds", "must be positive")

    extra = requirements.extra
    if extra.unit is not None and extra.unit != SATS_UNIT:
        raise InvalidPaymentRequirements(
            "extra.unit", f"expected {SATS_UNIT!r}, got {extra.unit!r}"
        )
    if extra.expiry_seconds is not None and extra.expiry_seconds <= 0:
        raise InvalidPaymentRequirements("extra.expirySeconds", "must be positive")
    return amount


def invoice_expired(
    invoice: DecodedInvoice, requirements: PaymentRequirements, now: float
) -> bool:
    """True once the invoice is past its own expiry or the requirements' tighter one."""
    if now >= invoice.expiry_timestamp:
        return True
    expiry_seconds = requirements.extra.expiry_seconds
    return expiry_seconds is not None and now >= invoice.timestamp + expiry_seconds


def payee_matches(
    payee_identifier: str,
    pay_to: str,
    lnurl_payees: Mapping[str, str],
) -> bool:
    """Check that the invoice pays the destination named by payTo.

    Node keys compare case-insensitively. An LNURL-pay destination matches
    only through the payee table resolved when the requirements were issued;
    an LNURL without an entry never matches.
    """
    payee = payee_identifier.lower()
    if is_valid_node_pubkey(pay_to):
        return payee == pay_to.lower()

    expected = lnurl_payees.get(pay_to) or lnurl_payees.get(pay_to.lower())
    if expected is None:
        return False
    return payee == expected.lower()
