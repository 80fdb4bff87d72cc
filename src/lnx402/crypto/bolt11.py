"""BOLT11 invoice decoding.

Invoice layout (after bech32 decoding):
    hrp   = "ln" + currency prefix + optional amount + optional multiplier
    data  = 35-bit timestamp | tagged fields | 520-bit signature

The signature covers sha256(hrp bytes || data words regrouped into bytes).
"""

from __future__ import annotations

import hashlib
import re
from decimal import Decimal
from typing import List, Optional

from ..domain.errors import InvalidInvoiceFormat
from ..domain.facilitator.entities import DecodedInvoice
from ..domain.facilitator.networks import CURRENCY_PREFIXES_BY_LENGTH, network_for_prefix
from .bech32 import Bech32Error, bech32_decode, convert_bits, words_to_bytes, words_to_int
from .secp256k1 import SignatureError, recover_public_key, verify_signature

URI_PREFIX = "lightning:"
DEFAULT_EXPIRY_SECONDS = 3600
DEFAULT_MIN_FINAL_CLTV_EXPIRY = 18

TIMESTAMP_WORDS = 7
SIGNATURE_WORDS = 104

# Milli-satoshis per unit of amount for each multiplier, "" meaning whole BTC.
MSAT_PER_UNIT = {
    "": Decimal(100_000_000_000),
    "m": Decimal(100_000_000),
    "u": Decimal(100_000),
    "n": Decimal(100),
    "p": Decimal("0.1"),
}

TAG_PAYMENT_HASH = 1  # p
TAG_EXPIRY = 6  # x
TAG_DESCRIPTION = 13  # d
TAG_PAYMENT_SECRET = 16  # s
TAG_PAYEE = 19  # n
TAG_DESCRIPTION_HASH = 23  # h
TAG_MIN_FINAL_CLTV = 24  # c

# Fields whose data is only meaningful at one exact length; others are skipped.
_FIXED_LENGTHS = {
    TAG_PAYMENT_HASH: 52,
    TAG_PAYMENT_SECRET: 52,
    TAG_DESCRIPTION_HASH: 52,
    TAG_PAYEE: 53,
}

_AMOUNT_RE = re.compile(r"^(?P<digits>[1-9][0-9]*)?(?P<multiplier>[munp])?$")


def _parse_hrp(hrp: str) -> tuple[str, Optional[int]]:
    """Return (network, amount_msat) from the human-readable part."""
    if not hrp.startswith("ln"):
        raise InvalidInvoiceFormat("Invoice prefix must start with 'ln'")
    rest = hrp[2:]
    for prefix in CURRENCY_PREFIXES_BY_LENGTH:
        if not rest.startswith(prefix):
            continue
        match = _AMOUNT_RE.match(rest[len(prefix) :])
        if match is None:
            continue
        network = network_for_prefix(prefix)
        assert network is not None
        return network, _parse_amount(match.group("digits"), match.group("multiplier"))
    raise InvalidInvoiceFormat(f"Unrecognized invoice prefix {hrp!r}")


def _parse_amount(digits: Optional[str], multiplier: Optional[str]) -> Optional[int]:
    if digits is None:
        if multiplier is not None:
            raise InvalidInvoiceFormat("Amount multiplier without amount")
        return None
    amount_msat = Decimal(digits) * MSAT_PER_UNIT[multiplier or ""]
    if amount_msat != amount_msat.to_integral_value():
        raise InvalidInvoiceFormat("Amount is not a whole number of milli-satoshis")
    return int(amount_msat)


def _decode_text(words: List[int], field: str) -> str:
    try:
        return words_to_bytes(words).decode("utf-8")
    except (Bech32Error, UnicodeDecodeError) as e:
        raise InvalidInvoiceFormat(f"Invalid {field} field: {e}") from e


def decode_invoice(bolt11: str) -> DecodedInvoice:
    """Decode and authenticate a BOLT11 invoice. Pure function.

    Raises:
        InvalidInvoiceFormat: On any checksum, prefix, field or signature error.
    """
    invoice = bolt11.strip()
    if invoice.lower().startswith(URI_PREFIX):
        invoice = invoice[len(URI_PREFIX) :]

    try:
        hrp, data = bech32_decode(invoice)
    except Bech32Error as e:
        raise InvalidInvoiceFormat(str(e)) from e

    network, amount_msat = _parse_hrp(hrp)

    if len(data) < TIMESTAMP_WORDS + SIGNATURE_WORDS:
        raise InvalidInvoiceFormat("Invoice data too short")

    signed_words = data[:-SIGNATURE_WORDS]
    signature = bytes(convert_bits(data[-SIGNATURE_WORDS:], 5, 8, pad=False))
    timestamp = words_to_int(data[:TIMESTAMP_WORDS])

    payment_hash: Optional[bytes] = None
    payee: Optional[bytes] = None
    description: Optional[str] = None
    description_hash: Optional[bytes] = None
    payment_secret: Optional[bytes] = None
    expiry = DEFAULT_EXPIRY_SECONDS
    min_final_cltv = DEFAULT_MIN_FINAL_CLTV_EXPIRY

    tagged = signed_words[TIMESTAMP_WORDS:]
    i = 0
    while i < len(tagged):
        if i + 3 > len(tagged):
            raise InvalidInvoiceFormat("Truncated tagged field header")
        tag = tagged[i]
        length = tagged[i + 1] * 32 + tagged[i + 2]
        i += 3
        if i + length > len(tagged):
            raise InvalidInvoiceFormat("Tagged field overruns invoice data")
        field = tagged[i : i + length]
        i += length

        if tag in _FIXED_LENGTHS and length != _FIXED_LENGTHS[tag]:
            continue
        try:
            if tag == TAG_PAYMENT_HASH:
                if payment_hash is not None:
                    raise InvalidInvoiceFormat("Duplicate payment hash field")
                payment_hash = words_to_bytes(field)
            elif tag == TAG_PAYEE:
                payee = words_to_bytes(field)
            elif tag == TAG_PAYMENT_SECRET:
                payment_secret = words_to_bytes(field)
            elif tag == TAG_DESCRIPTION_HASH:
                description_hash = words_to_bytes(field)
            elif tag == TAG_DESCRIPTION:
                description = _decode_text(field, "description")
            elif tag == TAG_EXPIRY:
                expiry = words_to_int(field)
            elif tag == TAG_MIN_FINAL_CLTV:
                min_final_cltv = words_to_int(field)
        except Bech32Error as e:
            raise InvalidInvoiceFormat(f"Invalid tagged field {tag}: {e}") from e

    if payment_hash is None:
        raise InvalidInvoiceFormat("Invoice has no payment hash")

    digest = hashlib.sha256(
        hrp.encode("ascii") + bytes(convert_bits(signed_words, 5, 8, pad=True))
    ).digest()
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    try:
        if payee is not None:
            verify_signature(payee, digest, r, s)
        else:
            payee = recover_public_key(digest, r, s, signature[64])
    except SignatureError as e:
        raise InvalidInvoiceFormat(f"Invalid invoice signature: {e}") from e

    return DecodedInvoice(
        payment_hash=payment_hash.hex(),
        payee_identifier=payee.hex(),
        network=network,
        amount_msat=amount_msat,
        timestamp=timestamp,
        expiry_seconds=expiry,
        description=description,
        description_hash=description_hash.hex() if description_hash else None,
        payment_secret=payment_secret.hex() if payment_secret else None,
        min_final_cltv_expiry=min_final_cltv,
    )
