"""Bech32 codec as used by BOLT11 invoices and LNURL strings.

BOLT11 uses the original bech32 checksum constant and lifts the 90 character
length limit, so this is a small standalone implementation rather than a
segwit-address codec.
"""

from __future__ import annotations

from typing import Iterable, List

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHECKSUM_LENGTH = 6
_CHARSET_INDEX = {c: i for i, c in enumerate(CHARSET)}
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


class Bech32Error(ValueError):
    """Raised when a bech32 string cannot be decoded."""


def _polymod(values: Iterable[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for i, gen in enumerate(_GENERATOR):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> List[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _create_checksum(hrp: str, data: List[int]) -> List[int]:
    polymod = _polymod(_hrp_expand(hrp) + data + [0] * CHECKSUM_LENGTH) ^ 1
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(CHECKSUM_LENGTH)]


def bech32_decode(bech: str) -> tuple[str, List[int]]:
    """Decode a bech32 string into (hrp, 5-bit data words without checksum).

    Raises:
        Bech32Error: On mixed case, bad characters, bad separator or checksum.
    """
    if any(ord(c) < 33 or ord(c) > 126 for c in bech):
        raise Bech32Error("Invalid character in bech32 string")
    if bech.lower() != bech and bech.upper() != bech:
        raise Bech32Error("Mixed case bech32 string")

    bech = bech.lower()
    pos = bech.rfind("1")
    if pos < 1 or pos + CHECKSUM_LENGTH + 1 > len(bech):
        raise Bech32Error("Invalid bech32 separator position")

    hrp = bech[:pos]
    try:
        data = [_CHARSET_INDEX[c] for c in bech[pos + 1 :]]
    except KeyError as e:
        raise Bech32Error(f"Invalid bech32 data character: {e.args[0]!r}") from e

    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise Bech32Error("Invalid bech32 checksum")
    return hrp, data[:-CHECKSUM_LENGTH]


def bech32_encode(hrp: str, data: List[int]) -> str:
    combined = data + _create_checksum(hrp, data)
    return hrp + "1" + "".join(CHARSET[d] for d in combined)


def convert_bits(data: Iterable[int], from_bits: int, to_bits: int, pad: bool) -> List[int]:
    """Regroup a sequence of from_bits-wide integers into to_bits-wide ones.

    With pad=False, leftover bits must be fewer than from_bits and all zero.
    """
    acc = 0
    bits = 0
    ret: List[int] = []
    maxv = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise Bech32Error("Value out of range for bit conversion")
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        raise Bech32Error("Non-zero padding in bit conversion")
    return ret


def words_to_bytes(words: List[int]) -> bytes:
    """Convert 5-bit words to bytes, dropping zero padding bits."""
    return bytes(convert_bits(words, 5, 8, pad=False))


def words_to_int(words: List[int]) -> int:
    value = 0
    for word in words:
        value = (value << 5) | word
    return value
