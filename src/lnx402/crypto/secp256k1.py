"""secp256k1 helpers for Lightning node keys.

`cryptography` validates points and verifies ECDSA signatures. Public key
recovery, which BOLT11 relies on when an invoice omits the `n` field, is
done with `coincurve` and the result is then checked with `cryptography`.
"""

from __future__ import annotations

import re

from coincurve import PublicKey
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    encode_dss_signature,
)

# Curve order
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

NODE_PUBKEY_HEX_LENGTH = 66
_NODE_PUBKEY_RE = re.compile(r"^0[23][0-9a-fA-F]{64}$")


class SignatureError(ValueError):
    """Raised when a signature is malformed or does not verify."""


def load_public_key(compressed: bytes) -> ec.EllipticCurvePublicKey:
    """Load a compressed SEC1 key, raising ValueError if it is not on the curve."""
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), compressed)


def is_valid_node_pubkey(value: str) -> bool:
    """True for a 33-byte compressed secp256k1 point written as 66 hex chars."""
    if not _NODE_PUBKEY_RE.match(value):
        return False
    try:
        load_public_key(bytes.fromhex(value))
    except ValueError:
        return False
    return True


def verify_signature(public_key: bytes, digest: bytes, r: int, s: int) -> None:
    """Verify an ECDSA signature over a SHA-256 digest.

    Raises:
        SignatureError: If the key is invalid or the signature does not verify.
    """
    try:
        key = load_public_key(public_key)
    except ValueError as e:
        raise SignatureError(f"Invalid public key: {e}") from e
    try:
        key.verify(
            encode_dss_signature(r, s),
            digest,
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
    except InvalidSignature as e:
        raise SignatureError("Signature does not match public key") from e


def recover_public_key(digest: bytes, r: int, s: int, recovery_id: int) -> bytes:
    """Recover the compressed public key that produced (r, s) over digest.

    Raises:
        SignatureError: If no valid key can be recovered.
    """
    if not 0 <= recovery_id <= 3:
        raise SignatureError(f"Invalid recovery id {recovery_id}")
    if not (1 <= r < N and 1 <= s < N):
        raise SignatureError("Signature scalar out of range")

    signature = r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([recovery_id])
    try:
        recovered = PublicKey.from_signature_and_message(signature, digest, hasher=None)
    except ValueError as e:
        raise SignatureError(f"Cannot recover public key: {e}") from e

    compressed = recovered.format(compressed=True)
    verify_signature(compressed, digest, r, s)
    return compressed
