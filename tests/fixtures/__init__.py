"""Test fixtures: invoice encoder, request builders and a fake Lightning backend."""

from .fake_lightning_backend import FakeLightningBackend
from .invoice_encoder import (
    NodeKey,
    SignedInvoice,
    corrupt_checksum,
    encode_invoice,
    generate_node_key,
    tagged_field,
)
from .payments import RESOURCE, encode_header, make_header, make_requirements

__all__ = [
    "FakeLightningBackend",
    "NodeKey",
    "RESOURCE",
    "SignedInvoice",
    "corrupt_checksum",
    "encode_header",
    "encode_invoice",
    "generate_node_key",
    "make_header",
    "make_requirements",
    "tagged_field",
]
