"""Unit tests for BOLT11 invoice decoding."""

import hashlib
import os

import pytest

from lnx402.crypto.bech32 import bech32_decode, bech32_encode, convert_bits
from lnx402.crypto.bolt11 import decode_invoice
from lnx402.domain.errors import InvalidInvoiceFormat
from lnx402.domain.facilitator.networks import MAINNET, REGTEST, SIGNET, TESTNET
from tests.fixtures import NodeKey, corrupt_checksum, encode_invoice, tagged_field


def _hash_words(data: bytes) -> list[int]:
    return convert_bits(data, 8, 5, pad=True)


class TestDecodeInvoice:
    def test_decodes_signed_invoice(self, node_key: NodeKey) -> None:
        payment_hash = os.urandom(32)
        invoice = encode_invoice(
            node_key,
            amount_msat=1_000_000,
            payment_hash=payment_hash,
            timestamp=1_700_000_000,
            expiry_seconds=600,
            description="coffee",
        )

        decoded = decode_invoice(invoice.bolt11)

        assert decoded.payment_hash == payment_hash.hex()
        assert decoded.payee_identifier == node_key.pubkey_hex
        assert decoded.network == MAINNET
        assert decoded.amount_msat == 1_000_000
        assert decoded.timestamp == 1_700_000_000
        assert decoded.expiry_seconds == 600
        assert decoded.expiry_timestamp == 1_700_000_600
        assert decoded.description == "coffee"
        assert decoded.min_final_cltv_expiry == 18

    def test_verifies_explicit_payee_field(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, include_payee=True)
        assert decode_invoice(invoice.bolt11).payee_identifier == node_key.pubkey_hex

    def test_rejects_payee_field_that_did_not_sign(
        self, node_key: NodeKey, other_node_key: NodeKey
    ) -> None:
        invoice = encode_invoice(node_key, payee_field=other_node_key.pubkey)
        with pytest.raises(InvalidInvoiceFormat, match="signature"):
            decode_invoice(invoice.bolt11)

    def test_rejects_tampered_signed_data(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, include_payee=True)
        hrp, words = bech32_decode(invoice.bolt11)
        words[6] = (words[6] + 1) % 32
        with pytest.raises(InvalidInvoiceFormat, match="signature"):
            decode_invoice(bech32_encode(hrp, words))

    def test_tampering_without_payee_field_changes_recovered_payee(
        self, node_key: NodeKey
    ) -> None:
        invoice = encode_invoice(node_key)
        hrp, words = bech32_decode(invoice.bolt11)
        words[6] = (words[6] + 1) % 32
        try:
            decoded = decode_invoice(bech32_encode(hrp, words))
        except InvalidInvoiceFormat:
            return
        assert decoded.payee_identifier != node_key.pubkey_hex

    @pytest.mark.parametrize("network", [MAINNET, TESTNET, SIGNET, REGTEST])
    def test_network_comes_from_prefix(self, node_key: NodeKey, network: str) -> None:
        invoice = encode_invoice(node_key, network=network)
        assert decode_invoice(invoice.bolt11).network == network

    def test_strips_lightning_uri_prefix_and_accepts_uppercase(
        self, node_key: NodeKey
    ) -> None:
        invoice = encode_invoice(node_key)
        uri = "LIGHTNING:" + invoice.bolt11.upper()
        assert decode_invoice(uri).payment_hash == invoice.payment_hash

    def test_rejects_bad_checksum(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key)
        with pytest.raises(InvalidInvoiceFormat, match="checksum"):
            decode_invoice(corrupt_checksum(invoice.bolt11))

    def test_rejects_unknown_currency_prefix(self) -> None:
        with pytest.raises(InvalidInvoiceFormat, match="prefix"):
            decode_invoice(bech32_encode("lnxy", [0] * 120))

    def test_rejects_non_lightning_hrp(self) -> None:
        with pytest.raises(InvalidInvoiceFormat, match="'ln'"):
            decode_invoice(bech32_encode("bc", [0] * 120))

    def test_rejects_too_short_data(self) -> None:
        with pytest.raises(InvalidInvoiceFormat, match="too short"):
            decode_invoice(bech32_encode("lnbc", [0] * 50))

    def test_rejects_missing_payment_hash(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, omit_payment_hash=True)
        with pytest.raises(InvalidInvoiceFormat, match="no payment hash"):
            decode_invoice(invoice.bolt11)

    def test_rejects_duplicate_payment_hash(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(
            node_key, extra_fields=[tagged_field("p", _hash_words(os.urandom(32)))]
        )
        with pytest.raises(InvalidInvoiceFormat, match="Duplicate"):
            decode_invoice(invoice.bolt11)

    def test_skips_fixed_length_fields_with_wrong_length(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, extra_fields=[tagged_field("p", [1] * 10)])
        assert decode_invoice(invoice.bolt11).payment_hash == invoice.payment_hash

    def test_skips_unknown_fields(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(
            node_key,
            extra_fields=[tagged_field("9", [1, 2]), tagged_field("r", [0] * 20)],
        )
        assert decode_invoice(invoice.bolt11).payee_identifier == node_key.pubkey_hex

    def test_decodes_optional_fields(self, node_key: NodeKey) -> None:
        secret = os.urandom(32)
        description_hash = hashlib.sha256(b"long description").digest()
        invoice = encode_invoice(
            node_key,
            description=None,
            payment_secret=secret,
            extra_fields=[
                tagged_field("h", _hash_words(description_hash)),
                tagged_field("c", [1, 8]),
            ],
        )

        decoded = decode_invoice(invoice.bolt11)

        assert decoded.description is None
        assert decoded.payment_secret == secret.hex()
        assert decoded.description_hash == description_hash.hex()
        assert decoded.min_final_cltv_expiry == 40

    def test_defaults_expiry_to_one_hour(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, expiry_seconds=None)
        assert decode_invoice(invoice.bolt11).expiry_seconds == 3600


class TestInvoiceAmounts:
    @pytest.mark.parametrize(
        "amount,expected_msat",
        [
            ("1", 100_000_000_000),
            ("20m", 2_000_000_000),
            ("2500u", 250_000_000),
            ("10n", 1_000),
            ("10p", 1),
        ],
    )
    def test_multipliers(self, node_key: NodeKey, amount: str, expected_msat: int) -> None:
        invoice = encode_invoice(node_key, amount=amount)
        assert decode_invoice(invoice.bolt11).amount_msat == expected_msat

    def test_amountless_invoice(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, amount_msat=None)
        assert decode_invoice(invoice.bolt11).amount_msat is None

    def test_rejects_sub_millisatoshi_amount(self, node_key: NodeKey) -> None:
        invoice = encode_invoice(node_key, amount="15p")
        with pytest.raises(InvalidInvoiceFormat, match="milli-satoshis"):
            decode_invoice(invoice.bolt11)

    @pytest.mark.parametrize("amount", ["010u", "u", "10x"])
    def test_rejects_malformed_amounts(self, node_key: NodeKey, amount: str) -> None:
        invoice = encode_invoice(node_key, amount=amount)
        with pytest.raises(InvalidInvoiceFormat):
            decode_invoice(invoice.bolt11)
