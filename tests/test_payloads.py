import base64
import json

import pytest

from strk_x402.core.errors import SignerUnavailable
from strk_x402.core.networks import FIELD_PRIME, MAX_NONCE_BYTES, Network
from strk_x402.core.payloads import (
    build_payment_typed_data,
    decode_payment_header,
    encode_payment_header,
    generate_nonce_hex,
    sign_payment,
)

from conftest import PAYEE, PAYER, TOKEN, FakeChainClient


def _typed(**overrides):
    args = dict(
        from_address=PAYER,
        to=PAYEE,
        token=TOKEN,
        amount="1000",
        nonce="0x1234",
        deadline=1_700_000_300,
        network=Network.SEPOLIA,
    )
    args.update(overrides)
    return build_payment_typed_data(**args)


class TestTypedData:
    def test_domain_is_bound_to_network(self):
        sepolia = _typed()
        mainnet = _typed(network=Network.MAINNET)

        assert sepolia["domain"]["chainId"] == "0x534e5f5345504f4c4941"
        assert mainnet["domain"]["chainId"] == "0x534e5f4d41494e"
        assert sepolia["domain"]["name"] == "0x" + b"x402 Payment".hex()
        assert sepolia["domain"]["version"] == "0x31"

    def test_payment_fields_are_ordered_felts(self):
        typed = _typed()

        fields = typed["types"]["Payment"]
        assert [f["name"] for f in fields] == ["from", "to", "token", "amount", "nonce", "deadline"]
        assert {f["type"] for f in fields} == {"felt"}
        assert typed["primaryType"] == "Payment"
        assert typed["message"]["amount"] == "1000"

    def test_builder_is_deterministic(self):
        assert _typed() == _typed()


class TestNonce:
    def test_nonce_is_prefixed_and_below_field_prime(self):
        for _ in range(50):
            nonce = generate_nonce_hex()
            assert nonce.startswith("0x")
            value = int(nonce, 16)
            assert value < 2 ** (8 * MAX_NONCE_BYTES)
            assert value < FIELD_PRIME

    def test_short_nonce_respects_length(self):
        nonce = generate_nonce_hex(4)
        assert len(nonce) == 2 + 8
        assert int(nonce, 16) < 2**32

    @pytest.mark.parametrize("length", [0, 32])
    def test_rejects_lengths_that_could_leave_the_field(self, length):
        with pytest.raises(ValueError):
            generate_nonce_hex(length)


class TestSignPayment:
    def test_two_signatures_differ_only_by_nonce(self, chain):
        first = sign_payment(
            chain, network=Network.SEPOLIA, to=PAYEE, token=TOKEN, amount="1000", deadline=42
        )
        second = sign_payment(
            chain, network=Network.SEPOLIA, to=PAYEE, token=TOKEN, amount="1000", deadline=42
        )

        a, b = first.payment.payload, second.payment.payload
        assert a.nonce != b.nonce
        assert a.signature != b.signature
        assert (a.amount, a.to, a.token, a.deadline) == (b.amount, b.to, b.token, b.deadline)

    def test_default_deadline_is_five_minutes_out(self, chain):
        signed = sign_payment(
            chain,
            network=Network.SEPOLIA,
            to=PAYEE,
            token=TOKEN,
            amount="5",
            now=1_000,
        )
        assert signed.payment.payload.deadline == 1_300

    def test_envelope_shape(self, chain):
        signed = sign_payment(
            chain,
            network=Network.SEPOLIA,
            to=PAYEE,
            token=TOKEN,
            amount="1000",
            nonce="0x01",
            deadline=99,
        )

        envelope = json.loads(base64.b64decode(signed.payment_header))
        assert envelope["x402Version"] == 1
        assert envelope["scheme"] == "exact"
        assert envelope["network"] == "starknet-sepolia"
        assert envelope["payload"]["from"] == PAYER
        assert envelope["payload"]["nonce"] == "0x01"
        assert set(envelope["payload"]["signature"]) == {"r", "s"}
        assert chain.signed == [signed.typed_data]

    def test_header_round_trip_is_byte_identical(self, chain):
        signed = sign_payment(
            chain, network=Network.MAINNET, to=PAYEE, token=TOKEN, amount="7", deadline=1
        )

        decoded = decode_payment_header(signed.payment_header)

        assert decoded == signed.payment
        assert encode_payment_header(decoded) == signed.payment_header

    def test_missing_signer_is_reported(self):
        with pytest.raises(SignerUnavailable):
            sign_payment(
                FakeChainClient(can_sign=False),
                network=Network.SEPOLIA,
                to=PAYEE,
                token=TOKEN,
                amount="1",
            )

    def test_missing_account_address_is_reported(self):
        with pytest.raises(SignerUnavailable):
            sign_payment(
                FakeChainClient(address=None),
                network=Network.SEPOLIA,
                to=PAYEE,
                token=TOKEN,
                amount="1",
            )
