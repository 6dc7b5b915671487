"""
Helpers for constructing and signing the x402 ``exact`` payment payload.
"""

from __future__ import annotations

import base64
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from eth_utils import to_hex
from starknet_py.cairo.felt import encode_shortstring

from .chain import ChainClient
from .errors import SignerUnavailable
from .models import PaymentAuthorization, PaymentPayload
from .networks import MAX_NONCE_BYTES, NETWORK_PROFILES, Network

__all__ = [
    "DEFAULT_DEADLINE_SECONDS",
    "PAYMENT_DOMAIN_NAME",
    "PAYMENT_DOMAIN_VERSION",
    "SignedPayment",
    "build_payment_typed_data",
    "decode_payment_header",
    "encode_payment_header",
    "generate_nonce_hex",
    "sign_payment",
]

PAYMENT_DOMAIN_NAME = "x402 Payment"
PAYMENT_DOMAIN_VERSION = "1"
DEFAULT_DEADLINE_SECONDS = 300

_PAYMENT_FIELDS = ("from", "to", "token", "amount", "nonce", "deadline")


def generate_nonce_hex(byte_length: int = MAX_NONCE_BYTES) -> str:
    """Return a random ``0x``-prefixed nonce that always fits in a felt."""
    if not 1 <= byte_length <= MAX_NONCE_BYTES:
        raise ValueError(
            f"Nonce length must be between 1 and {MAX_NONCE_BYTES} bytes, got {byte_length}"
        )
    return to_hex(secrets.token_bytes(byte_length))


def build_payment_typed_data(
    *,
    from_address: str,
    to: str,
    token: str,
    amount: str,
    nonce: str,
    deadline: int,
    network: Network,
) -> Dict[str, Any]:
    """
    Build the ``StarkNetDomain``-separated ``Payment`` message to be signed.
    """
    return {
        "types": {
            "StarkNetDomain": [
                {"name": "name", "type": "felt"},
                {"name": "version", "type": "felt"},
                {"name": "chainId", "type": "felt"},
            ],
            "Payment": [{"name": name, "type": "felt"} for name in _PAYMENT_FIELDS],
        },
        "primaryType": "Payment",
        "domain": {
            "name": hex(encode_shortstring(PAYMENT_DOMAIN_NAME)),
            "version": hex(encode_shortstring(PAYMENT_DOMAIN_VERSION)),
            "chainId": NETWORK_PROFILES[network].chain_id,
        },
        "message": {
            "from": from_address,
            "to": to,
            "token": token,
            "amount": amount,
            "nonce": nonce,
            "deadline": deadline,
        },
    }


def encode_payment_header(payment: PaymentPayload) -> str:
    body = json.dumps(payment.to_dict(), separators=(",", ":"))
    return base64.b64encode(body.encode("utf-8")).decode("ascii")


def decode_payment_header(header: str) -> PaymentPayload:
    return PaymentPayload.from_dict(json.loads(base64.b64decode(header)))


@dataclass(frozen=True)
class SignedPayment:
    payment: PaymentPayload
    payment_header: str
    typed_data: Dict[str, Any]


def sign_payment(
    chain: ChainClient,
    *,
    network: Network,
    to: str,
    token: str,
    amount: str,
    nonce: Optional[str] = None,
    deadline: Optional[int] = None,
    deadline_seconds: int = DEFAULT_DEADLINE_SECONDS,
    now: Optional[int] = None,
) -> SignedPayment:
    """
    Sign a payment authorisation and package it as an ``X-PAYMENT`` header.

    The signer keeps no record of used nonces; callers must not reuse a
    ``(from, nonce)`` pair for a different ``to``/``amount``.
    """
    if not chain.address:
        raise SignerUnavailable("Chain client has no account address to sign with")

    nonce = nonce if nonce is not None else generate_nonce_hex()
    if deadline is None:
        now = int(time.time()) if now is None else now
        deadline = now + deadline_seconds

    typed_data = build_payment_typed_data(
        from_address=chain.address,
        to=to,
        token=token,
        amount=amount,
        nonce=nonce,
        deadline=deadline,
        network=network,
    )
    signature = chain.sign_typed_data(typed_data)

    payment = PaymentPayload(
        network=network.value,
        payload=PaymentAuthorization(
            from_address=chain.address,
            to=to,
            token=token,
            amount=amount,
            nonce=nonce,
            deadline=deadline,
            signature=signature,
        ),
    )
    logging.info(
        "Signed %s payment of %s to %s (nonce %s, deadline %s)",
        network.value,
        amount,
        to,
        nonce,
        deadline,
    )
    return SignedPayment(
        payment=payment,
        payment_header=encode_payment_header(payment),
        typed_data=typed_data,
    )
