import threading

import pytest

from strk_x402 import x402_request
from strk_x402.core.config import ClientConfig
from strk_x402.core.errors import FlowCancelled
from strk_x402.core.networks import Network
from strk_x402.core.payloads import decode_payment_header

from conftest import (
    PAYEE,
    FakeChainClient,
    FakeResponse,
    FakeSession,
    payment_required,
    requirements_body,
)

CONFIG = ClientConfig(network=Network.SEPOLIA, rpc_url="http://127.0.0.1:5050")


def test_x402_request_pays_and_retries():
    chain = FakeChainClient()
    session = FakeSession([payment_required(requirements_body()), FakeResponse(200, text="ok")])

    result = x402_request(
        "https://api.test/resource",
        config=CONFIG,
        chain=chain,
        session=session,
        method="post",
        headers={"Accept": "application/json"},
        body='{"q":1}',
    )

    assert result.paid and result.response.text == "ok"
    retry = session.requests[1]
    assert retry["method"] == "POST"
    assert retry["data"] == '{"q":1}'
    assert retry["headers"]["Accept"] == "application/json"
    payment = decode_payment_header(retry["headers"]["X-PAYMENT"])
    assert payment.payload.to == PAYEE
    assert payment.payload.amount == "1000"
    assert session.posts == []


def test_x402_request_uses_configured_facilitator():
    config = ClientConfig(
        network=Network.SEPOLIA,
        rpc_url="http://127.0.0.1:5050",
        facilitator_url="https://facilitator.test",
    )
    session = FakeSession(
        [
            payment_required(requirements_body()),
            FakeResponse(200, {"isValid": True}),
            FakeResponse(200, {"success": True, "txHash": "0x77"}),
            FakeResponse(200, text="ok"),
        ]
    )

    result = x402_request(
        "https://api.test/resource", config=config, chain=FakeChainClient(), session=session
    )

    assert [post["url"] for post in session.posts] == [
        "https://facilitator.test/verify",
        "https://facilitator.test/settle",
    ]
    assert result.settlement.tx_hash == "0x77"


def test_x402_request_honours_cancellation():
    cancel = threading.Event()
    cancel.set()
    session = FakeSession([])

    with pytest.raises(FlowCancelled):
        x402_request(
            "https://api.test/resource",
            config=CONFIG,
            chain=FakeChainClient(),
            session=session,
            cancel_event=cancel,
        )
    assert session.call_count == 0
