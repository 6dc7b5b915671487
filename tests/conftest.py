"""Shared fakes for the x402 client tests."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from strk_x402.core.allowance import split_uint256
from strk_x402.core.chain import TransactionResult
from strk_x402.core.errors import FlowCancelled, SignerUnavailable
from strk_x402.core.models import PaymentSignature

PAYER = "0x" + "0" * 61 + "a11"
TOKEN = "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d"
PAYEE = "0x" + "0" * 61 + "bee"
SPENDER = "0x" + "0" * 61 + "5ed"

_MISSING = object()


class FakeChainClient:
    """In-memory chain: one token allowance, deterministic fake signatures."""

    def __init__(
        self,
        *,
        address: Optional[str] = PAYER,
        allowance: int = 0,
        wait_error: Optional[Exception] = None,
        can_sign: bool = True,
        on_wait: Optional[Callable[[], None]] = None,
    ) -> None:
        self.address = address
        self.allowance = allowance
        self.wait_error = wait_error
        self.can_sign = can_sign
        self.on_wait = on_wait
        self.reads: List[tuple] = []
        self.executed: List[list] = []
        self.waited: List[tuple] = []
        self.signed: List[Dict[str, Any]] = []

    def call_contract(self, address, entrypoint, calldata):
        self.reads.append((address, entrypoint, list(calldata)))
        return list(split_uint256(self.allowance))

    def execute(self, calls):
        self.executed.append(list(calls))
        return TransactionResult(transaction_hash=hex(0xABC000 + len(self.executed)))

    def wait_for_transaction(self, tx_hash, *, timeout_seconds, cancel_event=None):
        self.waited.append((tx_hash, timeout_seconds))
        if self.on_wait is not None:
            self.on_wait()
        if cancel_event is not None and cancel_event.is_set():
            raise FlowCancelled(f"Stopped waiting for transaction {tx_hash}")
        if self.wait_error is not None:
            raise self.wait_error

    def sign_typed_data(self, typed_data):
        if not self.can_sign:
            raise SignerUnavailable("no private key configured")
        self.signed.append(typed_data)
        digest = hashlib.sha256(
            json.dumps(typed_data, sort_keys=True).encode("utf-8")
        ).hexdigest()
        return PaymentSignature(r="0x" + digest[:32], s="0x" + digest[32:])


class FakeResponse:
    def __init__(self, status_code: int = 200, json_body: Any = _MISSING, text: str = "") -> None:
        self.status_code = status_code
        self._json = json_body
        self.text = text or (json.dumps(json_body) if json_body is not _MISSING else "")
        self.ok = status_code < 400
        self.headers: Dict[str, str] = {}

    def json(self):
        if self._json is _MISSING:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeSession:
    """Replays queued responses and records every call."""

    def __init__(self, responses=()) -> None:
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []
        self.posts: List[Dict[str, Any]] = []

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method, url, headers=None, data=None, timeout=None):
        self.requests.append(
            {"method": method, "url": url, "headers": dict(headers or {}), "data": data}
        )
        return self._next()

    def post(self, url, json=None, timeout=None):
        self.posts.append({"url": url, "json": json})
        return self._next()

    @property
    def call_count(self) -> int:
        return len(self.requests) + len(self.posts)


def requirements_body(**overrides) -> Dict[str, Any]:
    body = {
        "scheme": "exact",
        "network": "starknet-sepolia",
        "maxAmountRequired": "1000",
        "asset": TOKEN,
        "payTo": PAYEE,
    }
    body.update(overrides)
    return body


def payment_required(*accepts, error=None) -> FakeResponse:
    body: Dict[str, Any] = {"x402Version": 1, "accepts": list(accepts)}
    if error is not None:
        body["error"] = error
    return FakeResponse(402, body)


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()
