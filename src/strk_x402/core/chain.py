"""
Chain boundary used by the payment flow.

The flow only needs four operations from the chain: a read-only contract
call, transaction submission, a confirmation wait and typed-data signing.
:class:`ChainClient` names them; :class:`StarknetChainClient` provides them
on top of ``starknet-py``. Library responses are normalised here and
nowhere else.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Union

from starknet_py.hash.selector import get_selector_from_name
from starknet_py.net.account.account import Account
from starknet_py.net.client_errors import ClientError
from starknet_py.net.client_models import Call
from starknet_py.net.full_node_client import FullNodeClient
from starknet_py.net.signer.stark_curve_signer import KeyPair
from starknet_py.transaction_errors import (
    TransactionFailedError,
    TransactionNotReceivedError,
    TransactionRevertedError,
)

from .errors import (
    ChainRejected,
    FlowCancelled,
    InsufficientSignerFunds,
    SignerUnavailable,
    TransactionTimeout,
)
from .models import PaymentSignature
from .networks import NETWORK_PROFILES, Network, normalize_address, parse_felt

__all__ = [
    "ChainClient",
    "ContractCall",
    "StarknetChainClient",
    "TransactionResult",
]

_INSUFFICIENT_FUNDS_MARKERS = (
    "insufficient",
    "exceeds balance",
    "balance is smaller",
)


@dataclass(frozen=True)
class ContractCall:
    address: str
    entrypoint: str
    calldata: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class TransactionResult:
    transaction_hash: str

    @classmethod
    def from_response(cls, response: Any) -> "TransactionResult":
        """
        Normalise whatever the chain library returned into a hex tx hash.

        Accepts objects or mappings exposing ``transaction_hash`` or
        ``transactionHash`` as an int or a hex string.
        """
        raw: Any = None
        for key in ("transaction_hash", "transactionHash"):
            if isinstance(response, Mapping):
                raw = response.get(key)
            else:
                raw = getattr(response, key, None)
            if raw is not None:
                break
        if raw is None:
            raise ChainRejected(f"Chain response carried no transaction hash: {response!r}")
        if isinstance(raw, str):
            raw = parse_felt(raw, "transaction_hash")
        return cls(transaction_hash=hex(raw))


class ChainClient(Protocol):
    address: Optional[str]

    def call_contract(
        self, address: str, entrypoint: str, calldata: Sequence[int]
    ) -> List[int]:
        ...

    def execute(self, calls: Sequence[ContractCall]) -> TransactionResult:
        ...

    def wait_for_transaction(
        self,
        tx_hash: str,
        *,
        timeout_seconds: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        ...

    def sign_typed_data(self, typed_data: Mapping[str, Any]) -> PaymentSignature:
        ...


def _translate_client_error(exc: ClientError) -> ChainRejected:
    message = str(getattr(exc, "message", None) or exc)
    lowered = message.lower()
    if any(marker in lowered for marker in _INSUFFICIENT_FUNDS_MARKERS):
        return InsufficientSignerFunds(f"Signer cannot cover the transaction: {message}", cause=message)
    return ChainRejected(f"Chain rejected the request: {message}", cause=message)


class StarknetChainClient:
    """
    :class:`ChainClient` backed by a JSON-RPC node through ``starknet-py``.

    Without a private key the client is read-only: ``execute`` and
    ``sign_typed_data`` raise :class:`SignerUnavailable`.
    """

    def __init__(
        self,
        *,
        network: Network,
        rpc_url: Optional[str] = None,
        account_address: Optional[str] = None,
        private_key: Optional[str] = None,
        poll_interval: float = 2.0,
    ) -> None:
        self.network = network
        self.rpc_url = rpc_url or NETWORK_PROFILES[network].rpc_url
        self.address = (
            normalize_address(account_address, "account_address")
            if account_address
            else None
        )
        self.poll_interval = poll_interval
        self.node = FullNodeClient(node_url=self.rpc_url)
        self._account: Optional[Account] = None
        if self.address and private_key:
            self._account = Account(
                address=self.address,
                client=self.node,
                key_pair=KeyPair.from_private_key(parse_felt(private_key, "private_key")),
                chain=int(NETWORK_PROFILES[network].chain_id, 16),
            )

    @property
    def can_sign(self) -> bool:
        return self._account is not None

    def _require_account(self) -> Account:
        if self._account is None:
            raise SignerUnavailable(
                "No signing account configured (set STARKNET_ACCOUNT_ADDRESS and STARKNET_PRIVATE_KEY)"
            )
        return self._account

    def call_contract(
        self, address: str, entrypoint: str, calldata: Sequence[int]
    ) -> List[int]:
        call = Call(
            to_addr=parse_felt(address, "address"),
            selector=get_selector_from_name(entrypoint),
            calldata=list(calldata),
        )
        try:
            return list(self.node.call_contract_sync(call=call, block_number="latest"))
        except ClientError as exc:
            raise _translate_client_error(exc) from exc

    def execute(self, calls: Sequence[ContractCall]) -> TransactionResult:
        account = self._require_account()
        prepared = [
            Call(
                to_addr=parse_felt(item.address, "address"),
                selector=get_selector_from_name(item.entrypoint),
                calldata=list(item.calldata),
            )
            for item in calls
        ]
        try:
            response = account.execute_v3_sync(calls=prepared, auto_estimate=True)
        except ClientError as exc:
            raise _translate_client_error(exc) from exc
        result = TransactionResult.from_response(response)
        logging.info("Submitted transaction %s", result.transaction_hash)
        return result

    def wait_for_transaction(
        self,
        tx_hash: str,
        *,
        timeout_seconds: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Poll for ``tx_hash`` until it is accepted, one receipt check at a time.

        Setting ``cancel_event`` stops the wait with :class:`FlowCancelled`
        before the next check.
        """
        waiter = cancel_event if cancel_event is not None else threading.Event()
        deadline = time.monotonic() + timeout_seconds
        while True:
            if waiter.is_set():
                raise FlowCancelled(f"Stopped waiting for transaction {tx_hash}")
            try:
                self.node.wait_for_tx_sync(
                    tx_hash=parse_felt(tx_hash, "tx_hash"),
                    check_interval=self.poll_interval,
                    retries=1,
                )
                return
            except TransactionNotReceivedError as exc:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransactionTimeout(tx_hash, timeout_seconds) from exc
            except (TransactionRevertedError, TransactionFailedError) as exc:
                reason = getattr(exc, "message", None) or str(exc)
                raise ChainRejected(f"Transaction {tx_hash} failed: {reason}", cause=reason) from exc
            except ClientError as exc:
                raise _translate_client_error(exc) from exc
            waiter.wait(min(self.poll_interval, remaining))

    def sign_typed_data(self, typed_data: Mapping[str, Any]) -> PaymentSignature:
        account = self._require_account()
        signature: Union[Sequence[int], Any] = account.sign_message(typed_data=dict(typed_data))
        r, s = signature[0], signature[1]
        return PaymentSignature(r=hex(r), s=hex(s))
