"""
ERC-20 allowance helpers for facilitator-driven settlement.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Sequence, Tuple

from .chain import ChainClient, ContractCall, TransactionResult
from .errors import ApprovalTimeout, SignerUnavailable, TransactionTimeout, X402Error
from .networks import parse_felt

__all__ = [
    "DEFAULT_APPROVAL_TIMEOUT_SECONDS",
    "approve",
    "ensure_allowance",
    "get_allowance",
    "join_uint256",
    "split_uint256",
]

DEFAULT_APPROVAL_TIMEOUT_SECONDS = 300

_LIMB_BITS = 128
_LIMB_MASK = (1 << _LIMB_BITS) - 1
_UINT256_LIMIT = 1 << 256


def split_uint256(value: int) -> Tuple[int, int]:
    if not 0 <= value < _UINT256_LIMIT:
        raise ValueError(f"{value} does not fit in a uint256")
    return value & _LIMB_MASK, value >> _LIMB_BITS


def join_uint256(limbs: Sequence[int]) -> int:
    if len(limbs) < 2:
        raise ValueError(f"Expected low and high limbs, got {list(limbs)!r}")
    low, high = int(limbs[0]), int(limbs[1])
    if not (0 <= low <= _LIMB_MASK and 0 <= high <= _LIMB_MASK):
        raise ValueError(f"uint256 limbs out of range: {low}, {high}")
    return low + (high << _LIMB_BITS)


def get_allowance(chain: ChainClient, *, owner: str, spender: str, token: str) -> int:
    result = chain.call_contract(
        token,
        "allowance",
        [parse_felt(owner, "owner"), parse_felt(spender, "spender")],
    )
    return join_uint256(result)


def approve(
    chain: ChainClient,
    *,
    token: str,
    spender: str,
    amount: int,
) -> TransactionResult:
    """Approve ``spender`` for exactly ``amount`` base units of ``token``."""
    low, high = split_uint256(amount)
    calldata: List[int] = [parse_felt(spender, "spender"), low, high]
    logging.info("Approving %s for %s of token %s", spender, amount, token)
    return chain.execute([ContractCall(address=token, entrypoint="approve", calldata=calldata)])


def ensure_allowance(
    chain: ChainClient,
    *,
    token: str,
    spender: str,
    required: int,
    timeout_seconds: float = DEFAULT_APPROVAL_TIMEOUT_SECONDS,
    on_submitted: Optional[Callable[[str], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[str]:
    """
    Make sure ``spender`` may move ``required`` units on behalf of the account.

    Returns the hash of the approval transaction once it is confirmed, or
    ``None`` when the current allowance already covers ``required``.
    ``on_submitted`` is called with the tx hash before the confirmation wait,
    which ``cancel_event`` can cut short.
    """
    if not chain.address:
        raise SignerUnavailable("Chain client has no account address to approve from")

    current = get_allowance(chain, owner=chain.address, spender=spender, token=token)
    if current >= required:
        logging.info(
            "Existing allowance %s for %s covers %s; skipping approval",
            current,
            spender,
            required,
        )
        return None

    result = approve(chain, token=token, spender=spender, amount=required)
    if on_submitted is not None:
        on_submitted(result.transaction_hash)
    logging.info("Waiting for approval transaction %s", result.transaction_hash)
    try:
        chain.wait_for_transaction(
            result.transaction_hash,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )
    except TransactionTimeout as exc:
        raise ApprovalTimeout(result.transaction_hash, timeout_seconds) from exc
    except X402Error as exc:
        exc.approve_tx_hash = result.transaction_hash
        raise
    return result.transaction_hash
