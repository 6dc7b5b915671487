"""
Network table and field-element helpers.

Everything chain specific (chain ids, explorer links, default RPC and
facilitator endpoints) is resolved from :data:`NETWORK_PROFILES` keyed by
:class:`Network`, so callers must parse user input with
:func:`parse_network` before touching any of it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from eth_utils import is_0x_prefixed, is_hex, remove_0x_prefix

from .errors import UnsupportedNetwork

__all__ = [
    "FIELD_PRIME",
    "MAX_NONCE_BYTES",
    "NETWORK_PROFILES",
    "Network",
    "NetworkProfile",
    "explorer_contract_url",
    "explorer_tx_url",
    "is_decimal_string",
    "normalize_address",
    "parse_felt",
    "parse_network",
]

FIELD_PRIME = 2**251 + 17 * 2**192 + 1

# 31 random bytes always stay below FIELD_PRIME; 32 may not.
MAX_NONCE_BYTES = 31

_DECIMAL_DIGITS = re.compile(r"[0-9]+")


class Network(str, Enum):
    SEPOLIA = "starknet-sepolia"
    MAINNET = "starknet-mainnet"


@dataclass(frozen=True)
class NetworkProfile:
    network: Network
    chain_id: str
    explorer_url: str
    rpc_url: str
    facilitator_url: Optional[str] = None


NETWORK_PROFILES: Dict[Network, NetworkProfile] = {
    Network.SEPOLIA: NetworkProfile(
        network=Network.SEPOLIA,
        chain_id="0x534e5f5345504f4c4941",  # SN_SEPOLIA
        explorer_url="https://sepolia.voyager.online",
        rpc_url="https://starknet-sepolia-rpc.publicnode.com",
    ),
    Network.MAINNET: NetworkProfile(
        network=Network.MAINNET,
        chain_id="0x534e5f4d41494e",  # SN_MAIN
        explorer_url="https://voyager.online",
        rpc_url="https://starknet-rpc.publicnode.com",
    ),
}

_ALIASES = {
    "sepolia": Network.SEPOLIA,
    "starknet-sepolia": Network.SEPOLIA,
    "mainnet": Network.MAINNET,
    "starknet-mainnet": Network.MAINNET,
}


def parse_network(value: Union[str, Network]) -> Network:
    if isinstance(value, Network):
        return value
    try:
        return _ALIASES[str(value).strip().lower()]
    except KeyError:
        raise UnsupportedNetwork(
            f"Unsupported network '{value}'. Use sepolia|mainnet."
        ) from None


def explorer_tx_url(network: Network, tx_hash: str) -> str:
    return f"{NETWORK_PROFILES[network].explorer_url}/tx/{tx_hash}"


def explorer_contract_url(network: Network, address: str) -> str:
    return f"{NETWORK_PROFILES[network].explorer_url}/contract/{address}"


def is_decimal_string(value: str) -> bool:
    """True for a non-empty run of ASCII digits only."""
    return _DECIMAL_DIGITS.fullmatch(value) is not None


def parse_felt(value: Union[int, str], field_name: str = "value") -> int:
    """
    Interpret ``value`` as a field element.

    Accepts ints, ``0x``-prefixed hex strings and plain decimal strings.
    Raises :class:`ValueError` for anything that is not in ``[0, FIELD_PRIME)``.
    """
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a field element, got {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        if is_0x_prefixed(text):
            digits = remove_0x_prefix(text)
            if not digits or not is_hex(text):
                raise ValueError(f"{field_name} is not valid hex: {value!r}")
            result = int(digits, 16)
        elif is_decimal_string(text):
            result = int(text)
        else:
            raise ValueError(f"{field_name} is not a valid field element: {value!r}")
    else:
        raise ValueError(f"{field_name} must be a field element, got {value!r}")

    if not 0 <= result < FIELD_PRIME:
        raise ValueError(f"{field_name} is outside the Starknet field")
    return result


def normalize_address(value: Union[int, str], field_name: str = "address") -> str:
    """Return ``value`` as a 0x-prefixed, zero-padded 64 digit address."""
    return "0x" + format(parse_felt(value, field_name), "064x")
