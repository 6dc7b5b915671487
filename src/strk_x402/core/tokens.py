"""
Known Starknet Sepolia tokens and amount conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Union

from .errors import ConfigError
from .networks import normalize_address, parse_felt

__all__ = [
    "DEFAULT_TOKEN_DECIMALS",
    "SEPOLIA_TOKENS",
    "TokenInfo",
    "find_token_by_address",
    "resolve_token",
    "to_base_units",
]

DEFAULT_TOKEN_DECIMALS = 18


@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    name: str
    address: str
    decimals: int


# Source: starknet-io/starknet-addresses (bridged_tokens/sepolia.json)
SEPOLIA_TOKENS: Dict[str, TokenInfo] = {
    token.symbol.upper(): token
    for token in (
        TokenInfo(
            "ETH",
            "Ether",
            "0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7",
            18,
        ),
        TokenInfo(
            "STRK",
            "Starknet Token",
            "0x04718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d",
            18,
        ),
        TokenInfo(
            "USDC",
            "USDC",
            "0x053b40a647cedfca6ca84f542a0fe36736031905a9639a7f19a3c1e66bfd5080",
            6,
        ),
        TokenInfo(
            "USDT",
            "USDT",
            "0x02ab8758891e84b968ff11361789070c6b1af2df618d6d2f4a78b0757573c6eb",
            6,
        ),
        TokenInfo(
            "WBTC",
            "Wrapped BTC",
            "0x00452bd5c0512a61df7c7be8cfea5e4f893cb40e126bdc40aee6054db955129e",
            8,
        ),
        TokenInfo(
            "wstETH",
            "Wrapped liquid staked Ether 2.0",
            "0x030de54c07e57818ae4a1210f2a3018a0b9521b8f8ae5206605684741650ac25",
            18,
        ),
    )
}


def find_token_by_address(address: str) -> Optional[TokenInfo]:
    wanted = parse_felt(address, "token")
    for token in SEPOLIA_TOKENS.values():
        if parse_felt(token.address) == wanted:
            return token
    return None


def resolve_token(value: str) -> TokenInfo:
    """
    Resolve a symbol (``STRK``) or a contract address to a :class:`TokenInfo`.

    Unknown addresses get a synthetic entry with 18 decimals.
    """
    text = value.strip()
    known = SEPOLIA_TOKENS.get(text.upper())
    if known is not None:
        return known
    try:
        address = normalize_address(text, "token")
    except ValueError as exc:
        supported = ", ".join(token.symbol for token in SEPOLIA_TOKENS.values())
        raise ConfigError(
            f"Unsupported token '{value}'. Use an address or one of: {supported}"
        ) from exc
    return find_token_by_address(address) or TokenInfo(
        symbol=address,
        name=address,
        address=address,
        decimals=DEFAULT_TOKEN_DECIMALS,
    )


def to_base_units(amount: Union[Decimal, str, int], decimals: int) -> int:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ConfigError(f"Amount must be a valid decimal number, got '{amount}'") from exc
    if not value.is_finite():
        raise ConfigError(f"Amount must be a finite number, got '{amount}'")

    scaled = value * (Decimal(10) ** decimals)
    try:
        integral = scaled.to_integral_exact()
    except InvalidOperation as exc:
        raise ConfigError(
            f"Amount {amount} cannot be represented with {decimals} decimals"
        ) from exc

    if integral != scaled:
        raise ConfigError(
            f"Amount {amount} cannot be represented with {decimals} decimals"
        )
    as_int = int(integral)
    if as_int <= 0:
        raise ConfigError("Payment amount must be greater than zero")

    return as_int
