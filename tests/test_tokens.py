from decimal import Decimal

import pytest

from strk_x402.core.errors import ConfigError
from strk_x402.core.tokens import resolve_token, to_base_units


def test_resolve_symbol_case_insensitive():
    assert resolve_token("usdc").decimals == 6
    assert resolve_token("wstETH").symbol == "wstETH"


def test_resolve_known_address_without_padding():
    token = resolve_token("0x4718f5a0fc34cc1af16a1cdee98ffb20c31f5cd61d6ab07201858f4287c938d")
    assert token.symbol == "STRK"


def test_unknown_address_defaults_to_18_decimals():
    token = resolve_token("0x1234")
    assert token.decimals == 18
    assert token.address == "0x" + "0" * 60 + "1234"


def test_unknown_symbol_is_rejected():
    with pytest.raises(ConfigError, match="Unsupported token"):
        resolve_token("DOGE")


@pytest.mark.parametrize(
    "amount, decimals, expected",
    [("0.01", 18, 10**16), ("1.5", 6, 1_500_000), (Decimal("2"), 8, 200_000_000)],
)
def test_to_base_units(amount, decimals, expected):
    assert to_base_units(amount, decimals) == expected


@pytest.mark.parametrize("amount", ["0.0000001", "0", "abc", "Infinity"])
def test_to_base_units_rejects(amount):
    with pytest.raises(ConfigError):
        to_base_units(amount, 6)
