"""
Configuration objects and helpers for the x402 client.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .environment import build_environment, default_env_files
from .errors import ConfigError, UnsupportedNetwork
from .networks import NETWORK_PROFILES, Network, normalize_address, parse_network

__all__ = [
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "load_client_config",
]

_PARAMETER_TO_ENV_KEY = {
    "account_address": "STARKNET_ACCOUNT_ADDRESS",
    "private_key": "STARKNET_PRIVATE_KEY",
    "rpc_url": "STARKNET_RPC_URL",
    "network": "X402_NETWORK",
    "facilitator_url": "X402_FACILITATOR_URL",
    "spender_address": "X402_SPENDER_ADDRESS",
    "approval_timeout_seconds": "X402_APPROVAL_TIMEOUT_SECONDS",
    "http_timeout_seconds": "X402_HTTP_TIMEOUT_SECONDS",
    "deadline_seconds": "X402_PAYMENT_DEADLINE_SECONDS",
}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Network):
        return value.value
    return str(value)


@dataclass(frozen=True)
class ClientParameters:
    """
    Explicit parameter bundle for constructing :class:`ClientConfig`.

    Callers can either instantiate this helper or pass the individual keyword
    arguments directly to :func:`load_client_config`.
    """

    account_address: Optional[str] = None
    private_key: Optional[str] = None
    rpc_url: Optional[str] = None
    network: Optional[str] = None
    facilitator_url: Optional[str] = None
    spender_address: Optional[str] = None
    approval_timeout_seconds: Optional[int | str] = None
    http_timeout_seconds: Optional[int | str] = None
    deadline_seconds: Optional[int | str] = None

    def as_overrides(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for field_name, env_key in _PARAMETER_TO_ENV_KEY.items():
            value = getattr(self, field_name)
            if value is None:
                continue
            overrides[env_key] = _stringify(value)
        return overrides


def _normalize_private_key(raw_key: str) -> str:
    key = raw_key.strip()
    if not key:
        raise ConfigError("STARKNET_PRIVATE_KEY must not be empty")
    if not key.startswith("0x"):
        key = "0x" + key
    try:
        int(key, 16)
    except ValueError as exc:
        raise ConfigError("STARKNET_PRIVATE_KEY must be a hex string") from exc
    return key


def _normalize_address(raw_address: str, field_name: str) -> str:
    value = raw_address.strip()
    if not value:
        raise ConfigError(f"{field_name} must not be empty")
    if not value.startswith("0x"):
        value = "0x" + value
    try:
        return normalize_address(value, field_name)
    except ValueError as exc:
        raise ConfigError(f"{field_name} is not a valid Starknet address") from exc


def _positive_number(values: Mapping[str, str], key: str, default: str) -> int:
    raw = values.get(key) or default
    try:
        number = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got '{raw}'") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be greater than zero")
    return number


def _optional_url(values: Mapping[str, str], key: str) -> Optional[str]:
    raw = (values.get(key) or "").strip()
    if not raw:
        return None
    if not raw.startswith(("http://", "https://")):
        raise ConfigError(f"{key} must be an http(s) URL, got '{raw}'")
    return raw.rstrip("/")


@dataclass(frozen=True)
class ClientConfig:
    network: Network
    rpc_url: str
    account_address: Optional[str] = None
    private_key: Optional[str] = None
    facilitator_url: Optional[str] = None
    spender_address: Optional[str] = None
    approval_timeout_seconds: int = 300
    http_timeout_seconds: int = 30
    deadline_seconds: int = 300
    env_source: Optional[Path] = None

    @property
    def can_sign(self) -> bool:
        return self.account_address is not None and self.private_key is not None

    @classmethod
    def from_mapping(
        cls, values: Mapping[str, str], *, env_source: Optional[Path] = None
    ) -> "ClientConfig":
        try:
            network = parse_network(values.get("X402_NETWORK") or "sepolia")
        except UnsupportedNetwork as exc:
            raise ConfigError(str(exc)) from exc
        profile = NETWORK_PROFILES[network]

        account_raw = values.get("STARKNET_ACCOUNT_ADDRESS")
        account_address = (
            _normalize_address(account_raw, "STARKNET_ACCOUNT_ADDRESS")
            if account_raw
            else None
        )
        key_raw = values.get("STARKNET_PRIVATE_KEY")
        private_key = _normalize_private_key(key_raw) if key_raw else None
        if private_key is not None and account_address is None:
            raise ConfigError(
                "STARKNET_ACCOUNT_ADDRESS must be provided together with STARKNET_PRIVATE_KEY"
            )

        rpc_url = _optional_url(values, "STARKNET_RPC_URL") or profile.rpc_url
        facilitator_url = (
            _optional_url(values, "X402_FACILITATOR_URL") or profile.facilitator_url
        )

        spender_raw = values.get("X402_SPENDER_ADDRESS")
        spender_address = (
            _normalize_address(spender_raw, "X402_SPENDER_ADDRESS")
            if spender_raw
            else None
        )

        return cls(
            network=network,
            rpc_url=rpc_url,
            account_address=account_address,
            private_key=private_key,
            facilitator_url=facilitator_url,
            spender_address=spender_address,
            approval_timeout_seconds=_positive_number(
                values, "X402_APPROVAL_TIMEOUT_SECONDS", "300"
            ),
            http_timeout_seconds=_positive_number(
                values, "X402_HTTP_TIMEOUT_SECONDS", "30"
            ),
            deadline_seconds=_positive_number(
                values, "X402_PAYMENT_DEADLINE_SECONDS", "300"
            ),
            env_source=env_source,
        )

    def describe_sources(self) -> str:
        if self.env_source is not None:
            return str(self.env_source)
        return "environment only (looked in: " + ", ".join(
            str(path) for path in default_env_files()
        ) + ")"


def load_client_config(
    *,
    env_file: Optional[str] = None,
    search: bool = True,
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    parameters: Optional[ClientParameters] = None,
    **explicit: Any,
) -> ClientConfig:
    """
    Build a :class:`ClientConfig` from the environment, env files and overrides.

    Keyword arguments named after :class:`ClientParameters` fields win over
    everything else.
    """
    merged: Dict[str, str] = dict(overrides or {})
    if parameters is not None:
        merged.update(parameters.as_overrides())
    for key, value in explicit.items():
        if value is None:
            continue
        try:
            env_key = _PARAMETER_TO_ENV_KEY[key]
        except KeyError:
            raise TypeError(f"Unknown client parameter '{key}'") from None
        merged[env_key] = _stringify(value)

    environment = build_environment(
        env_file=env_file,
        search=search,
        base=base,
        overrides=merged,
    )
    return ClientConfig.from_mapping(environment.variables, env_source=environment.source)
