"""
Public, high-level helpers for paying x402-protected resources on Starknet.
"""

from __future__ import annotations

import threading
from typing import Mapping, Optional, Union

import requests

from .core.chain import ChainClient, StarknetChainClient
from .core.client import FacilitatorClient
from .core.config import ClientConfig, load_client_config
from .core.flow import FlowResult, HttpRequest, PaymentFlow
from .core.networks import Network

__all__ = [
    "create_chain_client",
    "create_payment_flow",
    "x402_request",
]


def create_chain_client(config: Optional[ClientConfig] = None, **kwargs) -> StarknetChainClient:
    """
    Construct a :class:`StarknetChainClient` from a config.

    Without ``config`` one is loaded with :func:`load_client_config`, passing
    ``kwargs`` through.
    """
    cfg = config if config is not None else load_client_config(**kwargs)
    return StarknetChainClient(
        network=cfg.network,
        rpc_url=cfg.rpc_url,
        account_address=cfg.account_address,
        private_key=cfg.private_key,
    )


def create_payment_flow(
    *,
    config: ClientConfig,
    chain: Optional[ChainClient] = None,
    session: Optional[requests.Session] = None,
    network: Optional[Union[Network, str]] = None,
    facilitator_url: Optional[str] = None,
    spender: Optional[str] = None,
    auto_approve: bool = False,
) -> PaymentFlow:
    """
    Build a :class:`PaymentFlow` with config defaults filled in.

    Explicit arguments win over ``config``; the facilitator step is enabled
    only when a facilitator URL ends up configured.
    """
    session = session or requests.Session()
    facilitator_base = facilitator_url or config.facilitator_url
    facilitator = (
        FacilitatorClient(
            facilitator_base, session=session, timeout=config.http_timeout_seconds
        )
        if facilitator_base
        else None
    )
    return PaymentFlow(
        chain if chain is not None else create_chain_client(config),
        network=network or config.network,
        session=session,
        facilitator=facilitator,
        spender=spender or config.spender_address,
        auto_approve=auto_approve,
        approval_timeout=config.approval_timeout_seconds,
        request_timeout=config.http_timeout_seconds,
        deadline_seconds=config.deadline_seconds,
    )


def x402_request(
    url: str,
    *,
    config: Optional[ClientConfig] = None,
    chain: Optional[ChainClient] = None,
    session: Optional[requests.Session] = None,
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
    body: Optional[Union[str, bytes]] = None,
    network: Optional[Union[Network, str]] = None,
    facilitator_url: Optional[str] = None,
    spender: Optional[str] = None,
    auto_approve: bool = False,
    amount_override: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
) -> FlowResult:
    """
    Request ``url``; on ``402`` sign a payment and retry once with ``X-PAYMENT``.
    """
    cfg = config if config is not None else load_client_config()
    flow = create_payment_flow(
        config=cfg,
        chain=chain,
        session=session,
        network=network,
        facilitator_url=facilitator_url,
        spender=spender,
        auto_approve=auto_approve,
    )
    request = HttpRequest(
        url=url,
        method=method.upper(),
        headers=dict(headers or {}),
        body=body,
    )
    return flow.run(request, amount_override=amount_override, cancel_event=cancel_event)
