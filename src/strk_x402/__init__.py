"""
Public facade for the Starknet x402 client package.

The module intentionally re-exports the most useful pieces for integrators so
they can ``from strk_x402 import ...`` without navigating the package.
"""

from .api import create_chain_client, create_payment_flow, x402_request
from .core import (
    ApprovalTimeout,
    ChainClient,
    ChainRejected,
    ClientConfig,
    ClientParameters,
    ConfigError,
    FacilitatorClient,
    FlowResult,
    FlowState,
    HttpRequest,
    MissingRequirements,
    MissingSpender,
    Network,
    PaymentFlow,
    PaymentPayload,
    PaymentRequirements,
    SettlementFailed,
    SettlementResult,
    SignedPayment,
    SignerUnavailable,
    StarknetChainClient,
    TransportError,
    VerificationRejected,
    X402Error,
    approve,
    build_payment_typed_data,
    decode_payment_header,
    encode_payment_header,
    ensure_allowance,
    generate_nonce_hex,
    get_allowance,
    load_client_config,
    parse_network,
    sign_payment,
)

__version__ = "0.1.0"

__all__ = (
    "ApprovalTimeout",
    "ChainClient",
    "ChainRejected",
    "ClientConfig",
    "ClientParameters",
    "ConfigError",
    "FacilitatorClient",
    "FlowResult",
    "FlowState",
    "HttpRequest",
    "MissingRequirements",
    "MissingSpender",
    "Network",
    "PaymentFlow",
    "PaymentPayload",
    "PaymentRequirements",
    "SettlementFailed",
    "SettlementResult",
    "SignedPayment",
    "SignerUnavailable",
    "StarknetChainClient",
    "TransportError",
    "VerificationRejected",
    "X402Error",
    "approve",
    "build_payment_typed_data",
    "create_chain_client",
    "create_payment_flow",
    "decode_payment_header",
    "encode_payment_header",
    "ensure_allowance",
    "generate_nonce_hex",
    "get_allowance",
    "load_client_config",
    "parse_network",
    "sign_payment",
    "x402_request",
)
