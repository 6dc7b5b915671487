"""
Core primitives that implement the x402 payment lifecycle on Starknet.
"""

from .allowance import approve, ensure_allowance, get_allowance
from .chain import ChainClient, ContractCall, StarknetChainClient, TransactionResult
from .client import FacilitatorClient, settle_payment, verify_payment
from .config import ClientConfig, ClientParameters, load_client_config
from .environment import ClientEnvironment, build_environment
from .errors import (
    ApprovalTimeout,
    ChainRejected,
    ConfigError,
    FlowCancelled,
    InsufficientSignerFunds,
    InvalidAmount,
    InvalidRequirements,
    MissingRequirements,
    MissingSpender,
    NetworkMismatch,
    SettlementFailed,
    SignerUnavailable,
    TransactionTimeout,
    TransportError,
    UnsupportedNetwork,
    VerificationRejected,
    X402Error,
)
from .flow import FlowResult, FlowState, HttpRequest, PaymentFlow
from .models import (
    PaymentPayload,
    PaymentRequiredResponse,
    PaymentRequirements,
    SettlementResult,
    VerificationResult,
)
from .networks import Network, parse_network
from .payloads import (
    SignedPayment,
    build_payment_typed_data,
    decode_payment_header,
    encode_payment_header,
    generate_nonce_hex,
    sign_payment,
)

__all__ = [
    "ApprovalTimeout",
    "ChainClient",
    "ChainRejected",
    "ClientConfig",
    "ClientEnvironment",
    "ClientParameters",
    "ConfigError",
    "ContractCall",
    "FacilitatorClient",
    "FlowCancelled",
    "FlowResult",
    "FlowState",
    "HttpRequest",
    "InsufficientSignerFunds",
    "InvalidAmount",
    "InvalidRequirements",
    "MissingRequirements",
    "MissingSpender",
    "Network",
    "NetworkMismatch",
    "PaymentFlow",
    "PaymentPayload",
    "PaymentRequiredResponse",
    "PaymentRequirements",
    "SettlementFailed",
    "SettlementResult",
    "SignedPayment",
    "SignerUnavailable",
    "StarknetChainClient",
    "TransactionResult",
    "TransactionTimeout",
    "TransportError",
    "UnsupportedNetwork",
    "VerificationRejected",
    "VerificationResult",
    "X402Error",
    "approve",
    "build_environment",
    "build_payment_typed_data",
    "decode_payment_header",
    "encode_payment_header",
    "ensure_allowance",
    "generate_nonce_hex",
    "get_allowance",
    "load_client_config",
    "parse_network",
    "settle_payment",
    "sign_payment",
    "verify_payment",
]
