"""
Exception hierarchy for the x402 payment flow.

Every error carries a ``kind`` string so callers (the CLI in particular) can
render a structured failure instead of a traceback.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "ApprovalTimeout",
    "ChainRejected",
    "ConfigError",
    "FlowCancelled",
    "InsufficientSignerFunds",
    "InvalidAmount",
    "InvalidRequirements",
    "MissingRequirements",
    "MissingSpender",
    "NetworkMismatch",
    "SettlementFailed",
    "SignerUnavailable",
    "TransactionTimeout",
    "TransportError",
    "UnsupportedNetwork",
    "VerificationRejected",
    "X402Error",
]


class ConfigError(Exception):
    """Raised when the supplied configuration is invalid."""


class X402Error(Exception):
    kind = "X402Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        # Filled in by the orchestrator while the error propagates.
        self.state: Optional[str] = None
        self.approve_tx_hash: Optional[str] = None

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.kind, "message": self.message}
        body.update(self.details())
        if self.state is not None:
            body["state"] = self.state
        if self.approve_tx_hash is not None:
            body["approveTxHash"] = self.approve_tx_hash
        return body


class UnsupportedNetwork(X402Error):
    kind = "UnsupportedNetwork"


class NetworkMismatch(X402Error):
    kind = "NetworkMismatch"


class MissingRequirements(X402Error):
    """The 402 response carried no usable ``accepts`` entry."""

    kind = "MissingRequirements"


class InvalidRequirements(X402Error):
    kind = "InvalidRequirements"


class InvalidAmount(X402Error):
    """A caller-supplied amount is not a base-unit integer string."""

    kind = "InvalidAmount"


class MissingSpender(X402Error):
    kind = "MissingSpender"


class SignerUnavailable(X402Error):
    kind = "SignerUnavailable"


class VerificationRejected(X402Error):
    kind = "VerificationRejected"

    def __init__(self, reason: str, raw: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"Facilitator rejected payment: {reason}")
        self.reason = reason
        self.raw = raw or {}

    def details(self) -> Dict[str, Any]:
        return {"reason": self.reason, "response": self.raw}


class SettlementFailed(X402Error):
    kind = "SettlementFailed"

    def __init__(self, reason: str, raw: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"Facilitator settlement failed: {reason}")
        self.reason = reason
        self.raw = raw or {}

    def details(self) -> Dict[str, Any]:
        return {"reason": self.reason, "response": self.raw}


class ChainRejected(X402Error):
    kind = "ChainRejected"

    def __init__(self, message: str, cause: Optional[str] = None) -> None:
        super().__init__(message)
        self.cause = cause if cause is not None else message

    def details(self) -> Dict[str, Any]:
        return {"cause": self.cause}


class InsufficientSignerFunds(ChainRejected):
    kind = "InsufficientSignerFunds"


class TransactionTimeout(X402Error):
    kind = "TransactionTimeout"

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} was not confirmed within {timeout_seconds:g}s"
        )
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds

    def details(self) -> Dict[str, Any]:
        return {"txHash": self.tx_hash, "timeoutSeconds": self.timeout_seconds}


class ApprovalTimeout(TransactionTimeout):
    kind = "ApprovalTimeout"

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        super().__init__(tx_hash, timeout_seconds)
        self.message = (
            f"Approval transaction {tx_hash} was not confirmed within "
            f"{timeout_seconds:g}s"
        )
        self.args = (self.message,)
        self.approve_tx_hash = tx_hash


class TransportError(X402Error):
    """Network, DNS or TLS failure, or an unusable HTTP response."""

    kind = "TransportError"

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        if self.status is not None:
            details["status"] = self.status
        if self.body is not None:
            details["body"] = self.body
        return details


class FlowCancelled(X402Error):
    kind = "FlowCancelled"
