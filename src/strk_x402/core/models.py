"""
Wire structures exchanged with resource servers and facilitators.

Each structure is a frozen dataclass; ``from_dict``/``to_dict`` are the only
places that know about the JSON field names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidRequirements, MissingRequirements
from .networks import is_decimal_string, parse_felt

__all__ = [
    "X402_VERSION",
    "PaymentAuthorization",
    "PaymentPayload",
    "PaymentRequiredResponse",
    "PaymentRequirements",
    "PaymentSignature",
    "SettlementResult",
    "VerificationResult",
]

X402_VERSION = 1

_OPTIONAL_REQUIREMENT_KEYS = (
    "resource",
    "description",
    "mimeType",
    "maxTimeoutSeconds",
    "extra",
)


def _optional_int(payload: Mapping[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not is_decimal_string(str(value).strip()):
        raise InvalidRequirements(f"{key} must be a non-negative integer, got {value!r}")
    return int(str(value).strip())


@dataclass(frozen=True)
class PaymentRequirements:
    scheme: str
    network: str
    max_amount_required: str
    asset: str
    pay_to: str
    resource: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    max_timeout_seconds: Optional[int] = None
    extra: Any = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaymentRequirements":
        if not isinstance(payload, Mapping):
            raise InvalidRequirements("Payment requirements must be a JSON object")

        missing = [
            key
            for key in ("scheme", "network", "maxAmountRequired", "asset", "payTo")
            if payload.get(key) in (None, "")
        ]
        if missing:
            raise InvalidRequirements(
                f"Payment requirements missing field(s): {', '.join(missing)}"
            )

        amount = str(payload["maxAmountRequired"]).strip()
        if not is_decimal_string(amount):
            raise InvalidRequirements(
                f"maxAmountRequired must be a non-negative integer string, got {amount!r}"
            )

        for key in ("asset", "payTo"):
            try:
                parse_felt(str(payload[key]), key)
            except ValueError as exc:
                raise InvalidRequirements(str(exc)) from exc

        timeout = _optional_int(payload, "maxTimeoutSeconds")
        return cls(
            scheme=str(payload["scheme"]),
            network=str(payload["network"]),
            max_amount_required=amount,
            asset=str(payload["asset"]),
            pay_to=str(payload["payTo"]),
            resource=payload.get("resource"),
            description=payload.get("description"),
            mime_type=payload.get("mimeType"),
            max_timeout_seconds=timeout,
            extra=payload.get("extra"),
            raw=dict(payload),
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        body: Dict[str, Any] = {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "asset": self.asset,
            "payTo": self.pay_to,
        }
        values = (
            self.resource,
            self.description,
            self.mime_type,
            self.max_timeout_seconds,
            self.extra,
        )
        for key, value in zip(_OPTIONAL_REQUIREMENT_KEYS, values):
            if value is not None:
                body[key] = value
        return body


@dataclass(frozen=True)
class PaymentRequiredResponse:
    """
    A parsed ``402 Payment Required`` body.

    ``accepts`` is kept as the server sent it. Only the entry actually used
    is validated, so a server may advertise options for other chains after
    the first one.
    """

    x402_version: int
    accepts: List[Any]
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "PaymentRequiredResponse":
        if not isinstance(payload, Mapping):
            raise MissingRequirements("402 response body is not a JSON object")
        accepts = payload.get("accepts") or []
        if not isinstance(accepts, list):
            raise MissingRequirements("402 response 'accepts' is not a list")
        version = _optional_int(payload, "x402Version")
        return cls(
            x402_version=version if version is not None else X402_VERSION,
            accepts=list(accepts),
            error=payload.get("error"),
        )

    def first_requirements(self) -> PaymentRequirements:
        if not self.accepts:
            detail = f" ({self.error})" if self.error else ""
            raise MissingRequirements(f"402 response missing accepts[0]{detail}")
        return PaymentRequirements.from_dict(self.accepts[0])


@dataclass(frozen=True)
class PaymentSignature:
    r: str
    s: str

    def to_dict(self) -> Dict[str, str]:
        return {"r": self.r, "s": self.s}


@dataclass(frozen=True)
class PaymentAuthorization:
    from_address: str
    to: str
    token: str
    amount: str
    nonce: str
    deadline: int
    signature: PaymentSignature

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_address,
            "to": self.to,
            "token": self.token,
            "amount": self.amount,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "signature": self.signature.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaymentAuthorization":
        signature = payload["signature"]
        return cls(
            from_address=payload["from"],
            to=payload["to"],
            token=payload["token"],
            amount=payload["amount"],
            nonce=payload["nonce"],
            deadline=int(payload["deadline"]),
            signature=PaymentSignature(r=signature["r"], s=signature["s"]),
        )


@dataclass(frozen=True)
class PaymentPayload:
    network: str
    payload: PaymentAuthorization
    x402_version: int = X402_VERSION
    scheme: str = "exact"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x402Version": self.x402_version,
            "scheme": self.scheme,
            "network": self.network,
            "payload": self.payload.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaymentPayload":
        return cls(
            x402_version=int(payload["x402Version"]),
            scheme=payload["scheme"],
            network=payload["network"],
            payload=PaymentAuthorization.from_dict(payload["payload"]),
        )


@dataclass(frozen=True)
class VerificationResult:
    is_valid: bool
    invalid_reason: Optional[str]
    payer: Optional[str]
    raw: Dict[str, Any]

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "VerificationResult":
        return cls(
            is_valid=payload.get("isValid") is True,
            invalid_reason=payload.get("invalidReason"),
            payer=payload.get("payer"),
            raw=payload,
        )


@dataclass(frozen=True)
class SettlementResult:
    success: bool
    tx_hash: Optional[str]
    network: Optional[str]
    error: Optional[str]
    raw: Dict[str, Any]

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "SettlementResult":
        # An absent ``success`` flag counts as a failed settlement.
        tx_hash = (
            payload.get("txHash")
            or payload.get("transaction")
            or payload.get("transactionHash")
        )
        return cls(
            success=payload.get("success") is True,
            tx_hash=tx_hash,
            network=payload.get("network"),
            error=payload.get("error") or payload.get("errorReason"),
            raw=payload,
        )
