"""
The x402 challenge/response flow.

``PaymentFlow.run`` issues the original request and, when the server answers
``402 Payment Required``, walks a short pipeline of stages: read the
requirements, optionally top up the facilitator's allowance, sign the
payment, optionally verify and settle through a facilitator, and finally
retry the request once with an ``X-PAYMENT`` header. Each stage either
advances the flow or raises an :class:`~strk_x402.core.errors.X402Error`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import requests

from .allowance import DEFAULT_APPROVAL_TIMEOUT_SECONDS, ensure_allowance
from .chain import ChainClient
from .client import DEFAULT_HTTP_TIMEOUT_SECONDS, FacilitatorClient
from .errors import (
    FlowCancelled,
    InvalidAmount,
    MissingRequirements,
    MissingSpender,
    NetworkMismatch,
    SettlementFailed,
    TransportError,
    UnsupportedNetwork,
    VerificationRejected,
    X402Error,
)
from .models import (
    PaymentPayload,
    PaymentRequiredResponse,
    PaymentRequirements,
    SettlementResult,
)
from .networks import Network, is_decimal_string, parse_network
from .payloads import DEFAULT_DEADLINE_SECONDS, SignedPayment, sign_payment

__all__ = [
    "PAYMENT_HEADER",
    "FlowResult",
    "FlowState",
    "HttpRequest",
    "PaymentFlow",
]

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_REQUIRED_STATUS = 402


class FlowState(str, Enum):
    INITIAL = "initial"
    AWAITING_CHALLENGE = "awaiting-challenge"
    CHALLENGE_RECEIVED = "challenge-received"
    ALLOWANCE_CHECK = "allowance-check"
    APPROVAL_PENDING = "approval-pending"
    SIGNING = "signing"
    VERIFYING = "verifying"
    SETTLING = "settling"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class HttpRequest:
    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None

    def with_header(self, name: str, value: str) -> "HttpRequest":
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)


@dataclass(frozen=True)
class FlowResult:
    response: requests.Response
    payment_header: Optional[str] = None
    payment: Optional[PaymentPayload] = None
    settlement: Optional[SettlementResult] = None
    requirements: Optional[PaymentRequirements] = None
    approve_tx_hash: Optional[str] = None
    states: List[FlowState] = field(default_factory=list)

    @property
    def paid(self) -> bool:
        return self.payment_header is not None


@dataclass
class _FlowContext:
    request: HttpRequest
    amount_override: Optional[str]
    cancel_event: Optional[threading.Event]
    state: FlowState = FlowState.INITIAL
    states: List[FlowState] = field(default_factory=lambda: [FlowState.INITIAL])
    response: Optional[requests.Response] = None
    challenge: Optional[requests.Response] = None
    requirements: Optional[PaymentRequirements] = None
    amount: Optional[str] = None
    approve_tx_hash: Optional[str] = None
    signed: Optional[SignedPayment] = None
    settlement: Optional[SettlementResult] = None

    def require(self, name: str) -> Any:
        value = getattr(self, name)
        if value is None:
            raise RuntimeError(f"x402 flow reached a stage before {name} was set")
        return value


class PaymentFlow:
    """
    Drive a single x402 payment for one HTTP request.

    Exactly one paid retry is attempted. If the retried request is rejected
    again its response is returned as-is.
    """

    def __init__(
        self,
        chain: ChainClient,
        *,
        network: Union[Network, str],
        session: Optional[requests.Session] = None,
        facilitator: Optional[FacilitatorClient] = None,
        spender: Optional[str] = None,
        auto_approve: bool = False,
        approval_timeout: float = DEFAULT_APPROVAL_TIMEOUT_SECONDS,
        request_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        deadline_seconds: int = DEFAULT_DEADLINE_SECONDS,
    ) -> None:
        self.chain = chain
        self.network = parse_network(network)
        self.session = session or requests.Session()
        self.facilitator = facilitator
        self.spender = spender
        self.auto_approve = auto_approve
        self.approval_timeout = approval_timeout
        self.request_timeout = request_timeout
        self.deadline_seconds = deadline_seconds

    def run(
        self,
        request: HttpRequest,
        *,
        amount_override: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> FlowResult:
        ctx = _FlowContext(
            request=request,
            amount_override=None if amount_override is None else str(amount_override).strip(),
            cancel_event=cancel_event,
        )
        stages: List[Callable[[_FlowContext], bool]] = [
            self._fetch_challenge,
            self._read_requirements,
            self._check_allowance,
            self._sign,
            self._verify_and_settle,
            self._retry,
        ]
        try:
            if ctx.amount_override is not None and not is_decimal_string(ctx.amount_override):
                raise InvalidAmount(
                    f"Amount override must be a non-negative integer, got {ctx.amount_override!r}"
                )
            for stage in stages:
                self._check_cancelled(ctx)
                if not stage(ctx):
                    break
        except X402Error as exc:
            if exc.state is None:
                exc.state = ctx.state.value
            if exc.approve_tx_hash is None:
                exc.approve_tx_hash = ctx.approve_tx_hash
            self._advance(ctx, FlowState.FAILED)
            logging.warning("x402 flow failed while %s: %s", exc.state, exc)
            raise

        self._advance(ctx, FlowState.DONE)
        return FlowResult(
            response=ctx.require("response"),
            payment_header=ctx.signed.payment_header if ctx.signed else None,
            payment=ctx.signed.payment if ctx.signed else None,
            settlement=ctx.settlement,
            requirements=ctx.requirements,
            approve_tx_hash=ctx.approve_tx_hash,
            states=list(ctx.states),
        )

    # -- stages -----------------------------------------------------------

    def _fetch_challenge(self, ctx: _FlowContext) -> bool:
        self._advance(ctx, FlowState.AWAITING_CHALLENGE)
        response = self._send(ctx.request)
        if response.status_code != PAYMENT_REQUIRED_STATUS:
            logging.info(
                "%s %s answered %s; no payment needed",
                ctx.request.method,
                ctx.request.url,
                response.status_code,
            )
            ctx.response = response
            return False

        ctx.challenge = response
        self._advance(ctx, FlowState.CHALLENGE_RECEIVED)
        return True

    def _read_requirements(self, ctx: _FlowContext) -> bool:
        challenge = ctx.require("challenge")
        try:
            body = challenge.json()
        except ValueError as exc:
            raise MissingRequirements("402 response body is not valid JSON") from exc

        requirements = PaymentRequiredResponse.from_dict(body).first_requirements()
        self._check_network(requirements)

        amount = (
            ctx.amount_override
            if ctx.amount_override is not None
            else requirements.max_amount_required
        )

        logging.info(
            "Server requires %s of %s paid to %s (%s)",
            amount,
            requirements.asset,
            requirements.pay_to,
            requirements.scheme,
        )
        ctx.requirements = requirements
        ctx.amount = amount
        return True

    def _check_allowance(self, ctx: _FlowContext) -> bool:
        if not self.auto_approve:
            return True
        if not self.spender:
            raise MissingSpender("auto-approve requested but no spender address is configured")
        requirements = ctx.require("requirements")
        amount = ctx.require("amount")

        self._advance(ctx, FlowState.ALLOWANCE_CHECK)

        def _submitted(tx_hash: str) -> None:
            ctx.approve_tx_hash = tx_hash
            self._advance(ctx, FlowState.APPROVAL_PENDING)

        ensure_allowance(
            self.chain,
            token=requirements.asset,
            spender=self.spender,
            required=int(amount),
            timeout_seconds=self.approval_timeout,
            on_submitted=_submitted,
            cancel_event=ctx.cancel_event,
        )
        return True

    def _sign(self, ctx: _FlowContext) -> bool:
        requirements = ctx.require("requirements")
        amount = ctx.require("amount")
        self._advance(ctx, FlowState.SIGNING)
        ctx.signed = sign_payment(
            self.chain,
            network=self.network,
            to=requirements.pay_to,
            token=requirements.asset,
            amount=amount,
            deadline_seconds=self.deadline_seconds,
        )
        return True

    def _verify_and_settle(self, ctx: _FlowContext) -> bool:
        if self.facilitator is None:
            return True
        requirements = ctx.require("requirements")
        header = ctx.require("signed").payment_header

        self._advance(ctx, FlowState.VERIFYING)
        verification = self.facilitator.verify(header, requirements)
        if not verification.is_valid:
            raise VerificationRejected(verification.invalid_reason or "unknown", verification.raw)

        self._advance(ctx, FlowState.SETTLING)
        settlement = self.facilitator.settle(header, requirements)
        if not settlement.success:
            if "success" not in settlement.raw:
                reason = settlement.error or "response carried no success flag"
            else:
                reason = settlement.error or "unknown"
            raise SettlementFailed(reason, settlement.raw)

        logging.info("Facilitator settled payment in transaction %s", settlement.tx_hash)
        ctx.settlement = settlement
        return True

    def _retry(self, ctx: _FlowContext) -> bool:
        signed = ctx.require("signed")
        self._advance(ctx, FlowState.RETRYING)
        paid_request = ctx.request.with_header(PAYMENT_HEADER, signed.payment_header)
        response = self._send(paid_request)
        ctx.response = response
        if response.status_code == PAYMENT_REQUIRED_STATUS:
            logging.warning("Server still requires payment after the paid retry")
        return True

    # -- helpers ----------------------------------------------------------

    def _advance(self, ctx: _FlowContext, state: FlowState) -> None:
        logging.debug("x402 flow: %s -> %s", ctx.state.value, state.value)
        ctx.state = state
        ctx.states.append(state)

    def _check_cancelled(self, ctx: _FlowContext) -> None:
        if ctx.cancel_event is not None and ctx.cancel_event.is_set():
            raise FlowCancelled(f"Payment flow cancelled while {ctx.state.value}")

    def _check_network(self, requirements: PaymentRequirements) -> None:
        try:
            required = parse_network(requirements.network)
        except UnsupportedNetwork:
            logging.warning(
                "Server requested unknown network %r; signing for %s",
                requirements.network,
                self.network.value,
            )
            return
        if required is not self.network:
            raise NetworkMismatch(
                f"Server requires {required.value} but the client is configured for {self.network.value}"
            )

    def _send(self, request: HttpRequest) -> requests.Response:
        headers: Dict[str, str] = dict(request.headers)
        try:
            return self.session.request(
                request.method,
                request.url,
                headers=headers,
                data=request.body,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc
