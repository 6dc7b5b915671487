"""
HTTP client helpers for the x402 facilitator.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .errors import TransportError
from .models import (
    X402_VERSION,
    PaymentRequirements,
    SettlementResult,
    VerificationResult,
)

__all__ = [
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "FacilitatorClient",
    "build_facilitator_request",
    "settle_payment",
    "verify_payment",
]

DEFAULT_HTTP_TIMEOUT_SECONDS = 30


def build_facilitator_request(
    payment_header: str, requirements: PaymentRequirements
) -> Dict[str, Any]:
    return {
        "x402Version": X402_VERSION,
        "paymentHeader": payment_header,
        "paymentRequirements": requirements.to_dict(),
    }


def _post_json(
    session: requests.Session,
    url: str,
    body: Dict[str, Any],
    *,
    expected_key: str,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> Dict[str, Any]:
    try:
        response = session.post(url, json=body, timeout=timeout)
    except requests.RequestException as exc:
        raise TransportError(f"Request to facilitator at {url} failed: {exc}") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise TransportError(
            f"Failed to parse JSON from facilitator at {url}",
            status=response.status_code,
            body=response.text,
        ) from exc

    if not isinstance(payload, dict):
        raise TransportError(
            f"Facilitator at {url} returned a non-object JSON body",
            status=response.status_code,
            body=response.text,
        )
    # Error statuses still carry a usable verdict when the inspected field is present.
    if response.status_code >= 400 and expected_key not in payload:
        raise TransportError(
            f"Facilitator responded with {response.status_code}",
            status=response.status_code,
            body=response.text,
        )
    return payload


def verify_payment(
    session: requests.Session,
    facilitator_url: str,
    body: Dict[str, Any],
    *,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> VerificationResult:
    verify_url = f"{facilitator_url}/verify"
    logging.info("Submitting payment for verification to %s", verify_url)
    payload = _post_json(session, verify_url, body, expected_key="isValid", timeout=timeout)
    return VerificationResult.from_response(payload)


def settle_payment(
    session: requests.Session,
    facilitator_url: str,
    body: Dict[str, Any],
    *,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> SettlementResult:
    settle_url = f"{facilitator_url}/settle"
    logging.info("Submitting payment for settlement to %s", settle_url)
    payload = _post_json(session, settle_url, body, expected_key="success", timeout=timeout)
    return SettlementResult.from_response(payload)


class FacilitatorClient:
    """
    Thin convenience wrapper around the facilitator endpoints.

    Both calls are single-shot. A successful settlement is trusted as
    reported; finality is not confirmed on-chain.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def verify(
        self, payment_header: str, requirements: PaymentRequirements
    ) -> VerificationResult:
        body = build_facilitator_request(payment_header, requirements)
        return verify_payment(self.session, self.base_url, body, timeout=self.timeout)

    def settle(
        self, payment_header: str, requirements: PaymentRequirements
    ) -> SettlementResult:
        body = build_facilitator_request(payment_header, requirements)
        return settle_payment(self.session, self.base_url, body, timeout=self.timeout)
