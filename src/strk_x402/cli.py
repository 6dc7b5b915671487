"""
Command-line interface for the Starknet x402 client.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import requests

from .api import create_chain_client, create_payment_flow
from .core.allowance import approve, get_allowance
from .core.config import ClientConfig, load_client_config
from .core.errors import ConfigError, X402Error
from .core.flow import PAYMENT_HEADER, HttpRequest
from .core.networks import (
    explorer_contract_url,
    explorer_tx_url,
    normalize_address,
    parse_network,
)
from .core.payloads import sign_payment
from .core.tokens import resolve_token, to_base_units


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _env_override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _header(value: str) -> Tuple[str, str]:
    if ":" not in value:
        raise argparse.ArgumentTypeError("Headers must look like 'Name: value'")
    name, val = value.split(":", 1)
    name = name.strip()
    if not name:
        raise argparse.ArgumentTypeError("Header name must not be empty")
    return name, val.strip()


def _collect_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def _emit(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strk-x402",
        description="x402 payments for Starknet (client-side)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to the env file (default: ./.env, then ~/.strk-x402/.env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_env_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    pay = commands.add_parser(
        "pay", help="Generate a base64 X-PAYMENT header for an exact-scheme payment"
    )
    pay.add_argument("--to", required=True, help="Recipient address (payTo)")
    pay.add_argument("--token", required=True, help="Token symbol (e.g. STRK) or address")
    pay.add_argument("--amount", required=True, help="Amount in human units (e.g. 0.01)")
    pay.add_argument("--network", help="sepolia|mainnet (default: from config)")
    pay.add_argument(
        "--deadline",
        type=int,
        default=None,
        help="Deadline in seconds from now (default: X402_PAYMENT_DEADLINE_SECONDS)",
    )

    approve_cmd = commands.add_parser(
        "approve", help="Approve a facilitator/spender to transfer your tokens"
    )
    approve_cmd.add_argument("--token", required=True, help="Token symbol or address")
    approve_cmd.add_argument("--spender", help="Spender address (default: X402_SPENDER_ADDRESS)")
    approve_cmd.add_argument("--amount", required=True, help="Amount in human units to approve")
    approve_cmd.add_argument(
        "--wait", action="store_true", help="Block until the approval is confirmed"
    )

    allowance_cmd = commands.add_parser(
        "allowance", help="Show how much a spender may move on your behalf"
    )
    allowance_cmd.add_argument("--token", required=True, help="Token symbol or address")
    allowance_cmd.add_argument("--spender", help="Spender address (default: X402_SPENDER_ADDRESS)")
    allowance_cmd.add_argument("--owner", help="Owner address (default: STARKNET_ACCOUNT_ADDRESS)")

    request_cmd = commands.add_parser(
        "request",
        help="Make an HTTP request; on 402 sign, optionally settle, and retry with X-PAYMENT",
    )
    request_cmd.add_argument("--url", required=True, help="Resource URL")
    request_cmd.add_argument("--method", default="GET", help="HTTP method (default GET)")
    request_cmd.add_argument("--data", help="JSON body (for POST/PUT)")
    request_cmd.add_argument(
        "--header",
        action="append",
        type=_header,
        metavar="NAME: VALUE",
        default=None,
        help="Extra request header (repeatable)",
    )
    request_cmd.add_argument("--network", help="sepolia|mainnet (default: from config)")
    request_cmd.add_argument(
        "--facilitator", help="Facilitator base URL (if set, calls /verify and /settle)"
    )
    request_cmd.add_argument(
        "--amount", help="Pay this many base units instead of maxAmountRequired"
    )
    request_cmd.add_argument(
        "--auto-approve",
        action="store_true",
        help="Raise the spender's allowance first when it is too low",
    )
    request_cmd.add_argument("--spender", help="Spender address (default: X402_SPENDER_ADDRESS)")
    return parser


def _spender(args: argparse.Namespace, config: ClientConfig) -> str:
    spender = args.spender or config.spender_address
    if not spender:
        raise ConfigError("A spender is required (--spender or X402_SPENDER_ADDRESS)")
    return normalize_address(spender, "spender")


def _cmd_pay(args: argparse.Namespace, config: ClientConfig) -> int:
    network = parse_network(args.network or config.network)
    chain = create_chain_client(config)
    token = resolve_token(args.token)
    amount = to_base_units(args.amount, token.decimals)
    deadline_seconds = args.deadline if args.deadline is not None else config.deadline_seconds

    signed = sign_payment(
        chain,
        network=network,
        to=normalize_address(args.to, "to"),
        token=token.address,
        amount=str(amount),
        deadline=int(time.time()) + deadline_seconds,
    )
    _emit(
        {
            "from": chain.address,
            "network": network.value,
            "payment": signed.payment.to_dict(),
            "paymentHeader": signed.payment_header,
            "headerName": PAYMENT_HEADER,
        }
    )
    return 0


def _cmd_approve(args: argparse.Namespace, config: ClientConfig) -> int:
    chain = create_chain_client(config)
    token = resolve_token(args.token)
    spender = _spender(args, config)
    amount = to_base_units(args.amount, token.decimals)

    result = approve(chain, token=token.address, spender=spender, amount=amount)
    if args.wait:
        chain.wait_for_transaction(
            result.transaction_hash, timeout_seconds=config.approval_timeout_seconds
        )
        logging.info("Approval %s confirmed", result.transaction_hash)

    _emit(
        {
            "token": token.address,
            "spender": spender,
            "amount": str(amount),
            "transactionHash": result.transaction_hash,
            "explorerUrl": explorer_tx_url(config.network, result.transaction_hash),
        }
    )
    return 0


def _cmd_allowance(args: argparse.Namespace, config: ClientConfig) -> int:
    owner = args.owner or config.account_address
    if not owner:
        raise ConfigError("An owner is required (--owner or STARKNET_ACCOUNT_ADDRESS)")
    chain = create_chain_client(config)
    token = resolve_token(args.token)
    spender = _spender(args, config)

    allowance = get_allowance(chain, owner=owner, spender=spender, token=token.address)
    _emit(
        {
            "owner": normalize_address(owner, "owner"),
            "spender": spender,
            "token": token.address,
            "allowance": str(allowance),
            "formatted": str(Decimal(allowance).scaleb(-token.decimals)),
            "tokenUrl": explorer_contract_url(config.network, token.address),
        }
    )
    return 0


def _cmd_request(
    args: argparse.Namespace,
    config: ClientConfig,
    session: Optional[requests.Session] = None,
) -> int:
    network = parse_network(args.network or config.network)
    headers = _collect_overrides(args.header or ())
    body: Optional[str] = None
    if args.data:
        try:
            body = json.dumps(json.loads(args.data), separators=(",", ":"))
        except ValueError as exc:
            raise ConfigError(f"--data must be valid JSON: {exc}") from exc
        headers.setdefault("content-type", "application/json")

    flow = create_payment_flow(
        config=config,
        session=session,
        network=network,
        facilitator_url=args.facilitator,
        spender=args.spender,
        auto_approve=args.auto_approve,
    )
    result = flow.run(
        HttpRequest(url=args.url, method=args.method.upper(), headers=headers, body=body),
        amount_override=args.amount,
    )

    tx_hash = result.settlement.tx_hash if result.settlement else None
    _emit(
        {
            "status": result.response.status_code,
            "ok": result.response.ok,
            "requirements": result.requirements.to_dict() if result.requirements else None,
            "settlement": result.settlement.raw if result.settlement else None,
            "txHash": tx_hash,
            "explorerUrl": explorer_tx_url(network, tx_hash) if tx_hash else None,
            "approveTxHash": result.approve_tx_hash,
            "body": result.response.text,
        }
    )
    return 0


_COMMANDS = {
    "pay": _cmd_pay,
    "approve": _cmd_approve,
    "allowance": _cmd_allowance,
}


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    session: Optional[requests.Session] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_overrides(args.set or ())

    try:
        config = load_client_config(env_file=args.env_file, overrides=overrides)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1
    logging.debug("Configuration loaded from %s", config.describe_sources())

    try:
        if args.command == "request":
            return _cmd_request(args, config, session=session)
        return _COMMANDS[args.command](args, config)
    except X402Error as exc:
        logging.error("%s: %s", exc.kind, exc.message)
        print(json.dumps(exc.to_dict(), indent=2, default=str), file=sys.stderr)
        return 1
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid input: %s", exc)
        print(
            json.dumps({"error": "InvalidInput", "message": str(exc)}, indent=2),
            file=sys.stderr,
        )
        return 1


def main() -> None:
    sys.exit(run_cli())
