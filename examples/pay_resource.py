"""
Minimal script that uses the public API to pay for an x402-protected resource.
"""

from __future__ import annotations

import argparse
import logging
import sys

from strk_x402 import ConfigError, X402Error, load_client_config, x402_request


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch a paid resource using the SDK API")
    parser.add_argument("url", help="Resource URL protected by x402")
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to the .env file containing STARKNET_* and X402_* settings",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument(
        "--facilitator-url",
        help="Facilitator base URL; enables /verify and /settle before the retry",
    )
    parser.add_argument(
        "--auto-approve",
        action="store_true",
        help="Top up the spender's allowance when it is too low",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = load_client_config(env_file=args.env_file)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    try:
        result = x402_request(
            args.url,
            config=config,
            facilitator_url=args.facilitator_url,
            auto_approve=args.auto_approve,
        )
    except X402Error as exc:
        logging.error("Payment flow failed: %s", exc.to_dict())
        return 1

    if result.paid:
        logging.info("Paid with header %s...", result.payment_header[:32])
    logging.info("Server answered %s", result.response.status_code)
    print(result.response.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
