import json

import pytest

from strk_x402 import cli
from strk_x402.core.payloads import decode_payment_header

from conftest import (
    PAYEE,
    PAYER,
    SPENDER,
    FakeChainClient,
    FakeResponse,
    FakeSession,
    payment_required,
    requirements_body,
)

_ENV_KEYS = (
    "STARKNET_ACCOUNT_ADDRESS",
    "STARKNET_PRIVATE_KEY",
    "STARKNET_RPC_URL",
    "X402_NETWORK",
    "X402_FACILITATOR_URL",
    "X402_SPENDER_ADDRESS",
)


@pytest.fixture
def env_file(tmp_path, monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "client.env"
    path.write_text(
        f"STARKNET_ACCOUNT_ADDRESS={PAYER}\n"
        "STARKNET_PRIVATE_KEY=0x1234\n"
        f"X402_SPENDER_ADDRESS={SPENDER}\n",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def fake_chain(monkeypatch):
    chain = FakeChainClient(allowance=0)
    monkeypatch.setattr(cli, "create_chain_client", lambda config: chain)
    monkeypatch.setattr("strk_x402.api.create_chain_client", lambda config: chain)
    return chain


def test_parser_collects_request_options():
    args = cli.build_parser().parse_args(
        [
            "request",
            "--url",
            "https://api.test/r",
            "--header",
            "X-Trace: 1",
            "--auto-approve",
            "--amount",
            "10",
        ]
    )
    assert args.header == [("X-Trace", "1")]
    assert args.auto_approve and args.amount == "10"


def test_pay_prints_signed_header(env_file, fake_chain, capsys):
    code = cli.run_cli(
        ["--env-file", env_file, "pay", "--to", PAYEE, "--token", "USDC", "--amount", "1.5"]
    )

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["headerName"] == "X-PAYMENT"
    payment = decode_payment_header(output["paymentHeader"])
    assert payment.payload.amount == "1500000"
    assert payment.network == "starknet-sepolia"


def test_allowance_prints_formatted_amount(env_file, fake_chain, capsys):
    fake_chain.allowance = 2_500_000

    code = cli.run_cli(["--env-file", env_file, "allowance", "--token", "USDC"])

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["allowance"] == "2500000"
    assert output["formatted"] == "2.500000"
    assert output["tokenUrl"].startswith("https://sepolia.voyager.online/contract/0x")


def test_request_runs_the_payment_flow(env_file, fake_chain, capsys):
    session = FakeSession(
        [payment_required(requirements_body()), FakeResponse(200, text="paid content")]
    )

    code = cli.run_cli(
        ["--env-file", env_file, "request", "--url", "https://api.test/r", "--data", '{"a": 1}'],
        session=session,
    )

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["status"] == 200
    assert output["body"] == "paid content"
    assert output["requirements"]["maxAmountRequired"] == "1000"
    retry = session.requests[1]
    assert retry["method"] == "GET"
    assert retry["data"] == '{"a":1}'
    assert retry["headers"]["content-type"] == "application/json"
    assert "X-PAYMENT" in retry["headers"]


def test_request_failure_is_structured(env_file, fake_chain, capsys):
    session = FakeSession([payment_required()])

    code = cli.run_cli(
        ["--env-file", env_file, "request", "--url", "https://api.test/r"], session=session
    )

    assert code == 1
    error = json.loads(capsys.readouterr().err)
    assert error["error"] == "MissingRequirements"
    assert error["state"] == "challenge-received"


def test_invalid_configuration_exits_with_error(tmp_path, monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "bad.env"
    path.write_text("X402_NETWORK=goerli\n", encoding="utf-8")

    assert cli.run_cli(["--env-file", str(path), "allowance", "--token", "STRK"]) == 1


def test_bad_amount_override_is_structured(env_file, fake_chain, capsys):
    session = FakeSession([])

    code = cli.run_cli(
        ["--env-file", env_file, "request", "--url", "https://api.test/r", "--amount", "1.5"],
        session=session,
    )

    assert code == 1
    error = json.loads(capsys.readouterr().err)
    assert error["error"] == "InvalidAmount"
    assert session.requests == []


def test_invalid_input_is_structured(env_file, fake_chain, capsys):
    code = cli.run_cli(
        ["--env-file", env_file, "pay", "--to", "not-an-address", "--token", "STRK", "--amount", "1"]
    )

    assert code == 1
    error = json.loads(capsys.readouterr().err)
    assert error["error"] == "InvalidInput"
