import base64
import json

import pytest

from nearctl.keys import SecretKey
from nearctl.model import Transfer, UnsignedTransaction
from nearctl.rpc_client import RPCError, RPCTransportError
from nearctl.signing import sign_with_secret_key
from nearctl.submit import (
    RETRY_NOTICE,
    SubmitMode,
    explain_execution_error,
    print_transaction_status,
    resolve_submit_mode,
    submit_transaction,
)
from nearctl.units import NearBalance

SECRET = SecretKey(bytes(range(32)))


def _signed():
    transaction = (
        UnsignedTransaction()
        .with_signer("a.testnet")
        .with_receiver("b.testnet")
        .with_action(Transfer(NearBalance.from_near(5)))
        .with_access_key(SECRET.public_key, 1, bytes([7]) * 32)
    )
    return sign_with_secret_key(transaction, SECRET)


def _timeout_error() -> RPCError:
    return RPCError(
        -32000,
        "Server error",
        data="Timeout",
        name="HANDLER_ERROR",
        cause={"name": "TIMEOUT_ERROR"},
    )


class FlakyClient:
    def __init__(self, failures, outcome) -> None:
        self.failures = list(failures)
        self.outcome = outcome
        self.payloads = []

    def broadcast_tx_commit(self, payload):
        self.payloads.append(payload)
        if self.failures:
            raise self.failures.pop(0)
        return self.outcome


@pytest.mark.parametrize("failures", [0, 1, 4])
def test_send_retries_transient_errors_exactly_n_times(scripted, connection, failures):
    outcome = {"status": {"SuccessValue": ""}, "transaction": {"hash": "h"}}
    client = FlakyClient([_timeout_error() for _ in range(failures)], outcome)
    connection = type(connection)(config=connection.config, client=client)
    prompter = scripted()
    signed = _signed()
    serialized = signed.canonical_serialization

    result = submit_transaction(prompter, signed, SubmitMode.SEND, connection)

    assert result == outcome
    assert len(client.payloads) == failures + 1
    assert set(client.payloads) == {signed.to_base64()}
    assert prompter.notices.count(RETRY_NOTICE) == failures
    assert signed.canonical_serialization == serialized


def test_transport_timeouts_are_retried_too(scripted, connection):
    outcome = {"status": {"SuccessValue": ""}}
    failures = [
        RPCTransportError("timed out", transient=True),
        RPCTransportError("gateway", status_code=504, transient=True),
    ]
    client = FlakyClient(failures, outcome)
    connection = type(connection)(config=connection.config, client=client)

    assert submit_transaction(scripted(), _signed(), SubmitMode.SEND, connection) == outcome
    assert len(client.payloads) == 3


def test_unreachable_endpoint_is_not_retried(scripted, connection):
    client = FlakyClient([RPCTransportError("connection refused")], {})
    connection = type(connection)(config=connection.config, client=client)

    with pytest.raises(RPCTransportError):
        submit_transaction(scripted(), _signed(), SubmitMode.SEND, connection)
    assert len(client.payloads) == 1


def test_structured_rejection_is_explained_and_not_retried(scripted, connection):
    rejection = RPCError(
        -32000,
        "Server error",
        data={"TxExecutionError": {"InvalidTxError": {"InvalidNonce": {"tx_nonce": 5, "ak_nonce": 9}}}},
        name="HANDLER_ERROR",
        cause={"name": "INVALID_TRANSACTION"},
    )
    client = FlakyClient([rejection], {})
    connection = type(connection)(config=connection.config, client=client)
    prompter = scripted()

    result = submit_transaction(prompter, _signed(), SubmitMode.SEND, connection)

    assert result is None
    assert len(client.payloads) == 1
    assert "Transaction nonce 5 must be larger than the access key nonce 9" in prompter.notices[-1]


def test_display_mode_prints_without_broadcasting(scripted, connection, stub_client):
    prompter = scripted()
    signed = _signed()

    assert submit_transaction(prompter, signed, SubmitMode.DISPLAY, connection) is None
    assert stub_client.broadcasts == []
    assert any(signed.to_base64() in notice for notice in prompter.notices)
    assert any(signed.hash in notice for notice in prompter.notices)


def test_offline_always_displays(scripted):
    prompter = scripted()

    assert resolve_submit_mode(prompter, None, "send") is SubmitMode.DISPLAY
    assert resolve_submit_mode(prompter, None, None) is SubmitMode.DISPLAY
    assert len(prompter.notices) == 1
    assert prompter.selections == []


def test_online_submit_mode_is_chosen(scripted, connection):
    assert resolve_submit_mode(scripted(), connection, "send") is SubmitMode.SEND
    assert resolve_submit_mode(scripted([1]), connection, None) is SubmitMode.DISPLAY


@pytest.mark.parametrize(
    "data, expected",
    [
        (
            {"InvalidTxError": {"NotEnoughBalance": {"signer_id": "a.testnet", "balance": str(10**24), "cost": str(2 * 10**24)}}},
            "does not have enough balance (1 NEAR) to cover the transaction cost (2 NEAR)",
        ),
        ({"InvalidTxError": "InvalidSignature"}, "signature does not match"),
        ({"InvalidTxError": "Expired"}, "has expired"),
        (
            {"ActionError": {"index": 0, "kind": {"AccountDoesNotExist": {"account_id": "x.testnet"}}}},
            "Account <x.testnet> does not exist",
        ),
        ({"ActionError": {"index": 1, "kind": {"FunctionCallError": {}}}}, "Action #1 failed"),
        ({"Something": "new"}, "was rejected"),
    ],
)
def test_execution_errors_are_explained(data, expected):
    assert expected in explain_execution_error(RPCError(-32000, "Server error", data=data))


def test_status_reports_success_value_and_explorer_link(scripted, connection):
    prompter = scripted()
    value = base64.b64encode(json.dumps({"ok": True}).encode()).decode()

    succeeded = print_transaction_status(
        prompter, {"status": {"SuccessValue": value}, "transaction": {"hash": "abc"}}, connection
    )

    output = "\n".join(prompter.notices)
    assert succeeded
    assert '"ok": true' in output
    assert "Transaction ID: abc" in output
    assert "https://explorer.testnet.near.org/transactions/abc" in output


def test_status_reports_failure(scripted, connection):
    prompter = scripted()
    outcome = {
        "status": {"Failure": {"ActionError": {"index": 0, "kind": {"LackBalanceForState": {"account_id": "b.testnet", "amount": str(10**24)}}}}},
        "transaction_outcome": {"id": "xyz"},
    }

    assert not print_transaction_status(prompter, outcome, connection)
    assert "Account <b.testnet> needs 1 NEAR more" in prompter.notices[0]
    assert "Transaction ID: xyz" in prompter.notices[1]
