import pytest

from nearctl.resolver import (
    ValidationExhausted,
    resolve_account_id,
    resolve_bounded_amount,
    resolve_choice,
    resolve_field,
)
from nearctl.units import NearBalance

IMPLICIT_ACCOUNT = "a" * 64


def _never_called(value, connection):
    raise AssertionError("network check must not run offline")


def test_valid_presupplied_value_is_used_without_prompting(scripted, connection):
    prompter = scripted()

    value = resolve_field(
        prompter,
        connection,
        name="amount",
        value="2NEAR",
        message="amount?",
        parse=NearBalance.parse,
        check=lambda amount, _conn: None,
    )

    assert value == NearBalance.from_near(2)
    assert prompter.prompts == []
    assert prompter.notices == []


def test_offline_skips_network_check(scripted):
    prompter = scripted()

    value = resolve_field(
        prompter, None, name="account", value="anything at all", message="?", check=_never_called
    )

    assert value == "anything at all"


def test_invalid_presupplied_value_reports_and_reprompts(scripted, connection):
    prompter = scripted(["missing.testnet", "b.testnet"])

    account_id = resolve_account_id(
        prompter, connection, name="receiver", value="nope.testnet", message="receiver?"
    )

    assert account_id == "b.testnet"
    assert prompter.notices == [
        "Account <nope.testnet> doesn't exist",
        "Account <missing.testnet> doesn't exist",
    ]
    assert [message for message, _ in prompter.prompts] == ["receiver?", "receiver?"]


def test_parse_failure_is_reported_like_a_failed_check(scripted):
    prompter = scripted(["1NEAR"])

    value = resolve_field(
        prompter, None, name="amount", value="lots", message="?", parse=NearBalance.parse
    )

    assert value == NearBalance.from_near(1)
    assert "'lots' is not a valid amount" in prompter.notices[0]


def test_non_interactive_run_fails_with_last_diagnostic(scripted, connection):
    with pytest.raises(ValidationExhausted) as excinfo:
        resolve_account_id(
            scripted(), connection, name="sender", value="ghost.testnet", message="sender?"
        )

    assert excinfo.value.field == "sender"
    assert excinfo.value.reason == "Account <ghost.testnet> doesn't exist"


def test_receiver_check_accepts_implicit_accounts(scripted, connection, stub_client):
    assert (
        resolve_account_id(
            scripted(),
            connection,
            name="receiver",
            value=IMPLICIT_ACCOUNT,
            message="?",
            allow_implicit=True,
        )
        == IMPLICIT_ACCOUNT
    )
    assert IMPLICIT_ACCOUNT not in stub_client.viewed_accounts


def test_bounded_amount_within_balance_is_accepted_unchanged(scripted, connection):
    prompter = scripted()

    amount = resolve_bounded_amount(
        prompter, connection, name="amount", value="10NEAR", message="?", account_id="a.testnet"
    )

    assert amount == NearBalance.from_near(10)
    assert prompter.prompts == []


def test_bounded_amount_above_balance_never_resolves_above_it(scripted, connection):
    prompter = scripted(["12NEAR", "3NEAR"])

    amount = resolve_bounded_amount(
        prompter, connection, name="amount", value="15NEAR", message="amount?", account_id="a.testnet"
    )

    assert amount == NearBalance.from_near(3)
    assert prompter.notices == ["You need to enter a value of no more than 10 NEAR"] * 2
    assert prompter.prompts[0] == ("amount?", "10 NEAR")


def test_bounded_amount_offline_has_no_bound(scripted):
    amount = resolve_bounded_amount(
        scripted(), None, name="amount", value="1000000NEAR", message="?", account_id="a.testnet"
    )

    assert amount == NearBalance.from_near(1000000)


def test_resolve_choice_uses_presupplied_key(scripted):
    prompter = scripted()

    choice = resolve_choice(
        prompter,
        name="mode",
        value="display",
        options=[("send", "Send"), ("display", "Display")],
        message="?",
    )

    assert choice == "display"
    assert prompter.selections == []


def test_resolve_choice_falls_back_to_menu_for_unknown_key(scripted):
    prompter = scripted([0])

    choice = resolve_choice(
        prompter,
        name="mode",
        value="teleport",
        options=[("send", "Send"), ("display", "Display")],
        message="How?",
    )

    assert choice == "send"
    assert prompter.selections == [("How?", ["Send", "Display"])]
    assert "'teleport' is not a valid mode" in prompter.notices[0]


def test_resolve_choice_without_input_is_exhausted(scripted):
    with pytest.raises(ValidationExhausted):
        resolve_choice(scripted(), name="mode", value=None, options=[("a", "A")], message="?")
