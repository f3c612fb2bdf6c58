"""Build the ordered list of actions a transaction carries.

Each action kind has one builder that resolves its fields through
:mod:`nearctl.resolver`. :func:`build_action_chain` first applies the actions
queued on the command line, then keeps offering "add another action" until
the operator skips, or stops immediately when the command line said there
are no more actions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Sequence

from .context import ReceiverContext
from .keys import PublicKey, generate_keypair
from .model import (
    Action,
    AddFullAccessKey,
    AddFunctionCallKey,
    CreateAccount,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    FunctionCall,
    Stake,
    Transfer,
    UnsignedTransaction,
    describe_action,
)
from .prompts import Prompter
from .resolver import (
    parse_account_id,
    resolve_account_id,
    resolve_bounded_amount,
    resolve_choice,
    resolve_field,
)
from .units import DEFAULT_FUNCTION_CALL_GAS, MAX_GAS, NearBalance, NearGas

logger = logging.getLogger(__name__)

AMOUNT_EXAMPLE = "(example: 10NEAR or 0.5near or 10000yoctonear)"


@dataclass
class ActionArgs:
    """Pre-supplied values for one action; missing entries are prompted for."""

    kind: str | None = None
    fields: Dict[str, str] = field(default_factory=dict)


Builder = Callable[[Prompter, ReceiverContext, Mapping[str, str]], Action]


# Field parsers --------------------------------------------------------------


def _parse_allowance(raw: str) -> NearBalance | None:
    if raw.strip().lower() in {"", "unlimited"}:
        return None
    return NearBalance.parse(raw)


def _parse_method_names(raw: str) -> tuple[str, ...]:
    return tuple(name.strip() for name in raw.split(",") if name.strip())


def _parse_method_name(raw: str) -> str:
    name = raw.strip()
    if not name:
        raise ValueError("Method name must not be empty")
    return name


def _parse_json_args(raw: str) -> bytes:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Function arguments must be valid JSON: {exc}") from exc
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _parse_gas(raw: str) -> NearGas:
    gas = NearGas.parse(raw)
    if gas.gas > MAX_GAS:
        raise ValueError(f"You need to enter a value of no more than {NearGas(MAX_GAS)}")
    return gas


def _read_contract_code(raw: str) -> bytes:
    path = Path(raw.strip()).expanduser()
    try:
        code = path.read_bytes()
    except OSError as exc:
        raise ValueError(f"Failed to read contract file {path}: {exc}") from exc
    if not code:
        raise ValueError(f"Contract file {path} is empty")
    return code


# Builders -------------------------------------------------------------------


def build_transfer(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    amount = resolve_bounded_amount(
        prompter,
        context.connection,
        name="amount",
        value=fields.get("amount"),
        message=f"How many NEAR Tokens do you want to transfer? {AMOUNT_EXAMPLE}",
        account_id=context.sender_account_id,
    )
    return Transfer(deposit=amount)


def build_stake(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    amount = resolve_bounded_amount(
        prompter,
        context.connection,
        name="amount",
        value=fields.get("amount"),
        message=f"Enter the amount to stake {AMOUNT_EXAMPLE}",
        account_id=context.sender_account_id,
    )
    validator_key = resolve_field(
        prompter,
        context.connection,
        name="validator-key",
        value=fields.get("validator-key"),
        message="Enter the validator's public key",
        parse=PublicKey.from_string,
    )
    return Stake(amount=amount, public_key=validator_key)


def _resolve_new_public_key(
    prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]
) -> PublicKey:
    source = None
    if fields.get("generate"):
        source = "generate"
    elif fields.get("public-key"):
        source = "public-key"
    source = resolve_choice(
        prompter,
        name="key source",
        value=source,
        options=[
            ("public-key", "I want to use my own public key"),
            ("generate", "Automatically generate a key pair"),
        ],
        message="How do you want to get the access key?",
    )
    if source == "generate":
        secret = generate_keypair()
        prompter.notify(
            "Generated a new key pair; store the secret key now, it is not saved anywhere:\n"
            f"  public key: {secret.public_key}\n"
            f"  secret key: {secret}"
        )
        return secret.public_key
    return resolve_field(
        prompter,
        context.connection,
        name="public-key",
        value=fields.get("public-key"),
        message="Enter a public key for this access key",
        parse=PublicKey.from_string,
    )


def build_add_key(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    permission = resolve_choice(
        prompter,
        name="permission",
        value=fields.get("permission"),
        options=[
            ("full-access", "A permission with full access"),
            ("function-call", "A permission with function call"),
        ],
        message="Select a permission that you want to add to the access key",
    )
    public_key = _resolve_new_public_key(prompter, context, fields)
    if permission == "full-access":
        return AddFullAccessKey(public_key=public_key)

    allowance = resolve_field(
        prompter,
        context.connection,
        name="allowance",
        value=fields.get("allowance"),
        message=(
            "Enter the allowance, a budget this access key may spend on gas and fees "
            f"{AMOUNT_EXAMPLE}, or 'unlimited'"
        ),
        parse=_parse_allowance,
        default="unlimited",
    )
    receiver_id = resolve_field(
        prompter,
        context.connection,
        name="contract",
        value=fields.get("contract"),
        message="Enter the contract account ID this key may call",
        parse=parse_account_id,
    )
    method_names = resolve_field(
        prompter,
        context.connection,
        name="method-names",
        value=fields.get("method-names"),
        message="Enter a comma-separated list of allowed method names (leave empty for any method)",
        parse=_parse_method_names,
        default="",
    )
    return AddFunctionCallKey(
        public_key=public_key,
        allowance=allowance,
        receiver_id=receiver_id,
        method_names=method_names,
    )


def build_delete_key(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    public_key = resolve_field(
        prompter,
        context.connection,
        name="public-key",
        value=fields.get("public-key"),
        message="Enter the public key of the access key to delete",
        parse=PublicKey.from_string,
    )
    return DeleteKey(public_key=public_key)


def build_delete_account(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    beneficiary_id = resolve_account_id(
        prompter,
        context.connection,
        name="beneficiary",
        value=fields.get("beneficiary"),
        message="What is the beneficiary account ID?",
    )
    return DeleteAccount(beneficiary_id=beneficiary_id)


def build_function_call(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    method_name = resolve_field(
        prompter,
        context.connection,
        name="method",
        value=fields.get("method"),
        message="What is the name of the function?",
        parse=_parse_method_name,
    )
    args = resolve_field(
        prompter,
        context.connection,
        name="args",
        value=fields.get("args"),
        message="Enter the function arguments as JSON",
        parse=_parse_json_args,
        default="{}",
    )
    gas = resolve_field(
        prompter,
        context.connection,
        name="gas",
        value=fields.get("gas"),
        message="Enter gas for the function call (example: 100 TeraGas or 30 Tgas)",
        parse=_parse_gas,
        default=str(NearGas(DEFAULT_FUNCTION_CALL_GAS)),
    )
    deposit = resolve_field(
        prompter,
        context.connection,
        name="deposit",
        value=fields.get("deposit"),
        message=f"Enter the deposit to attach to the call {AMOUNT_EXAMPLE}",
        parse=NearBalance.parse,
        default=str(NearBalance(0)),
    )
    return FunctionCall(method_name=method_name, args=args, gas=gas, deposit=deposit)


def build_deploy_contract(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    code = resolve_field(
        prompter,
        context.connection,
        name="wasm-file",
        value=fields.get("wasm-file"),
        message="What is the path to the contract WASM file?",
        parse=_read_contract_code,
    )
    return DeployContract(code=code)


def build_create_account(prompter: Prompter, context: ReceiverContext, fields: Mapping[str, str]) -> Action:
    return CreateAccount()


ACTION_BUILDERS: Dict[str, Builder] = {
    Transfer.kind: build_transfer,
    Stake.kind: build_stake,
    "add-key": build_add_key,
    DeleteKey.kind: build_delete_key,
    DeleteAccount.kind: build_delete_account,
    FunctionCall.kind: build_function_call,
    DeployContract.kind: build_deploy_contract,
    CreateAccount.kind: build_create_account,
}

ACTION_MENU = [
    (Transfer.kind, "Transfer NEAR tokens"),
    (FunctionCall.kind, "Call a function"),
    (Stake.kind, "Stake NEAR tokens"),
    (CreateAccount.kind, "Create a sub-account"),
    ("add-key", "Add an access key"),
    (DeleteKey.kind, "Delete an access key"),
    (DeployContract.kind, "Deploy a contract"),
    (DeleteAccount.kind, "Delete the account"),
]

# Keys accepted in ``--action KIND key=value`` items.
ACTION_FIELDS: Dict[str, frozenset[str]] = {
    Transfer.kind: frozenset({"amount"}),
    Stake.kind: frozenset({"amount", "validator-key"}),
    "add-key": frozenset(
        {"permission", "public-key", "generate", "allowance", "contract", "method-names"}
    ),
    DeleteKey.kind: frozenset({"public-key"}),
    DeleteAccount.kind: frozenset({"beneficiary"}),
    FunctionCall.kind: frozenset({"method", "args", "gas", "deposit"}),
    DeployContract.kind: frozenset({"wasm-file"}),
    CreateAccount.kind: frozenset(),
}

NEXT_ACTION_MENU = [
    ("add", "Add another action"),
    ("skip", "Skip adding a new action"),
]


def resolve_action(prompter: Prompter, context: ReceiverContext, args: ActionArgs) -> Action:
    kind = resolve_choice(
        prompter,
        name="action",
        value=args.kind,
        options=ACTION_MENU,
        message="Select an action that you want to add to the transaction",
    )
    action = ACTION_BUILDERS[kind](prompter, context, args.fields)
    logger.debug("Resolved action: %s", describe_action(action))
    return action


def build_action_chain(
    prompter: Prompter,
    context: ReceiverContext,
    transaction: UnsignedTransaction,
    *,
    preset: Sequence[ActionArgs] = (),
    finished: bool = False,
) -> UnsignedTransaction:
    """Append queued actions in order, then interactive ones until the operator skips."""

    for args in preset:
        transaction = transaction.with_action(resolve_action(prompter, context, args))
    while not finished:
        choice = resolve_choice(
            prompter,
            name="next action",
            value=None,
            options=NEXT_ACTION_MENU,
            message="Do you want to add another action?",
        )
        if choice == "skip":
            break
        transaction = transaction.with_action(resolve_action(prompter, context, ActionArgs()))
    return transaction
