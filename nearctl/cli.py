"""Command line interface for nearctl.

Every flag is optional: whatever is missing is asked for interactively, or
reported as an error under ``--non-interactive``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Dict, List, Mapping, Sequence

from .actions import ACTION_FIELDS, ActionArgs
from .config import ConfigurationError, credentials_dir, set_default_config_path
from .keys import KeyFormatError
from .pipeline import TransactionArgs, resolve_network_context, run_transaction
from .prompts import ConsolePrompter, InputUnavailable, NonInteractivePrompter, Prompter
from .resolver import ValidationExhausted, resolve_choice
from .rpc_client import RPCError, RPCTransportError
from .signing import SignArgs, SignOptionRegistry, SigningError
from .units import AmountFormatError
from .views import (
    view_account_summary,
    view_nonce,
    view_recent_block_hash,
    view_transaction_status,
)

logger = logging.getLogger(__name__)

COMMAND_MENU = [
    ("transfer", "Transfer NEAR tokens to another account"),
    ("call", "Call a contract method"),
    ("stake", "Stake NEAR tokens with a validator"),
    ("add-key", "Add an access key to an account"),
    ("delete-key", "Delete an access key from an account"),
    ("delete-account", "Delete an account"),
    ("deploy", "Deploy a contract"),
    ("construct-transaction", "Construct a transaction with any list of actions"),
    ("view", "View account, access key, block or transaction state"),
]

VIEW_MENU = [
    ("account-summary", "View the balance and access keys of an account"),
    ("nonce", "View the nonce of an access key"),
    ("recent-block-hash", "View the hash of a recent block"),
    ("tx-status", "View the status of a transaction"),
]


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _add_sign_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("signing")
    group.add_argument(
        "--sign-with",
        help="Signing tool: private-key, keychain or manual",
    )
    group.add_argument("--signer-public-key", help="Signer public key (ed25519:...)")
    group.add_argument("--signer-private-key", help="Signer private key (ed25519:...)")
    group.add_argument("--nonce", help="Access key nonce to use in offline mode")
    group.add_argument("--block-hash", help="Recent block hash (base58) to use in offline mode")
    group.add_argument(
        "--keychain-network",
        help="Keychain sub-directory to read the key from (default: the selected network)",
    )


def _add_submit_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--submit",
        choices=["send", "display"],
        help="Send the signed transaction or only display it (offline runs always display)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nearctl", description="Construct, sign and send NEAR transactions"
    )
    parser.add_argument("--config", help="Path to a YAML config file (default: ~/.nearctl.yaml)")
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Fail instead of prompting when a value is missing or invalid",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--network", help="Network name (mainnet, testnet or one from the config)")
    mode.add_argument(
        "--offline",
        action="store_true",
        help="Air-gapped mode: skip network checks and only display the signed transaction",
    )
    parser.add_argument("--rpc-url", help="Override the RPC endpoint of the selected network")
    subparsers = parser.add_subparsers(dest="command")

    transfer_parser = subparsers.add_parser("transfer", help="Transfer NEAR tokens")
    transfer_parser.add_argument("--sender", help="Sender account ID")
    transfer_parser.add_argument("--receiver", help="Receiver account ID")
    transfer_parser.add_argument("--amount", help="Amount to send, e.g. 10NEAR or 0.5near")
    _add_sign_arguments(transfer_parser)
    _add_submit_arguments(transfer_parser)

    call_parser = subparsers.add_parser("call", help="Call a contract method")
    call_parser.add_argument("--sender", help="Account that signs the call")
    call_parser.add_argument("--contract", help="Contract account ID")
    call_parser.add_argument("--method", help="Method name")
    call_parser.add_argument("--args", help="JSON arguments (default: {})")
    call_parser.add_argument("--gas", help="Prepaid gas, e.g. 100 TeraGas (default: 100 Tgas)")
    call_parser.add_argument("--deposit", help="Attached deposit, e.g. 1NEAR (default: 0 NEAR)")
    _add_sign_arguments(call_parser)
    _add_submit_arguments(call_parser)

    stake_parser = subparsers.add_parser("stake", help="Stake NEAR tokens with a validator key")
    stake_parser.add_argument("--account", help="Account that stakes")
    stake_parser.add_argument("--amount", help="Amount to stake, e.g. 100NEAR")
    stake_parser.add_argument("--validator-key", help="Validator public key (ed25519:...)")
    _add_sign_arguments(stake_parser)
    _add_submit_arguments(stake_parser)

    add_key_parser = subparsers.add_parser("add-key", help="Add an access key to an account")
    add_key_parser.add_argument("--account", help="Account that receives the key")
    add_key_parser.add_argument(
        "--permission", help="full-access or function-call"
    )
    key_source = add_key_parser.add_mutually_exclusive_group()
    key_source.add_argument("--public-key", help="Public key to add (ed25519:...)")
    key_source.add_argument(
        "--generate-key", action="store_true", help="Generate a new key pair and add its public key"
    )
    add_key_parser.add_argument("--allowance", help="Function-call key allowance or 'unlimited'")
    add_key_parser.add_argument("--contract", help="Contract the function-call key may call")
    add_key_parser.add_argument(
        "--method-names", help="Comma-separated methods the key may call (empty: any)"
    )
    _add_sign_arguments(add_key_parser)
    _add_submit_arguments(add_key_parser)

    delete_key_parser = subparsers.add_parser("delete-key", help="Delete an access key")
    delete_key_parser.add_argument("--account", help="Account that owns the key")
    delete_key_parser.add_argument("--public-key", help="Public key to delete (ed25519:...)")
    _add_sign_arguments(delete_key_parser)
    _add_submit_arguments(delete_key_parser)

    delete_account_parser = subparsers.add_parser("delete-account", help="Delete an account")
    delete_account_parser.add_argument("--account", help="Account to delete")
    delete_account_parser.add_argument(
        "--beneficiary", help="Account that receives the remaining balance"
    )
    _add_sign_arguments(delete_account_parser)
    _add_submit_arguments(delete_account_parser)

    deploy_parser = subparsers.add_parser("deploy", help="Deploy a contract to an account")
    deploy_parser.add_argument("--account", help="Account to deploy to")
    deploy_parser.add_argument("--wasm-file", help="Path to the contract WASM file")
    deploy_parser.add_argument("--init-method", help="Initialization method to call after deploy")
    deploy_parser.add_argument("--init-args", help="JSON arguments for the init method (default: {})")
    deploy_parser.add_argument("--init-gas", help="Gas for the init call (default: 100 Tgas)")
    deploy_parser.add_argument("--init-deposit", help="Deposit for the init call (default: 0 NEAR)")
    _add_sign_arguments(deploy_parser)
    _add_submit_arguments(deploy_parser)

    construct_parser = subparsers.add_parser(
        "construct-transaction", help="Construct a transaction with any list of actions"
    )
    construct_parser.add_argument("--sender", help="Signer account ID")
    construct_parser.add_argument("--receiver", help="Receiver account ID")
    construct_parser.add_argument(
        "--action",
        nargs="+",
        action="append",
        default=[],
        metavar=("KIND", "KEY=VALUE"),
        help=(
            "Queue an action, e.g. --action transfer amount=1NEAR; repeat for more actions. "
            "Kinds: " + ", ".join(sorted(ACTION_FIELDS))
        ),
    )
    construct_parser.add_argument(
        "--no-more-actions",
        action="store_true",
        help="Do not offer to add actions beyond the queued ones",
    )
    _add_sign_arguments(construct_parser)
    _add_submit_arguments(construct_parser)

    view_parser = subparsers.add_parser("view", help="View network state")
    view_subparsers = view_parser.add_subparsers(dest="view_command")
    summary_parser = view_subparsers.add_parser(
        "account-summary", help="Balance, storage and access keys of an account"
    )
    summary_parser.add_argument("--account", help="Account ID")
    block = summary_parser.add_mutually_exclusive_group()
    block.add_argument("--block-height", type=int, help="View the account at this block height")
    block.add_argument("--block-hash", help="View the account at this block hash")
    nonce_parser = view_subparsers.add_parser("nonce", help="Nonce of an access key")
    nonce_parser.add_argument("--account", help="Account ID")
    nonce_parser.add_argument("--public-key", help="Public key of the access key")
    view_subparsers.add_parser("recent-block-hash", help="Hash of the latest final block")
    tx_parser = view_subparsers.add_parser("tx-status", help="Status of a sent transaction")
    tx_parser.add_argument("--hash", help="Transaction hash")
    tx_parser.add_argument("--sender", help="Sender account ID of the transaction")

    return parser


def _fields(values: Mapping[str, str | None]) -> Dict[str, str]:
    return {key: value for key, value in values.items() if value is not None}


def _parse_action_items(items: Sequence[Sequence[str]]) -> List[ActionArgs]:
    actions = []
    for item in items:
        kind, *pairs = item
        allowed = ACTION_FIELDS.get(kind)
        fields: Dict[str, str] = {}
        for pair in pairs:
            key, sep, value = pair.partition("=")
            if not sep or not key:
                raise CLIError(f"Expected KEY=VALUE after --action {kind}, got '{pair}'")
            if allowed is not None and key not in allowed:
                expected = ", ".join(sorted(allowed)) or "no fields"
                raise CLIError(f"Unknown field '{key}' for action {kind}; expected {expected}")
            fields[key] = value
        actions.append(ActionArgs(kind=kind, fields=fields))
    return actions


def _sign_args(args: argparse.Namespace) -> SignArgs:
    return SignArgs(
        method=args.sign_with,
        signer_public_key=args.signer_public_key,
        signer_private_key=args.signer_private_key,
        nonce=args.nonce,
        block_hash=args.block_hash,
        keychain_network=args.keychain_network,
    )


def _single_action(args: argparse.Namespace, kind: str, fields: Mapping[str, str | None], **kwargs) -> TransactionArgs:
    return TransactionArgs(
        actions=[ActionArgs(kind=kind, fields=_fields(fields))],
        finished=True,
        sign=_sign_args(args),
        submit=args.submit,
        **kwargs,
    )


def transfer_args(args: argparse.Namespace) -> TransactionArgs:
    return _single_action(
        args, "transfer", {"amount": args.amount}, sender=args.sender, receiver=args.receiver
    )


def call_args(args: argparse.Namespace) -> TransactionArgs:
    fields = {"method": args.method, "args": args.args, "gas": args.gas, "deposit": args.deposit}
    return _single_action(
        args, "function-call", fields, sender=args.sender, receiver=args.contract
    )


def stake_args(args: argparse.Namespace) -> TransactionArgs:
    fields = {"amount": args.amount, "validator-key": args.validator_key}
    return _single_action(args, "stake", fields, sender=args.account, receiver_is_sender=True)


def add_key_args(args: argparse.Namespace) -> TransactionArgs:
    fields = {
        "permission": args.permission,
        "public-key": args.public_key,
        "generate": "yes" if args.generate_key else None,
        "allowance": args.allowance,
        "contract": args.contract,
        "method-names": args.method_names,
    }
    return _single_action(args, "add-key", fields, sender=args.account, receiver_is_sender=True)


def delete_key_args(args: argparse.Namespace) -> TransactionArgs:
    return _single_action(
        args,
        "delete-key",
        {"public-key": args.public_key},
        sender=args.account,
        receiver_is_sender=True,
    )


def delete_account_args(args: argparse.Namespace) -> TransactionArgs:
    return _single_action(
        args,
        "delete-account",
        {"beneficiary": args.beneficiary},
        sender=args.account,
        receiver_is_sender=True,
    )


def deploy_args(args: argparse.Namespace) -> TransactionArgs:
    actions = [ActionArgs(kind="deploy-contract", fields=_fields({"wasm-file": args.wasm_file}))]
    if args.init_method:
        actions.append(
            ActionArgs(
                kind="function-call",
                fields={
                    "method": args.init_method,
                    "args": args.init_args or "{}",
                    "gas": args.init_gas or "100 Tgas",
                    "deposit": args.init_deposit or "0 NEAR",
                },
            )
        )
    return TransactionArgs(
        sender=args.account,
        receiver_is_sender=True,
        actions=actions,
        finished=True,
        sign=_sign_args(args),
        submit=args.submit,
    )


def construct_transaction_args(args: argparse.Namespace) -> TransactionArgs:
    return TransactionArgs(
        sender=args.sender,
        receiver=args.receiver,
        check_receiver=False,
        actions=_parse_action_items(args.action),
        finished=args.no_more_actions,
        sign=_sign_args(args),
        submit=args.submit,
    )


TRANSACTION_COMMANDS: Dict[str, Callable[[argparse.Namespace], TransactionArgs]] = {
    "transfer": transfer_args,
    "call": call_args,
    "stake": stake_args,
    "add-key": add_key_args,
    "delete-key": delete_key_args,
    "delete-account": delete_account_args,
    "deploy": deploy_args,
    "construct-transaction": construct_transaction_args,
}


def _complete_command(
    parser: argparse.ArgumentParser,
    argv: List[str],
    args: argparse.Namespace,
    prompter: Prompter,
) -> argparse.Namespace:
    """Ask for the command (and view) when it was left off the command line."""

    if args.command is None:
        command = resolve_choice(
            prompter,
            name="command",
            value=None,
            options=COMMAND_MENU,
            message="What are you up to?",
        )
        argv = [*argv, command]
        args = parser.parse_args(argv)
    if args.command == "view" and args.view_command is None:
        view = resolve_choice(
            prompter,
            name="view",
            value=None,
            options=VIEW_MENU,
            message="What do you want to view?",
        )
        args = parser.parse_args([*argv, view])
    return args


def cmd_view(args: argparse.Namespace, prompter: Prompter) -> int:
    if args.offline:
        raise CLIError("view commands need a network connection; drop --offline")
    network_context = resolve_network_context(
        prompter,
        network=args.network,
        allow_offline=False,
        config_path=args.config,
        rpc_url=args.rpc_url,
    )
    connection = network_context.connection
    if args.view_command == "account-summary":
        view_account_summary(
            prompter,
            connection,
            account_id=args.account,
            block_height=args.block_height,
            block_hash=args.block_hash,
        )
    elif args.view_command == "nonce":
        view_nonce(prompter, connection, account_id=args.account, public_key=args.public_key)
    elif args.view_command == "recent-block-hash":
        view_recent_block_hash(prompter, connection)
    elif args.view_command == "tx-status":
        if not view_transaction_status(
            prompter, connection, tx_hash=args.hash, sender_id=args.sender
        ):
            return 1
    else:  # pragma: no cover - argparse enforces choices
        raise CLIError(f"Unknown view: {args.view_command}")
    return 0


def cmd_transaction(args: argparse.Namespace, prompter: Prompter) -> int:
    builder = TRANSACTION_COMMANDS.get(args.command)
    if builder is None:  # pragma: no cover - argparse enforces choices
        raise CLIError(f"Unknown command: {args.command}")
    transaction_args = builder(args)
    network_context = resolve_network_context(
        prompter,
        network=args.network,
        offline=args.offline,
        config_path=args.config,
        rpc_url=args.rpc_url,
    )
    registry = SignOptionRegistry.default(credentials_dir=credentials_dir(config_path=args.config))
    return run_transaction(prompter, network_context, transaction_args, registry)


def main(argv: Sequence[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    set_default_config_path(args.config)
    prompter: Prompter = NonInteractivePrompter() if args.non_interactive else ConsolePrompter()
    try:
        args = _complete_command(parser, argv, args, prompter)
        if args.command == "view":
            status = cmd_view(args, prompter)
        else:
            status = cmd_transaction(args, prompter)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        parser.exit(130, "\nInterrupted; nothing was sent.\n")
    except (
        CLIError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        ValidationExhausted,
        InputUnavailable,
        SigningError,
        KeyFormatError,
        AmountFormatError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")
    if status:
        parser.exit(status)


if __name__ == "__main__":
    main(sys.argv[1:])
