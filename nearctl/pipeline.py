"""Transaction construction pipeline.

mode -> sender -> receiver -> actions -> signing -> submission. Each step
resolves its own inputs and hands its child a context derived from the one
it received; the unsigned transaction is threaded through by value.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping

from .actions import ActionArgs, build_action_chain
from .config import NetworkConfig, list_network_names, load_network_config
from .context import NetworkConnection, NetworkContext, ReceiverContext, SenderContext
from .model import UnsignedTransaction, describe_action
from .prompts import Prompter
from .resolver import parse_account_id, resolve_account_id, resolve_choice, resolve_field
from .rpc_client import NearRPCClient
from .signing import SignArgs, SignOptionRegistry, sign_transaction
from .submit import SubmitMode, print_transaction_status, resolve_submit_mode, submit_transaction

logger = logging.getLogger(__name__)

MODE_MENU = [
    ("online", "Online: query the network and send the transaction"),
    ("offline", "Offline (air-gapped): construct and sign without network access"),
]


@dataclass
class TransactionArgs:
    """Everything a transaction command may pre-supply."""

    sender: str | None = None
    receiver: str | None = None
    receiver_is_sender: bool = False
    check_receiver: bool = True
    actions: List[ActionArgs] = field(default_factory=list)
    finished: bool = False
    sign: SignArgs = field(default_factory=SignArgs)
    submit: str | None = None


def connect(
    config: NetworkConfig, client_factory: Callable[[NetworkConfig], NearRPCClient] | None = None
) -> NetworkConnection:
    factory = client_factory or NearRPCClient
    logger.debug("Using network %s at %s", config.name, config.rpc_url)
    return NetworkConnection(config=config, client=factory(config))


def resolve_network_context(
    prompter: Prompter,
    *,
    network: str | None = None,
    offline: bool = False,
    allow_offline: bool = True,
    config_path: str | Path | None = None,
    rpc_url: str | None = None,
    env: Mapping[str, str] | None = None,
    client_factory: Callable[[NetworkConfig], NearRPCClient] | None = None,
) -> NetworkContext:
    """Build the root context; the online/offline choice made here is final."""

    env_map = os.environ if env is None else env
    network = network or env_map.get("NEARCTL_NETWORK")
    if offline and allow_offline:
        return NetworkContext(connection=None)
    if network is None and allow_offline:
        mode = resolve_choice(
            prompter,
            name="mode",
            value=None,
            options=MODE_MENU,
            message="Choose a mode",
        )
        if mode == "offline":
            return NetworkContext(connection=None)
    if network is None:
        names = list_network_names(config_path=config_path)
        network = resolve_choice(
            prompter,
            name="network",
            value=None,
            options=[(name, name) for name in names],
            message="Select the network",
        )
    overrides = {"rpc_url": rpc_url} if rpc_url else None
    config = load_network_config(network, config_path=config_path, env=env_map, overrides=overrides)
    return NetworkContext(connection=connect(config, client_factory))


def _preview(prompter: Prompter, transaction: UnsignedTransaction) -> None:
    lines = [f"Transaction from <{transaction.signer_id}> to <{transaction.receiver_id}>:"]
    if not transaction.actions:
        lines.append("  (no actions)")
    for index, action in enumerate(transaction.actions, start=1):
        lines.append(f"  {index}. {describe_action(action)}")
    prompter.notify("\n".join(lines))


def run_transaction(
    prompter: Prompter,
    network_context: NetworkContext,
    args: TransactionArgs,
    registry: SignOptionRegistry,
) -> int:
    """Build, sign and submit one transaction; returns the process exit status."""

    sender = resolve_account_id(
        prompter,
        network_context.connection,
        name="sender",
        value=args.sender,
        message="What is the sender account ID?",
    )
    sender_context = SenderContext.from_previous_context(
        network_context, sender_account_id=sender
    )

    if args.receiver_is_sender:
        receiver = sender
    elif args.check_receiver:
        receiver = resolve_account_id(
            prompter,
            sender_context.connection,
            name="receiver",
            value=args.receiver,
            message="What is the receiver account ID?",
            allow_implicit=True,
        )
    else:
        receiver = resolve_field(
            prompter,
            sender_context.connection,
            name="receiver",
            value=args.receiver,
            message="What is the receiver account ID?",
            parse=parse_account_id,
        )
    receiver_context = ReceiverContext.from_previous_context(
        sender_context, receiver_account_id=receiver
    )

    transaction = UnsignedTransaction().with_signer(sender).with_receiver(receiver)
    transaction = build_action_chain(
        prompter,
        receiver_context,
        transaction,
        preset=args.actions,
        finished=args.finished,
    )
    _preview(prompter, transaction)

    signed = sign_transaction(prompter, receiver_context, transaction, args.sign, registry)
    if signed is None:
        return 0

    mode = resolve_submit_mode(prompter, receiver_context.connection, args.submit)
    outcome = submit_transaction(prompter, signed, mode, receiver_context.connection)
    if mode is SubmitMode.DISPLAY:
        return 0
    if outcome is None:
        return 1
    succeeded = print_transaction_status(
        prompter, outcome, receiver_context.connection, fallback_hash=signed.hash
    )
    return 0 if succeeded else 1
