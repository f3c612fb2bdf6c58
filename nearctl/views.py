"""Read-only views of account, access key and block state."""

from __future__ import annotations

import logging
from typing import Any, Dict

from .context import NetworkConnection
from .keys import PublicKey
from .prompts import Prompter
from .resolver import resolve_account_id, resolve_field
from .rpc_client import AccountView, block_reference
from .submit import print_transaction_status
from .units import NearBalance

logger = logging.getLogger(__name__)


def _describe_permission(permission: Any) -> str:
    if permission == "FullAccess":
        return "full access"
    if isinstance(permission, dict) and "FunctionCall" in permission:
        details = permission["FunctionCall"] or {}
        allowance = details.get("allowance")
        allowance_text = str(NearBalance(int(allowance))) if allowance is not None else "unlimited"
        methods = ", ".join(details.get("method_names") or []) or "any method"
        return (
            f"function call on {details.get('receiver_id')} ({methods}; "
            f"allowance {allowance_text})"
        )
    return str(permission)


def view_account_summary(
    prompter: Prompter,
    connection: NetworkConnection,
    *,
    account_id: str | None,
    block_height: int | None = None,
    block_hash: str | None = None,
) -> None:
    account_id = resolve_account_id(
        prompter,
        connection,
        name="account",
        value=account_id,
        message="What account ID do you need to view?",
    )
    reference = block_reference(block_height=block_height, block_hash=block_hash)
    view = AccountView.from_result(
        account_id, connection.client.view_account(account_id, reference)
    )
    keys_result: Dict[str, Any] = connection.client.view_access_key_list(account_id, reference)

    lines = [
        f"Account details for <{account_id}> at block #{view.block_height} ({view.block_hash})",
        f"  Native account balance: {view.amount}",
        f"  Validator stake:        {view.locked}",
        f"  Storage used (bytes):   {view.storage_usage}",
        f"  Contract code hash:     {view.code_hash}",
    ]
    keys = keys_result.get("keys") or []
    lines.append(f"  Access keys ({len(keys)}):")
    for index, entry in enumerate(keys, start=1):
        access_key = entry.get("access_key") or {}
        lines.append(
            f"    {index}. {entry.get('public_key')} nonce {access_key.get('nonce')}: "
            f"{_describe_permission(access_key.get('permission'))}"
        )
    prompter.notify("\n".join(lines))


def view_nonce(
    prompter: Prompter,
    connection: NetworkConnection,
    *,
    account_id: str | None,
    public_key: str | None,
) -> int:
    account_id = resolve_account_id(
        prompter,
        connection,
        name="account",
        value=account_id,
        message="What account ID do you need to view?",
    )
    key = resolve_field(
        prompter,
        connection,
        name="public-key",
        value=public_key,
        message="Enter the public key of the access key",
        parse=PublicKey.from_string,
    )
    result = connection.client.view_access_key(account_id, str(key))
    nonce = int(result.get("nonce", 0))
    prompter.notify(f"Current nonce for {key} on <{account_id}>: {nonce}")
    return nonce


def view_recent_block_hash(prompter: Prompter, connection: NetworkConnection) -> str:
    header = (connection.client.block() or {}).get("header") or {}
    block_hash = str(header.get("hash", ""))
    prompter.notify(f"Recent block hash: {block_hash} (height {header.get('height')})")
    return block_hash


def view_transaction_status(
    prompter: Prompter,
    connection: NetworkConnection,
    *,
    tx_hash: str | None,
    sender_id: str | None,
) -> bool:
    tx_hash = resolve_field(
        prompter,
        connection,
        name="hash",
        value=tx_hash,
        message="Enter the hash of the transaction you need to view",
    )
    sender_id = resolve_account_id(
        prompter,
        connection,
        name="sender",
        value=sender_id,
        message="What is the sender account ID of the transaction?",
    )
    logger.debug("Looking up transaction %s sent by %s", tx_hash, sender_id)
    outcome = connection.client.tx_status(tx_hash, sender_id)
    return print_transaction_status(prompter, outcome or {}, connection, fallback_hash=tx_hash)
