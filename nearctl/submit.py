"""Send a signed transaction to the network or print it for manual handling."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .context import NetworkConnection
from .model import SignedTransaction
from .prompts import Prompter
from .resolver import resolve_choice
from .rpc_client import RPCError, RPCTransportError
from .units import NearBalance

logger = logging.getLogger(__name__)

RETRY_NOTICE = (
    "Timeout error transaction.\n"
    "Please wait. The next try to send this transaction is happening right now ..."
)


class SubmitMode(Enum):
    SEND = "send"
    DISPLAY = "display"


SUBMIT_MENU = [
    (SubmitMode.SEND.value, "Send the transaction to the network"),
    (SubmitMode.DISPLAY.value, "Display the signed transaction in base64"),
]


def resolve_submit_mode(
    prompter: Prompter, connection: NetworkConnection | None, value: str | None
) -> SubmitMode:
    """Offline runs always display; online runs send or display as chosen."""

    if connection is None:
        if value == SubmitMode.SEND.value:
            prompter.notify("Offline mode: the transaction cannot be sent, displaying it instead.")
        return SubmitMode.DISPLAY
    return SubmitMode(
        resolve_choice(
            prompter,
            name="submit mode",
            value=value,
            options=SUBMIT_MENU,
            message="How would you like to proceed?",
        )
    )


# Error explanations ---------------------------------------------------------


def _find_error(payload: Any, name: str) -> Optional[Dict[str, Any]]:
    """Depth-first search for ``name`` as a key or a bare string in an error payload."""

    if payload == name:
        return {}
    if isinstance(payload, dict):
        if name in payload:
            details = payload[name]
            return details if isinstance(details, dict) else {"value": details}
        for value in payload.values():
            found = _find_error(value, name)
            if found is not None:
                return found
    elif isinstance(payload, list):
        for value in payload:
            found = _find_error(value, name)
            if found is not None:
                return found
    return None


def _balance(raw: Any) -> str:
    try:
        return str(NearBalance(int(raw)))
    except (TypeError, ValueError):
        return str(raw)


def _explain_invalid_nonce(details: Dict[str, Any]) -> str:
    return (
        f"Transaction nonce {details.get('tx_nonce')} must be larger than the access key "
        f"nonce {details.get('ak_nonce')}. Another transaction used this key; try again."
    )


def _explain_not_enough_balance(details: Dict[str, Any]) -> str:
    return (
        f"Sender <{details.get('signer_id')}> does not have enough balance "
        f"({_balance(details.get('balance'))}) to cover the transaction cost "
        f"({_balance(details.get('cost'))})."
    )


def _explain_account_does_not_exist(details: Dict[str, Any]) -> str:
    return f"Account <{details.get('account_id', details.get('value'))}> does not exist."


def _explain_invalid_signature(details: Dict[str, Any]) -> str:
    return "The transaction signature does not match the signer's access key."


def _explain_expired(details: Dict[str, Any]) -> str:
    return "The transaction has expired: its block hash is too old. Sign it again."


def _explain_lack_balance_for_state(details: Dict[str, Any]) -> str:
    return (
        f"Account <{details.get('account_id')}> needs {_balance(details.get('amount'))} "
        "more to cover its storage."
    )


def _explain_invalid_access_key(details: Dict[str, Any]) -> str:
    return f"The access key used to sign is not valid for this transaction: {json.dumps(details)}"


def _explain_action_error(details: Dict[str, Any]) -> str:
    index = details.get("index")
    kind = details.get("kind")
    where = f"Action #{index}" if index is not None else "An action"
    return f"{where} failed: {json.dumps(kind)}"


_EXPLAINERS: tuple[tuple[str, Callable[[Dict[str, Any]], str]], ...] = (
    ("InvalidNonce", _explain_invalid_nonce),
    ("NotEnoughBalance", _explain_not_enough_balance),
    ("AccountDoesNotExist", _explain_account_does_not_exist),
    ("InvalidSignature", _explain_invalid_signature),
    ("Expired", _explain_expired),
    ("LackBalanceForState", _explain_lack_balance_for_state),
    ("InvalidAccessKeyError", _explain_invalid_access_key),
    ("ActionError", _explain_action_error),
)


def describe_failure(payload: Any) -> str:
    """Turn a ledger rejection payload into one human-readable sentence."""

    for name, explain in _EXPLAINERS:
        details = _find_error(payload, name)
        if details is not None:
            return explain(details)
    return f"The transaction was rejected: {json.dumps(payload, default=str)}"


def explain_execution_error(error: RPCError) -> str:
    payload = error.payload
    return f"Error: {describe_failure(payload)}\n{json.dumps(payload, indent=2, default=str)}"


# Submission -----------------------------------------------------------------


def display_transaction(prompter: Prompter, signed: SignedTransaction) -> None:
    prompter.notify(f"Transaction hash: {signed.hash}")
    prompter.notify(f"Signed transaction (base64):\n{signed.to_base64()}")


def broadcast_with_retry(
    prompter: Prompter, signed: SignedTransaction, connection: NetworkConnection
) -> Dict[str, Any]:
    """Broadcast and wait for commit, retrying timeouts until the node answers."""

    payload = signed.to_base64()
    attempt = 0
    while True:
        attempt += 1
        try:
            return connection.client.broadcast_tx_commit(payload)
        except (RPCError, RPCTransportError) as exc:
            if not exc.is_transient:
                raise
            logger.warning("Broadcast of %s timed out (attempt %d): %s", signed.hash, attempt, exc)
            prompter.notify(RETRY_NOTICE)


def submit_transaction(
    prompter: Prompter,
    signed: SignedTransaction,
    mode: SubmitMode,
    connection: NetworkConnection | None,
) -> Optional[Dict[str, Any]]:
    """Return the execution outcome, or ``None`` when displayed or rejected."""

    if mode is SubmitMode.DISPLAY or connection is None:
        display_transaction(prompter, signed)
        return None
    prompter.notify(f"Transaction sent ... ({signed.hash})")
    try:
        return broadcast_with_retry(prompter, signed, connection)
    except RPCError as exc:
        logger.error("Transaction %s was rejected: %s", signed.hash, exc)
        prompter.notify(explain_execution_error(exc))
        return None


def _decode_success_value(raw: str) -> str:
    try:
        data = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return raw
    if not data:
        return ""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return data.hex()
    try:
        return json.dumps(json.loads(text), indent=2)
    except json.JSONDecodeError:
        return text


def print_transaction_status(
    prompter: Prompter,
    outcome: Dict[str, Any],
    connection: NetworkConnection | None,
    *,
    fallback_hash: str | None = None,
) -> bool:
    """Print the committed outcome; returns ``False`` when the ledger reports a failure."""

    status = outcome.get("status") or {}
    transaction = outcome.get("transaction") or {}
    tx_hash = transaction.get("hash") or (outcome.get("transaction_outcome") or {}).get("id")
    tx_hash = tx_hash or fallback_hash

    succeeded = True
    if isinstance(status, dict) and "Failure" in status:
        succeeded = False
        prompter.notify(f"Transaction failed: {describe_failure(status['Failure'])}")
    elif isinstance(status, dict) and "SuccessValue" in status:
        value = _decode_success_value(status["SuccessValue"] or "")
        if value:
            prompter.notify(f"Transaction succeeded. Returned value:\n{value}")
        else:
            prompter.notify("Transaction succeeded.")
    else:
        prompter.notify(f"Transaction status: {json.dumps(status, default=str)}")

    prompter.notify(f"Transaction ID: {tx_hash}")
    if connection is not None and tx_hash:
        link = connection.config.explorer_transaction_url(tx_hash)
        if link:
            prompter.notify(
                "To see the transaction in the transaction explorer, open this url in your browser:\n"
                f"{link}"
            )
    return succeeded
