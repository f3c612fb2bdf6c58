"""JSON-RPC client for NEAR protocol nodes.

The client is deliberately thin: each helper maps to one RPC method and
returns the parsed ``result`` object. Errors are split into two classes so the
submission step can tell a node that is merely slow (``is_transient``) from a
ledger that refused the transaction.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import NetworkConfig
from .units import NearBalance

if TYPE_CHECKING:
    from .context import NetworkConnection

logger = logging.getLogger(__name__)

_IMPLICIT_ACCOUNT_RE = re.compile(r"^[0-9a-f]{64}$")
_TRANSIENT_HTTP_STATUSES = {408, 502, 503, 504}


class RPCError(RuntimeError):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        name: str | None = None,
        cause: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data
        self.name = name
        self.cause = cause or {}

    @classmethod
    def from_payload(cls, error: Dict[str, Any]) -> "RPCError":
        cause = error.get("cause")
        return cls(
            code=error.get("code", -1),
            message=error.get("message", "unknown"),
            data=error.get("data"),
            name=error.get("name"),
            cause=cause if isinstance(cause, dict) else None,
        )

    @property
    def cause_name(self) -> str | None:
        return self.cause.get("name")

    @property
    def is_transient(self) -> bool:
        if self.cause_name == "TIMEOUT_ERROR":
            return True
        return isinstance(self.data, str) and "Timeout" in self.data

    @property
    def payload(self) -> Any:
        """The most specific structured error description available."""

        if isinstance(self.data, dict):
            return self.data
        info = self.cause.get("info")
        if info:
            return {self.cause_name or "Error": info}
        return self.data if self.data is not None else self.message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(
        self, message: str, status_code: int | None = None, *, transient: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient

    @property
    def is_transient(self) -> bool:
        return self.transient


@dataclass(frozen=True)
class AccountView:
    account_id: str
    amount: NearBalance
    locked: NearBalance
    code_hash: str
    storage_usage: int
    block_height: int
    block_hash: str

    @classmethod
    def from_result(cls, account_id: str, result: Dict[str, Any]) -> "AccountView":
        return cls(
            account_id=account_id,
            amount=NearBalance(int(result.get("amount", 0))),
            locked=NearBalance(int(result.get("locked", 0))),
            code_hash=str(result.get("code_hash", "")),
            storage_usage=int(result.get("storage_usage", 0)),
            block_height=int(result.get("block_height", 0)),
            block_hash=str(result.get("block_hash", "")),
        )


def block_reference(
    *, block_height: int | None = None, block_hash: str | None = None
) -> Dict[str, Any]:
    """Build the ``finality``/``block_id`` part of a query."""

    if block_height is not None:
        return {"block_id": block_height}
    if block_hash is not None:
        return {"block_id": block_hash}
    return {"finality": "final"}


class NearRPCClient:
    """Typed JSON-RPC client for NEAR nodes."""

    def __init__(self, config: NetworkConfig) -> None:
        self.config = config
        self._session = requests.Session()

    def call(self, method: str, params: Any = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params if params is not None else [],
        }
        headers = {"content-type": "application/json"}
        if self.config.api_key:
            headers["x-api-key"] = self.config.api_key
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.config.rpc_url,
                data=json.dumps(payload),
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.Timeout as exc:
            logger.warning("RPC request %s timed out: %s", method, exc)
            raise RPCTransportError(
                f"RPC request to {self.config.rpc_url} timed out", transient=True
            ) from exc
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self.config.rpc_url} failed. Check the network name, "
                "--rpc-url, or NEARCTL_RPC_URL."
            ) from exc
        body = self._parse_body(response)
        if isinstance(body, dict) and body.get("error"):
            raise RPCError.from_payload(body["error"])
        if not response.ok:
            self._raise_for_status(response)
        if not isinstance(body, dict):
            raise RPCTransportError("RPC server returned malformed JSON")
        return body.get("result")

    def _parse_body(self, response: Response) -> Any:
        try:
            return response.json()
        except ValueError:
            if response.ok:
                logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
                raise RPCTransportError("RPC server returned malformed JSON")
            return None

    def _raise_for_status(self, response: Response) -> None:
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        logger.error("RPC error body: %s", response.text)
        if response.status_code in {401, 403}:
            raise RPCTransportError(
                "Unauthorized. Set NEARCTL_API_KEY (or networks.<name>.api_key) for this endpoint.",
                status_code=response.status_code,
            )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the RPC URL and network settings.",
                status_code=response.status_code,
                transient=response.status_code in _TRANSIENT_HTTP_STATUSES,
            ) from exc

    # Convenience wrappers -------------------------------------------------

    def query(self, request_type: str, reference: Dict[str, Any] | None = None, **params: Any) -> Dict[str, Any]:
        body = {"request_type": request_type, **(reference or block_reference()), **params}
        result = self.call("query", body)
        # Older nodes report query failures inside the result object.
        if isinstance(result, dict) and result.get("error"):
            raise RPCError(-32000, str(result["error"]), data=result["error"])
        return result

    def view_account(
        self, account_id: str, reference: Dict[str, Any] | None = None
    ) -> Dict[str, Any]:
        return self.query("view_account", reference, account_id=account_id)

    def view_access_key(
        self, account_id: str, public_key: str, reference: Dict[str, Any] | None = None
    ) -> Dict[str, Any]:
        return self.query(
            "view_access_key", reference, account_id=account_id, public_key=public_key
        )

    def view_access_key_list(
        self, account_id: str, reference: Dict[str, Any] | None = None
    ) -> Dict[str, Any]:
        return self.query("view_access_key_list", reference, account_id=account_id)

    def block(self, reference: Dict[str, Any] | None = None) -> Dict[str, Any]:
        return self.call("block", reference or block_reference())

    def broadcast_tx_commit(self, signed_transaction_b64: str) -> Dict[str, Any]:
        return self.call("broadcast_tx_commit", [signed_transaction_b64])

    def tx_status(self, tx_hash: str, sender_id: str) -> Dict[str, Any]:
        return self.call("tx", [tx_hash, sender_id])


def is_implicit_account(account_id: str) -> bool:
    """Implicit accounts are 64 lowercase hex characters and exist once funded."""

    return bool(_IMPLICIT_ACCOUNT_RE.match(account_id))


def get_account_state(connection: "NetworkConnection", account_id: str) -> Optional[AccountView]:
    """Return the account view, or ``None`` when it cannot be found.

    A failed query is reported as "not found" rather than retried; the
    failure reason is logged so operators can tell the two apart.
    """

    try:
        result = connection.client.view_account(account_id)
    except RPCError as exc:
        if exc.cause_name not in {None, "UNKNOWN_ACCOUNT"}:
            logger.warning("Account lookup for %s failed: %s", account_id, exc)
        else:
            logger.debug("Account %s not found: %s", account_id, exc)
        return None
    except RPCTransportError as exc:
        logger.warning("Account lookup for %s failed: %s", account_id, exc)
        return None
    return AccountView.from_result(account_id, result or {})


def account_exists(connection: "NetworkConnection", account_id: str) -> bool:
    return get_account_state(connection, account_id) is not None


def account_balance(connection: "NetworkConnection", account_id: str) -> NearBalance:
    """Liquid balance of ``account_id``; a missing account has a zero balance."""

    view = get_account_state(connection, account_id)
    return view.amount if view is not None else NearBalance(0)
