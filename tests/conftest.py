from pathlib import Path
from typing import Any, Dict, List, Sequence

import pytest

from nearctl.config import NetworkConfig
from nearctl.context import NetworkConnection
from nearctl.keys import encode_hash
from nearctl.prompts import InputUnavailable
from nearctl.rpc_client import RPCError
from nearctl.units import YOCTO_PER_NEAR

BLOCK_HASH = bytes([7]) * 32


class ScriptedPrompter:
    """Replays canned answers and raises InputUnavailable once they run out."""

    def __init__(self, answers: Sequence[Any] = ()) -> None:
        self.answers = list(answers)
        self.prompts: List[tuple] = []
        self.selections: List[tuple] = []
        self.notices: List[str] = []

    def prompt(self, message: str, default: str | None = None) -> str:
        self.prompts.append((message, default))
        return self._next(message)

    def select(self, message: str, options: Sequence[str], default: int = 0) -> int:
        self.selections.append((message, list(options)))
        return self._next(message)

    def notify(self, message: str) -> None:
        self.notices.append(message)

    def _next(self, message: str) -> Any:
        if not self.answers:
            raise InputUnavailable(f"no scripted answer for: {message}")
        return self.answers.pop(0)


class StubNearClient:
    def __init__(self, accounts: Dict[str, int] | None = None) -> None:
        self.accounts = dict(accounts or {})
        self.access_key_nonce = 41
        self.block_hash = encode_hash(BLOCK_HASH)
        self.broadcasts: List[str] = []
        self.outcome: Dict[str, Any] = {
            "status": {"SuccessValue": ""},
            "transaction": {"hash": "stub-hash"},
        }
        self.viewed_accounts: List[str] = []

    def view_account(self, account_id: str, reference=None) -> Dict[str, Any]:
        self.viewed_accounts.append(account_id)
        if account_id not in self.accounts:
            raise RPCError(
                -32000,
                "Server error",
                data=f"account {account_id} does not exist while viewing",
                name="HANDLER_ERROR",
                cause={"name": "UNKNOWN_ACCOUNT", "info": {"requested_account_id": account_id}},
            )
        return {
            "amount": str(self.accounts[account_id]),
            "locked": "0",
            "code_hash": "11111111111111111111111111111111",
            "storage_usage": 182,
            "block_height": 100,
            "block_hash": self.block_hash,
        }

    def view_access_key(self, account_id: str, public_key: str, reference=None) -> Dict[str, Any]:
        return {
            "nonce": self.access_key_nonce,
            "permission": "FullAccess",
            "block_height": 100,
            "block_hash": self.block_hash,
        }

    def view_access_key_list(self, account_id: str, reference=None) -> Dict[str, Any]:
        return {"keys": [], "block_height": 100, "block_hash": self.block_hash}

    def block(self, reference=None) -> Dict[str, Any]:
        return {"header": {"hash": self.block_hash, "height": 100}}

    def broadcast_tx_commit(self, payload: str) -> Dict[str, Any]:
        self.broadcasts.append(payload)
        return self.outcome

    def tx_status(self, tx_hash: str, sender_id: str) -> Dict[str, Any]:
        return self.outcome


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NEARCTL_NETWORK",
        "NEARCTL_RPC_URL",
        "NEARCTL_API_KEY",
        "NEARCTL_RPC_TIMEOUT",
        "NEARCTL_CREDENTIALS_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("nearctl.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr("nearctl.config.DEFAULT_CREDENTIALS_DIR", tmp_path / "credentials")


@pytest.fixture
def scripted():
    return ScriptedPrompter


@pytest.fixture
def stub_client() -> StubNearClient:
    return StubNearClient(
        accounts={"a.testnet": 10 * YOCTO_PER_NEAR, "b.testnet": YOCTO_PER_NEAR}
    )


@pytest.fixture
def connection(stub_client: StubNearClient) -> NetworkConnection:
    config = NetworkConfig(
        name="testnet",
        rpc_url="http://127.0.0.1:3030",
        explorer_url="https://explorer.testnet.near.org",
    )
    return NetworkConnection(config=config, client=stub_client)
