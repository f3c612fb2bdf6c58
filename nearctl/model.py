"""Domain models for transactions assembled by nearctl.

Actions form a closed set of frozen dataclasses, one per ledger action kind.
Code that needs per-kind behaviour dispatches on the concrete type; see
:func:`nearctl.codec.serialize_action` and :func:`describe_action`.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from typing import ClassVar, Tuple, Union

from .keys import PublicKey, Signature
from .units import NearBalance, NearGas


@dataclass(frozen=True)
class CreateAccount:
    kind: ClassVar[str] = "create-account"


@dataclass(frozen=True)
class DeployContract:
    code: bytes
    kind: ClassVar[str] = "deploy-contract"


@dataclass(frozen=True)
class FunctionCall:
    method_name: str
    args: bytes
    gas: NearGas
    deposit: NearBalance
    kind: ClassVar[str] = "function-call"


@dataclass(frozen=True)
class Transfer:
    deposit: NearBalance
    kind: ClassVar[str] = "transfer"


@dataclass(frozen=True)
class Stake:
    amount: NearBalance
    public_key: PublicKey
    kind: ClassVar[str] = "stake"


@dataclass(frozen=True)
class AddFullAccessKey:
    public_key: PublicKey
    kind: ClassVar[str] = "add-full-access-key"


@dataclass(frozen=True)
class AddFunctionCallKey:
    public_key: PublicKey
    allowance: NearBalance | None
    receiver_id: str
    method_names: Tuple[str, ...] = ()
    kind: ClassVar[str] = "add-function-call-key"


@dataclass(frozen=True)
class DeleteKey:
    public_key: PublicKey
    kind: ClassVar[str] = "delete-key"


@dataclass(frozen=True)
class DeleteAccount:
    beneficiary_id: str
    kind: ClassVar[str] = "delete-account"


Action = Union[
    CreateAccount,
    DeployContract,
    FunctionCall,
    Transfer,
    Stake,
    AddFullAccessKey,
    AddFunctionCallKey,
    DeleteKey,
    DeleteAccount,
]


def describe_action(action: Action) -> str:
    """One-line human summary used in transaction previews."""

    if isinstance(action, CreateAccount):
        return "create account"
    if isinstance(action, DeployContract):
        return f"deploy contract ({len(action.code)} bytes)"
    if isinstance(action, FunctionCall):
        return (
            f"call {action.method_name}({len(action.args)} bytes of args) "
            f"with {action.gas} and {action.deposit} attached"
        )
    if isinstance(action, Transfer):
        return f"transfer {action.deposit}"
    if isinstance(action, Stake):
        return f"stake {action.amount} with validator key {action.public_key}"
    if isinstance(action, AddFullAccessKey):
        return f"add full access key {action.public_key}"
    if isinstance(action, AddFunctionCallKey):
        allowance = str(action.allowance) if action.allowance is not None else "unlimited"
        methods = ", ".join(action.method_names) or "any method"
        return (
            f"add function-call key {action.public_key} for {action.receiver_id} "
            f"({methods}; allowance {allowance})"
        )
    if isinstance(action, DeleteKey):
        return f"delete key {action.public_key}"
    if isinstance(action, DeleteAccount):
        return f"delete account, remaining balance to {action.beneficiary_id}"
    raise TypeError(f"Unknown action type: {type(action).__name__}")


@dataclass(frozen=True)
class UnsignedTransaction:
    """Transaction record threaded through the construction pipeline.

    Every ``with_*`` helper returns a new record; ``actions`` keeps append
    order, which is execution order on the ledger.
    """

    signer_id: str = ""
    receiver_id: str = ""
    public_key: PublicKey | None = None
    nonce: int = 0
    block_hash: bytes = bytes(32)
    actions: Tuple[Action, ...] = field(default_factory=tuple)

    def with_action(self, action: Action) -> "UnsignedTransaction":
        return replace(self, actions=self.actions + (action,))

    def with_signer(self, signer_id: str) -> "UnsignedTransaction":
        return replace(self, signer_id=signer_id)

    def with_receiver(self, receiver_id: str) -> "UnsignedTransaction":
        return replace(self, receiver_id=receiver_id)

    def with_access_key(
        self, public_key: PublicKey, nonce: int, block_hash: bytes
    ) -> "UnsignedTransaction":
        return replace(self, public_key=public_key, nonce=nonce, block_hash=block_hash)


@dataclass(frozen=True)
class SignedTransaction:
    transaction: UnsignedTransaction
    signature: Signature
    canonical_serialization: bytes
    hash: str

    def to_base64(self) -> str:
        return base64.b64encode(self.canonical_serialization).decode("ascii")
