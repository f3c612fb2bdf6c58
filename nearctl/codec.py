"""Canonical (Borsh) serialization of transactions.

The ledger signs and accepts transactions in Borsh form: little-endian
fixed-width integers, ``u32`` length prefixes for strings, byte vectors and
sequences, and a one-byte tag in front of every enum variant.
"""

from __future__ import annotations

import base64
import hashlib
import struct
from typing import Callable, List, Sequence, TypeVar

from .keys import KEY_TYPE_ED25519, PublicKey, Signature, encode_hash
from .model import (
    Action,
    AddFullAccessKey,
    AddFunctionCallKey,
    CreateAccount,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    FunctionCall,
    SignedTransaction,
    Stake,
    Transfer,
    UnsignedTransaction,
)

T = TypeVar("T")

_U64_MAX = 2**64 - 1
_U128_MAX = 2**128 - 1

ACTION_TAGS = {
    CreateAccount: 0,
    DeployContract: 1,
    FunctionCall: 2,
    Transfer: 3,
    Stake: 4,
    AddFullAccessKey: 5,
    AddFunctionCallKey: 5,
    DeleteKey: 6,
    DeleteAccount: 7,
}
_PERMISSION_FUNCTION_CALL = 0
_PERMISSION_FULL_ACCESS = 1


class BorshWriter:
    """Append-only byte buffer with Borsh primitive encoders."""

    def __init__(self) -> None:
        self._buffer: List[bytes] = []

    def u8(self, value: int) -> None:
        self._buffer.append(struct.pack("<B", value))

    def u32(self, value: int) -> None:
        self._buffer.append(struct.pack("<I", value))

    def u64(self, value: int) -> None:
        if not 0 <= value <= _U64_MAX:
            raise ValueError(f"u64 out of range: {value}")
        self._buffer.append(struct.pack("<Q", value))

    def u128(self, value: int) -> None:
        if not 0 <= value <= _U128_MAX:
            raise ValueError(f"u128 out of range: {value}")
        self._buffer.append(value.to_bytes(16, "little"))

    def fixed_bytes(self, value: bytes) -> None:
        self._buffer.append(bytes(value))

    def byte_vector(self, value: bytes) -> None:
        """Length-prefixed byte vector."""

        self.u32(len(value))
        self.fixed_bytes(value)

    def string(self, value: str) -> None:
        self.byte_vector(value.encode("utf-8"))

    def option(self, value: T | None, write: Callable[[T], None]) -> None:
        if value is None:
            self.u8(0)
            return
        self.u8(1)
        write(value)

    def sequence(self, values: Sequence[T], write: Callable[[T], None]) -> None:
        self.u32(len(values))
        for value in values:
            write(value)

    def to_bytes(self) -> bytes:
        return b"".join(self._buffer)


def _write_public_key(writer: BorshWriter, public_key: PublicKey) -> None:
    writer.u8(KEY_TYPE_ED25519)
    writer.fixed_bytes(public_key.data)


def _write_signature(writer: BorshWriter, signature: Signature) -> None:
    writer.u8(KEY_TYPE_ED25519)
    writer.fixed_bytes(signature.data)


def serialize_action(writer: BorshWriter, action: Action) -> None:
    tag = ACTION_TAGS.get(type(action))
    if tag is None:
        raise ValueError(f"Unknown action type: {type(action).__name__}")
    writer.u8(tag)
    if isinstance(action, CreateAccount):
        pass
    elif isinstance(action, DeployContract):
        writer.byte_vector(action.code)
    elif isinstance(action, FunctionCall):
        writer.string(action.method_name)
        writer.byte_vector(action.args)
        writer.u64(action.gas.gas)
        writer.u128(action.deposit.yoctonear)
    elif isinstance(action, Transfer):
        writer.u128(action.deposit.yoctonear)
    elif isinstance(action, Stake):
        writer.u128(action.amount.yoctonear)
        _write_public_key(writer, action.public_key)
    elif isinstance(action, AddFullAccessKey):
        _write_public_key(writer, action.public_key)
        writer.u64(0)
        writer.u8(_PERMISSION_FULL_ACCESS)
    elif isinstance(action, AddFunctionCallKey):
        _write_public_key(writer, action.public_key)
        writer.u64(0)
        writer.u8(_PERMISSION_FUNCTION_CALL)
        writer.option(
            action.allowance, lambda allowance: writer.u128(allowance.yoctonear)
        )
        writer.string(action.receiver_id)
        writer.sequence(action.method_names, writer.string)
    elif isinstance(action, DeleteKey):
        _write_public_key(writer, action.public_key)
    elif isinstance(action, DeleteAccount):
        writer.string(action.beneficiary_id)

def _write_transaction(writer: BorshWriter, transaction: UnsignedTransaction) -> None:
    if transaction.public_key is None:
        raise ValueError("Transaction has no signer public key; it cannot be serialized")
    if len(transaction.block_hash) != 32:
        raise ValueError("Transaction block hash must be 32 bytes")
    writer.string(transaction.signer_id)
    _write_public_key(writer, transaction.public_key)
    writer.u64(transaction.nonce)
    writer.string(transaction.receiver_id)
    writer.fixed_bytes(transaction.block_hash)
    writer.sequence(transaction.actions, lambda action: serialize_action(writer, action))


def serialize_transaction(transaction: UnsignedTransaction) -> bytes:
    writer = BorshWriter()
    _write_transaction(writer, transaction)
    return writer.to_bytes()


def transaction_hash(transaction: UnsignedTransaction) -> bytes:
    """sha256 of the unsigned encoding; this is the message that gets signed."""

    return hashlib.sha256(serialize_transaction(transaction)).digest()


def serialize_signed_transaction(transaction: UnsignedTransaction, signature: Signature) -> bytes:
    writer = BorshWriter()
    _write_transaction(writer, transaction)
    _write_signature(writer, signature)
    return writer.to_bytes()


def build_signed_transaction(
    transaction: UnsignedTransaction, signature: Signature
) -> SignedTransaction:
    return SignedTransaction(
        transaction=transaction,
        signature=signature,
        canonical_serialization=serialize_signed_transaction(transaction, signature),
        hash=encode_hash(transaction_hash(transaction)),
    )


def unsigned_to_base64(transaction: UnsignedTransaction) -> str:
    return base64.b64encode(serialize_transaction(transaction)).decode("ascii")
