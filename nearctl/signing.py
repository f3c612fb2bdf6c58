"""Sign an assembled transaction with the tool the operator selects.

Available tools are collected in a :class:`SignOptionRegistry` when the
command starts; the hardware-device option only exists when a device
transport was registered. Credentials are never retried: a malformed or
missing key raises :class:`SigningError` and ends the run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .codec import build_signed_transaction, serialize_transaction, transaction_hash, unsigned_to_base64
from .config import DEFAULT_CREDENTIALS_DIR
from .context import ReceiverContext
from .keys import KeyFormatError, PublicKey, SecretKey, Signature, encode_hash, parse_block_hash, verify
from .model import SignedTransaction, UnsignedTransaction
from .prompts import Prompter
from .resolver import resolve_choice, resolve_field
from .rpc_client import RPCError, RPCTransportError

logger = logging.getLogger(__name__)

DEFAULT_HD_PATH = "44'/397'/0'/0'/1'"


class SigningError(RuntimeError):
    """Raised when credential material is malformed or unavailable."""


@dataclass
class SignArgs:
    """Pre-supplied signing flags; ``None`` means "ask"."""

    method: str | None = None
    signer_public_key: str | None = None
    signer_private_key: str | None = None
    nonce: str | None = None
    block_hash: str | None = None
    keychain_network: str | None = None
    hd_path: str | None = None


def sign_with_secret_key(transaction: UnsignedTransaction, secret: SecretKey) -> SignedTransaction:
    """Sign the transaction hash; the unsigned record is left untouched."""

    signature = secret.sign(transaction_hash(transaction))
    return build_signed_transaction(transaction, signature)


def _parse_nonce(raw: str) -> int:
    try:
        nonce = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Nonce must be a whole number, got '{raw}'") from exc
    if nonce < 0:
        raise ValueError("Nonce must not be negative")
    return nonce


def attach_access_key(
    prompter: Prompter,
    context: ReceiverContext,
    transaction: UnsignedTransaction,
    public_key: PublicKey,
    args: SignArgs,
) -> UnsignedTransaction:
    """Fill in the signer key, nonce and block hash.

    Online the nonce and block hash come from the signer's access key; offline
    they must be supplied (``--nonce``/``--block-hash``) or typed in.
    """

    if context.connection is not None:
        try:
            result = context.connection.client.view_access_key(
                context.sender_account_id, str(public_key)
            )
        except (RPCError, RPCTransportError) as exc:
            raise SigningError(
                f"Cannot find access key {public_key} for <{context.sender_account_id}> "
                f"on network <{context.connection.name}>: {exc}"
            ) from exc
        try:
            nonce = int(result["nonce"]) + 1
            block_hash = parse_block_hash(result["block_hash"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SigningError(f"Unexpected access key response: {result!r}") from exc
        return transaction.with_access_key(public_key, nonce, block_hash)

    prompter.notify(f"Your public key: {public_key}")
    nonce = resolve_field(
        prompter,
        None,
        name="nonce",
        value=args.nonce,
        message=(
            "Enter the transaction nonce for this public key "
            "(the access key nonce from `nearctl view nonce`, incremented by 1)"
        ),
        parse=_parse_nonce,
    )
    block_hash = resolve_field(
        prompter,
        None,
        name="block-hash",
        value=args.block_hash,
        message="Enter a recent block hash (from `nearctl view recent-block-hash`)",
        parse=parse_block_hash,
    )
    return transaction.with_access_key(public_key, nonce, block_hash)


class SignOption(Protocol):
    name: str
    label: str

    def sign(
        self,
        prompter: Prompter,
        context: ReceiverContext,
        transaction: UnsignedTransaction,
        args: SignArgs,
    ) -> Optional[SignedTransaction]:
        ...


def _ask_credential(prompter: Prompter, *, name: str, value: str | None, message: str) -> str:
    return resolve_field(prompter, None, name=name, value=value, message=message)


def _check_public_key(secret: SecretKey, expected: str | None) -> None:
    if not expected:
        return
    try:
        public_key = PublicKey.from_string(expected)
    except KeyFormatError as exc:
        raise SigningError(f"Invalid signer public key: {exc}") from exc
    if public_key != secret.public_key:
        raise SigningError(
            f"Signer public key {public_key} does not match the private key ({secret.public_key})"
        )


class PrivateKeySigner:
    name = "private-key"
    label = "Sign the transaction with a plaintext private key"

    def sign(
        self,
        prompter: Prompter,
        context: ReceiverContext,
        transaction: UnsignedTransaction,
        args: SignArgs,
    ) -> Optional[SignedTransaction]:
        raw = _ask_credential(
            prompter,
            name="signer-private-key",
            value=args.signer_private_key,
            message="Enter the sender's private key",
        )
        try:
            secret = SecretKey.from_string(raw)
        except KeyFormatError as exc:
            raise SigningError(f"Invalid signer private key: {exc}") from exc
        _check_public_key(secret, args.signer_public_key)
        transaction = attach_access_key(prompter, context, transaction, secret.public_key, args)
        return sign_with_secret_key(transaction, secret)


class KeychainSigner:
    """Read ``<credentials_dir>/<network>/<account_id>.json`` key files."""

    name = "keychain"
    label = "Sign the transaction with a key from the keychain"

    def __init__(self, credentials_dir: Path | None = None) -> None:
        self.credentials_dir = credentials_dir or DEFAULT_CREDENTIALS_DIR

    def key_path(self, network: str, account_id: str) -> Path:
        return self.credentials_dir / network / f"{account_id}.json"

    def load_secret_key(self, network: str, account_id: str) -> SecretKey:
        path = self.key_path(network, account_id)
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError as exc:
            raise SigningError(
                f"No key for <{account_id}> in the keychain ({path}); "
                "sign with a private key instead or add the key file"
            ) from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise SigningError(f"Cannot read keychain file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SigningError(f"Keychain file {path} must contain a JSON object")
        raw = data.get("private_key") or data.get("secret_key")
        if not raw:
            raise SigningError(f"Keychain file {path} has no private_key")
        try:
            secret = SecretKey.from_string(raw)
        except KeyFormatError as exc:
            raise SigningError(f"Invalid private key in {path}: {exc}") from exc
        stored_public_key = data.get("public_key")
        if stored_public_key and stored_public_key != str(secret.public_key):
            raise SigningError(f"Keychain file {path} has a public_key that does not match its private_key")
        logger.debug("Loaded keychain key %s from %s", secret.public_key, path)
        return secret

    def sign(
        self,
        prompter: Prompter,
        context: ReceiverContext,
        transaction: UnsignedTransaction,
        args: SignArgs,
    ) -> Optional[SignedTransaction]:
        network = args.keychain_network
        if network is None and context.connection is not None:
            network = context.connection.name
        network = _ask_credential(
            prompter,
            name="keychain-network",
            value=network,
            message="Which network's keychain holds the signer key?",
        )
        secret = self.load_secret_key(network, context.sender_account_id)
        transaction = attach_access_key(prompter, context, transaction, secret.public_key, args)
        return sign_with_secret_key(transaction, secret)


class DeviceTransport(Protocol):
    """Connection to a hardware wallet that holds the signer key."""

    def get_public_key(self, hd_path: str) -> PublicKey:
        ...

    def sign(self, hd_path: str, payload: bytes) -> Signature:
        ...


class HardwareDeviceError(RuntimeError):
    """Raised by device transports when the device refuses or is unreachable."""


class HardwareDeviceSigner:
    name = "ledger"
    label = "Sign the transaction with a Ledger device"

    def __init__(self, transport: DeviceTransport) -> None:
        self.transport = transport

    def sign(
        self,
        prompter: Prompter,
        context: ReceiverContext,
        transaction: UnsignedTransaction,
        args: SignArgs,
    ) -> Optional[SignedTransaction]:
        hd_path = resolve_field(
            prompter,
            None,
            name="hd-path",
            value=args.hd_path,
            message="Enter the HD key path",
            default=DEFAULT_HD_PATH,
        )
        prompter.notify("Please allow getting the public key on your Ledger device")
        try:
            public_key = self.transport.get_public_key(hd_path)
        except HardwareDeviceError as exc:
            raise SigningError(f"Ledger device did not return a public key: {exc}") from exc
        transaction = attach_access_key(prompter, context, transaction, public_key, args)

        prompter.notify("Confirm the transaction on your Ledger device")
        try:
            signature = self.transport.sign(hd_path, serialize_transaction(transaction))
        except HardwareDeviceError as exc:
            raise SigningError(f"Ledger device did not sign the transaction: {exc}") from exc
        if not verify(public_key, signature, transaction_hash(transaction)):
            raise SigningError("Ledger device returned a signature that does not match its public key")
        return build_signed_transaction(transaction, signature)


class ManualSigner:
    """Print the unsigned transaction so it can be signed elsewhere."""

    name = "manual"
    label = "Construct the transaction and sign it somewhere else"

    def sign(
        self,
        prompter: Prompter,
        context: ReceiverContext,
        transaction: UnsignedTransaction,
        args: SignArgs,
    ) -> Optional[SignedTransaction]:
        raw = _ask_credential(
            prompter,
            name="signer-public-key",
            value=args.signer_public_key,
            message="To create an unsigned transaction enter the sender's public key",
        )
        try:
            public_key = PublicKey.from_string(raw)
        except KeyFormatError as exc:
            raise SigningError(f"Invalid signer public key: {exc}") from exc
        transaction = attach_access_key(prompter, context, transaction, public_key, args)
        prompter.notify(f"Unsigned transaction (base64):\n{unsigned_to_base64(transaction)}")
        prompter.notify(f"Transaction hash to sign: {encode_hash(transaction_hash(transaction))}")
        return None


class SignOptionRegistry:
    """Ordered set of signing tools available to this run."""

    def __init__(self, options: Iterable[SignOption] = ()) -> None:
        self._options: Dict[str, SignOption] = {}
        for option in options:
            self.register(option)

    @classmethod
    def default(
        cls,
        *,
        credentials_dir: Path | None = None,
        device_transport: DeviceTransport | None = None,
    ) -> "SignOptionRegistry":
        registry = cls([PrivateKeySigner(), KeychainSigner(credentials_dir)])
        if device_transport is not None:
            registry.register(HardwareDeviceSigner(device_transport))
        registry.register(ManualSigner())
        return registry

    def register(self, option: SignOption) -> None:
        self._options[option.name] = option

    def names(self) -> List[str]:
        return list(self._options)

    def menu(self) -> List[Tuple[str, str]]:
        return [(option.name, option.label) for option in self._options.values()]

    def get(self, name: str) -> SignOption:
        return self._options[name]


def sign_transaction(
    prompter: Prompter,
    context: ReceiverContext,
    transaction: UnsignedTransaction,
    args: SignArgs,
    registry: SignOptionRegistry,
) -> Optional[SignedTransaction]:
    """Run the selected signing tool; ``None`` means the transaction is signed elsewhere."""

    name = resolve_choice(
        prompter,
        name="sign option",
        value=args.method,
        options=registry.menu(),
        message="Select a tool for signing the transaction",
    )
    logger.debug("Signing with %s", name)
    signed = registry.get(name).sign(prompter, context, transaction, args)
    if signed is not None:
        logger.info("Signed transaction %s", signed.hash)
    return signed
