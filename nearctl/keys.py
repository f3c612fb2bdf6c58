"""ed25519 key material in the ledger's ``ed25519:<base58>`` text form.

Signing itself is delegated to :mod:`cryptography`; this module only converts
between text, raw bytes and the library's key objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

logger = logging.getLogger(__name__)

ED25519 = "ed25519"
KEY_TYPE_ED25519 = 0
_PUBLIC_KEY_SIZE = 32
_SEED_SIZE = 32
_SIGNATURE_SIZE = 64
_HASH_SIZE = 32


class KeyFormatError(ValueError):
    """Raised when key, signature or hash text is malformed."""


def _decode_base58(raw: str, *, what: str) -> bytes:
    try:
        return base58.b58decode(raw.strip())
    except ValueError as exc:
        raise KeyFormatError(f"{what} is not valid base58: {raw}") from exc


def _split_prefixed(raw: str, *, what: str) -> bytes:
    text = (raw or "").strip()
    prefix, sep, payload = text.partition(":")
    if not sep:
        prefix, payload = ED25519, text
    if prefix.lower() != ED25519:
        raise KeyFormatError(f"Unsupported key type '{prefix}' in {what}; only ed25519 is supported")
    if not payload:
        raise KeyFormatError(f"{what} is empty")
    return _decode_base58(payload, what=what)


@dataclass(frozen=True)
class PublicKey:
    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != _PUBLIC_KEY_SIZE:
            raise KeyFormatError(
                f"ed25519 public key must be {_PUBLIC_KEY_SIZE} bytes, got {len(self.data)}"
            )

    @classmethod
    def from_string(cls, raw: str) -> "PublicKey":
        return cls(_split_prefixed(raw, what="public key"))

    def __str__(self) -> str:
        return f"{ED25519}:{base58.b58encode(self.data).decode('ascii')}"


@dataclass(frozen=True)
class Signature:
    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != _SIGNATURE_SIZE:
            raise KeyFormatError(
                f"ed25519 signature must be {_SIGNATURE_SIZE} bytes, got {len(self.data)}"
            )

    @classmethod
    def from_string(cls, raw: str) -> "Signature":
        return cls(_split_prefixed(raw, what="signature"))

    def __str__(self) -> str:
        return f"{ED25519}:{base58.b58encode(self.data).decode('ascii')}"


@dataclass(frozen=True)
class SecretKey:
    """An ed25519 secret key; ``seed`` is the 32-byte private scalar seed."""

    seed: bytes

    def __post_init__(self) -> None:
        if len(self.seed) != _SEED_SIZE:
            raise KeyFormatError(f"ed25519 seed must be {_SEED_SIZE} bytes, got {len(self.seed)}")

    @classmethod
    def from_string(cls, raw: str) -> "SecretKey":
        """Accept the 64-byte (seed + public key) form or a bare 32-byte seed."""

        payload = _split_prefixed(raw, what="secret key")
        if len(payload) == _SEED_SIZE + _PUBLIC_KEY_SIZE:
            secret = cls(payload[:_SEED_SIZE])
            if secret.public_key.data != payload[_SEED_SIZE:]:
                raise KeyFormatError("secret key does not match its embedded public key")
            return secret
        if len(payload) == _SEED_SIZE:
            return cls(payload)
        raise KeyFormatError(
            f"ed25519 secret key must be {_SEED_SIZE} or {_SEED_SIZE + _PUBLIC_KEY_SIZE} bytes, "
            f"got {len(payload)}"
        )

    def _private_key(self) -> Ed25519PrivateKey:
        return Ed25519PrivateKey.from_private_bytes(self.seed)

    @property
    def public_key(self) -> PublicKey:
        raw = self._private_key().public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        return PublicKey(raw)

    def sign(self, message: bytes) -> Signature:
        return Signature(self._private_key().sign(message))

    def __str__(self) -> str:
        payload = self.seed + self.public_key.data
        return f"{ED25519}:{base58.b58encode(payload).decode('ascii')}"

    def __repr__(self) -> str:
        return f"SecretKey(public_key={self.public_key})"


def verify(public_key: PublicKey, signature: Signature, message: bytes) -> bool:
    try:
        Ed25519PublicKey.from_public_bytes(public_key.data).verify(signature.data, message)
    except InvalidSignature:
        return False
    return True


def generate_keypair() -> SecretKey:
    """Create a fresh random ed25519 key."""

    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    secret = SecretKey(seed)
    logger.debug("Generated key pair %s", secret.public_key)
    return secret


def parse_block_hash(raw: str) -> bytes:
    """Decode a base58 block hash into its 32 raw bytes."""

    data = _decode_base58(raw or "", what="block hash")
    if len(data) != _HASH_SIZE:
        raise KeyFormatError(f"block hash must be {_HASH_SIZE} bytes, got {len(data)}")
    return data


def encode_hash(data: bytes) -> str:
    return base58.b58encode(data).decode("ascii")
