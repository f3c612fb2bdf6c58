"""Resolution contexts handed from each pipeline step to its children.

Contexts are frozen and each step builds its child's context with
``from_previous_context``; nothing downstream can change the connection, so
online/offline mode is fixed once the root context exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .config import NetworkConfig

if TYPE_CHECKING:
    from .rpc_client import NearRPCClient


@dataclass(frozen=True)
class NetworkConnection:
    config: NetworkConfig
    client: "NearRPCClient"

    @property
    def name(self) -> str:
        return self.config.name


@dataclass(frozen=True)
class NetworkContext:
    """Root context; ``connection is None`` means offline (air-gapped) mode."""

    connection: Optional[NetworkConnection] = None

    @property
    def offline(self) -> bool:
        return self.connection is None


@dataclass(frozen=True)
class SenderContext:
    connection: Optional[NetworkConnection]
    sender_account_id: str

    @classmethod
    def from_previous_context(
        cls, previous_context: NetworkContext, *, sender_account_id: str
    ) -> "SenderContext":
        return cls(
            connection=previous_context.connection,
            sender_account_id=sender_account_id,
        )

    @property
    def offline(self) -> bool:
        return self.connection is None


@dataclass(frozen=True)
class ReceiverContext:
    connection: Optional[NetworkConnection]
    sender_account_id: str
    receiver_account_id: str

    @classmethod
    def from_previous_context(
        cls, previous_context: SenderContext, *, receiver_account_id: str
    ) -> "ReceiverContext":
        return cls(
            connection=previous_context.connection,
            sender_account_id=previous_context.sender_account_id,
            receiver_account_id=receiver_account_id,
        )

    @property
    def offline(self) -> bool:
        return self.connection is None
