"""Rosetta API data types used by the Kava service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class NetworkIdentifier:
    """Identifies a blockchain and the network on it."""

    blockchain: str
    network: str


@dataclass(frozen=True)
class BlockIdentifier:
    """Uniquely identifies a block by height and hash."""

    index: int
    hash: str


@dataclass(frozen=True)
class PartialBlockIdentifier:
    """Selects a block by index, hash, both, or neither (the latest block)."""

    index: Optional[int] = None
    hash: Optional[str] = None

    def is_latest(self) -> bool:
        """True when neither index nor hash is given."""
        return self.index is None and self.hash is None


@dataclass(frozen=True)
class SubAccountIdentifier:
    """Names a sub-balance of an account, such as liquid or vesting coins."""

    address: str
    metadata: Optional[dict[str, Any]] = field(default=None, hash=False, compare=True)


@dataclass(frozen=True)
class AccountIdentifier:
    """An account address with an optional sub-account."""

    address: str
    sub_account: Optional[SubAccountIdentifier] = None
    metadata: Optional[dict[str, Any]] = field(default=None, hash=False, compare=True)


@dataclass(frozen=True)
class Currency:
    """A currency symbol and the number of decimals of its base unit."""

    symbol: str
    decimals: int
    metadata: Optional[dict[str, Any]] = field(default=None, hash=False, compare=True)


@dataclass
class Amount:
    """A value in a currency, kept as a decimal string of base units."""

    value: str
    currency: Currency
    metadata: Optional[dict[str, Any]] = None


@dataclass
class SyncStatus:
    """How far the node has synced."""

    current_index: Optional[int] = None
    target_index: Optional[int] = None
    synced: Optional[bool] = None
    stage: Optional[str] = None


@dataclass
class Peer:
    """A peer the node is connected to."""

    peer_id: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionIdentifier:
    """Identifies a transaction by its hash."""

    hash: str


@dataclass
class Transaction:
    """A transaction and the operations it caused."""

    transaction_identifier: TransactionIdentifier
    operations: list[Any] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Block:
    """A block with its parent, timestamp in milliseconds and transactions."""

    block_identifier: BlockIdentifier
    parent_block_identifier: BlockIdentifier
    timestamp: int
    transactions: list[Transaction] = field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None


@dataclass
class BlockResponse:
    """The response to a block request."""

    block: Block
    other_transactions: Optional[list[TransactionIdentifier]] = None


@dataclass
class AccountBalanceResponse:
    """Balances of an account at a given block."""

    block_identifier: BlockIdentifier
    balances: list[Amount] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)