"""Client that reads status, balances and blocks from a Kava node."""

from __future__ import annotations

import hashlib
import json
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

from .account import Account, BalanceServiceFactory, BlockHeader
from .blockhash import begin_block_tx_hash, end_block_tx_hash
from .chain import acc_address_from_bech32, acc_address_to_bech32
from .coins import Coins, parse_coins
from .models import (
    AccountBalanceResponse,
    AccountIdentifier,
    Amount,
    Block,
    BlockIdentifier,
    BlockResponse,
    Currency,
    PartialBlockIdentifier,
    Peer,
    SyncStatus,
    Transaction,
    TransactionIdentifier,
)

SUCCESS_STATUS = "success"
FAILURE_STATUS = "failure"

CODE_TYPE_OK = 0
ROOT_CODESPACE = "sdk"

# Root codespace errors where the fee is never charged:
# invalid sequence, insufficient fee, tx timeout height, wrong sequence.
_FEE_NOT_CHARGED_CODES = frozenset({3, 13, 30, 32})
# Unauthorized, insufficient funds, out of gas: the events tell whether a fee was paid.
_FEE_MAYBE_CHARGED_CODES = frozenset({4, 5, 11})

EVENT_TYPE_COIN_RECEIVED = "coin_received"
ATTRIBUTE_KEY_RECEIVER = "receiver"
ATTRIBUTE_KEY_AMOUNT = "amount"
ETHEREUM_TX_EXTENSION = "/ethermint.evm.v1.ExtensionOptionsEthereumTx"

FEE_COLLECTOR_ADDRESS = acc_address_to_bech32(hashlib.sha256(b"fee_collector").digest()[:20])

_NO_BLOCK_RESULTS = re.compile(r"could not find results for height #(\d+)")
_HEX = re.compile(r"(?:[0-9a-fA-F]{2})*")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RPCError(Exception):
    """An error reported by the node's JSON-RPC interface."""

    def __init__(self, code: int, message: str, data: str = "") -> None:
        super().__init__(code, message, data)
        self.code = code
        self.message = message
        self.data = data

    def __str__(self) -> str:
        if self.data:
            return f"RPC error {self.code} - {self.message}: {self.data}"
        return f"RPC error {self.code} - {self.message}"


class BroadcastError(Exception):
    """Raised when a broadcast transaction is rejected from the mempool."""


class BlockIndexMismatchError(ValueError):
    """Raised when the block found does not have the requested index."""

    def __init__(self, requested: int, returned: int) -> None:
        super().__init__(f"requested index {requested} does not match returned index {returned}")
        self.requested = requested
        self.returned = returned


@dataclass(frozen=True)
class Event:
    """An ABCI event with string attributes."""

    type: str
    attributes: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ResultBlock:
    """A block as returned by the node."""

    block_hash: bytes
    header: BlockHeader
    last_block_hash: bytes = b""
    txs: tuple[bytes, ...] = ()


@dataclass(frozen=True)
class DeliverTxResult:
    """Outcome of executing one transaction."""

    code: int = CODE_TYPE_OK
    codespace: str = ""
    log: str = ""
    events: tuple[Event, ...] = ()


@dataclass(frozen=True)
class ResultBlockResults:
    """Execution results of a block."""

    height: int = 0
    txs_results: tuple[DeliverTxResult, ...] = ()
    begin_block_events: tuple[Event, ...] = ()
    end_block_events: tuple[Event, ...] = ()


@dataclass(frozen=True)
class SyncInfo:
    """Sync information reported by the node."""

    earliest_block_hash: bytes
    earliest_block_height: int
    catching_up: bool = False
    latest_block_hash: bytes = b""
    latest_block_height: int = 0


@dataclass(frozen=True)
class NetPeer:
    """A peer as reported by the node's net info."""

    node_id: str
    moniker: str = ""
    network: str = ""
    version: str = ""
    listen_addr: str = ""
    is_outbound: bool = False
    remote_ip: str = ""


@dataclass(frozen=True)
class BroadcastTxResult:
    """Result of a synchronous broadcast."""

    code: int
    hash: bytes
    log: str = ""


@dataclass
class NodeStatus:
    """Current block, its time in milliseconds, genesis block, sync status and peers."""

    current_block: BlockIdentifier
    current_time: int
    genesis_block: BlockIdentifier
    sync_status: SyncStatus
    peers: list[Peer] = field(default_factory=list)


class _NodeRPC(Protocol):
    def status(self) -> SyncInfo: ...

    def net_info(self) -> Iterable[NetPeer]: ...

    def block(self, height: Optional[int]) -> ResultBlock: ...

    def block_by_hash(self, block_hash: bytes) -> ResultBlock: ...

    def block_results(self, height: Optional[int]) -> ResultBlockResults: ...

    def account(self, address: bytes, height: int) -> Account: ...

    def simulate_tx(self, tx: Any) -> int: ...

    def broadcast_tx_sync(self, tx_bytes: bytes) -> BroadcastTxResult: ...


class TransactionTranslator(Protocol):
    """Decodes raw transactions and turns transactions and events into operations.

    A decoded transaction exposes ``fee`` (coins) and ``extension_options``
    (a sequence of type URLs).
    """

    def decode_tx(self, raw: bytes) -> Any: ...

    def events_to_operations(self, events: Sequence[Event], status: str, index: int) -> list[Any]: ...

    def tx_to_operations(
        self,
        tx: Any,
        events: Sequence[Event],
        logs: list[Any],
        fee_status: str,
        op_status: str,
    ) -> list[Any]: ...


def _hash_string(value: bytes) -> str:
    return bytes(value).hex().upper()


def _decode_hex(text: str) -> bytes:
    if not _HEX.fullmatch(text):
        raise ValueError(f"encoding/hex: invalid byte in {text!r}")
    return bytes.fromhex(text)


def _millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _parse_logs(log: str) -> list[Any]:
    try:
        parsed = json.loads(log)
    except ValueError:
        return []
    return parsed if isinstance(parsed, list) else []


def _contains_fee(tx: Any, result: DeliverTxResult, fee_collector: str) -> bool:
    for event in result.events:
        if event.type != EVENT_TYPE_COIN_RECEIVED:
            continue
        attributes = dict(event.attributes)
        raw_amount = attributes.get(ATTRIBUTE_KEY_AMOUNT, "")
        try:
            amount = parse_coins(raw_amount)
        except ValueError as exc:
            raise ValueError(f"could not parse coins: {raw_amount}") from exc

        # fee status is not used for ethereum transactions
        options = list(getattr(tx, "extension_options", ()) or ())
        if options and options[0] == ETHEREUM_TX_EXTENSION:
            return False

        if attributes.get(ATTRIBUTE_KEY_RECEIVER) == fee_collector and amount == Coins(tx.fee):
            return True
    return False


def is_retriable_error(err: BaseException) -> bool:
    """True when the first RPC error in the chain says block results are not ready yet."""
    seen: set[int] = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, RPCError):
            return _NO_BLOCK_RESULTS.search(current.data) is not None
        current = current.__cause__ or current.__context__
    return False


class Client:
    """Answers Rosetta queries using a node RPC connection."""

    def __init__(
        self,
        rpc: _NodeRPC,
        balance_factory: BalanceServiceFactory,
        currencies: Mapping[str, Currency],
        translator: TransactionTranslator,
        fee_collector_address: str = FEE_COLLECTOR_ADDRESS,
    ) -> None:
        self._rpc = rpc
        self._balance_factory = balance_factory
        self._currencies = dict(currencies)
        self._denoms = {currency.symbol: denom for denom, currency in self._currencies.items()}
        self._translator = translator
        self._fee_collector = fee_collector_address

    def status(self) -> NodeStatus:
        """Latest block, genesis block, sync status and peers of the node."""
        sync_info = self._rpc.status()
        net_peers = list(self._rpc.net_info())
        block, _ = self._block_result(None)

        height = block.header.height
        current = BlockIdentifier(index=height, hash=_hash_string(block.block_hash))
        genesis = BlockIdentifier(
            index=sync_info.earliest_block_height,
            hash=_hash_string(sync_info.earliest_block_hash),
        )
        peers = [
            Peer(
                peer_id=peer.node_id,
                metadata={
                    "Moniker": peer.moniker,
                    "Network": peer.network,
                    "Version": peer.version,
                    "ListenAddr": peer.listen_addr,
                    "IsOutbound": peer.is_outbound,
                    "RemoteIP": peer.remote_ip,
                },
            )
            for peer in net_peers
        ]
        return NodeStatus(
            current_block=current,
            current_time=_millis(block.header.time),
            genesis_block=genesis,
            sync_status=SyncStatus(
                current_index=height, target_index=height, synced=not sync_info.catching_up
            ),
            peers=peers,
        )

    def account(self, address: bytes) -> Account:
        """The account at ``address`` at the latest height."""
        return self._rpc.account(address, 0)

    def estimate_gas(self, tx: Any, adjustment: float) -> int:
        """Gas used by a simulation of ``tx``, scaled by ``1 + adjustment`` and rounded."""
        gas_used = self._rpc.simulate_tx(tx)
        return int(math.floor(gas_used * (1 + adjustment) + 0.5))

    def balance(
        self,
        account_identifier: AccountIdentifier,
        block_identifier: Optional[PartialBlockIdentifier],
        currencies: Optional[Sequence[Currency]],
    ) -> AccountBalanceResponse:
        """Balances of an account at a block, limited to ``currencies`` when given."""
        address = acc_address_from_bech32(account_identifier.address)
        block, _ = self._block_result(block_identifier)
        service = self._balance_factory(address, block.header)
        coins, sequence = service.coins_and_sequence(account_identifier.sub_account)

        return AccountBalanceResponse(
            block_identifier=BlockIdentifier(
                index=block.header.height, hash=_hash_string(block.block_hash)
            ),
            balances=self._balances(Coins(coins), currencies),
            metadata={"account_sequence": sequence},
        )

    def _balances(self, coins: Coins, currencies: Optional[Sequence[Currency]]) -> list[Amount]:
        if currencies is None:
            lookup = self._currencies
        else:
            lookup = {}
            for currency in currencies:
                denom = self._denoms.get(currency.symbol)
                if denom is not None:
                    lookup[denom] = self._currencies[denom]
        return [
            Amount(value=str(coins.amount_of(denom)), currency=currency)
            for denom, currency in lookup.items()
        ]

    def block(self, block_identifier: Optional[PartialBlockIdentifier]) -> BlockResponse:
        """The block selected by hash, else index, else the latest block."""
        block, results = self._block_result(block_identifier)

        height = block.header.height
        if (
            block_identifier is not None
            and block_identifier.index is not None
            and block_identifier.index != height
        ):
            raise BlockIndexMismatchError(block_identifier.index, height)

        identifier = BlockIdentifier(index=height, hash=_hash_string(block.block_hash))
        if height == 1:
            parent = identifier
        else:
            parent = BlockIdentifier(index=height - 1, hash=_hash_string(block.last_block_hash))

        return BlockResponse(
            block=Block(
                block_identifier=identifier,
                parent_block_identifier=parent,
                timestamp=_millis(block.header.time),
                transactions=self._transactions_for_block(block, results),
            )
        )

    def _block_result(
        self, block_identifier: Optional[PartialBlockIdentifier]
    ) -> tuple[ResultBlock, ResultBlockResults]:
        if block_identifier is None or block_identifier.is_latest():
            results = self._latest_block_results()
            return self._rpc.block(results.height), results

        if block_identifier.hash is not None:
            block = self._rpc.block_by_hash(_decode_hex(block_identifier.hash))
        else:
            block = self._rpc.block(block_identifier.index)
        return block, self._rpc.block_results(block.header.height)

    def _latest_block_results(self) -> ResultBlockResults:
        try:
            return self._rpc.block_results(None)
        except Exception as exc:
            # the newest block may not be committed yet; fall back to its parent
            match = _NO_BLOCK_RESULTS.search(str(exc))
            if match is None:
                raise
            return self._rpc.block_results(int(match.group(1)) - 1)

    def _transactions_for_block(
        self, block: ResultBlock, results: ResultBlockResults
    ) -> list[Transaction]:
        transactions: list[Transaction] = []

        begin_ops = self._translator.events_to_operations(
            list(results.begin_block_events), SUCCESS_STATUS, 0
        )
        if begin_ops:
            transactions.append(
                Transaction(
                    transaction_identifier=TransactionIdentifier(
                        begin_block_tx_hash(block.block_hash)
                    ),
                    operations=begin_ops,
                )
            )

        height = block.header.height
        for position, (raw, result) in enumerate(zip(block.txs, results.txs_results, strict=True)):
            try:
                tx = self._translator.decode_tx(raw)
            except Exception as exc:
                raise ValueError(
                    f"unable to unmarshal transaction at index {position} of block {height}: {exc}"
                ) from exc

            metadata = {} if result.code == CODE_TYPE_OK else {"log": result.log}
            transactions.append(
                Transaction(
                    transaction_identifier=TransactionIdentifier(
                        hashlib.sha256(raw).hexdigest().upper()
                    ),
                    operations=self._operations_for_transaction(tx, result),
                    metadata=metadata,
                )
            )

        end_ops = self._translator.events_to_operations(
            list(results.end_block_events), SUCCESS_STATUS, 0
        )
        if end_ops:
            transactions.append(
                Transaction(
                    transaction_identifier=TransactionIdentifier(
                        end_block_tx_hash(block.block_hash)
                    ),
                    operations=end_ops,
                )
            )
        return transactions

    def _operations_for_transaction(self, tx: Any, result: DeliverTxResult) -> list[Any]:
        op_status = SUCCESS_STATUS if result.code == CODE_TYPE_OK else FAILURE_STATUS
        fee_status = SUCCESS_STATUS

        if result.codespace == ROOT_CODESPACE:
            if result.code in _FEE_NOT_CHARGED_CODES:
                fee_status = FAILURE_STATUS
            elif result.code in _FEE_MAYBE_CHARGED_CODES:
                paid = _contains_fee(tx, result, self._fee_collector)
                fee_status = SUCCESS_STATUS if paid else FAILURE_STATUS

        return self._translator.tx_to_operations(
            tx, list(result.events), _parse_logs(result.log), fee_status, op_status
        )

    def post_tx(self, tx_bytes: bytes) -> TransactionIdentifier:
        """Broadcast ``tx_bytes``; raise BroadcastError if it is not accepted."""
        result = self._rpc.broadcast_tx_sync(tx_bytes)
        if result.code != CODE_TYPE_OK:
            raise BroadcastError(result.log)
        return TransactionIdentifier(hash=_hash_string(result.hash))