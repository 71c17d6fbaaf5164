# kavarosetta

Building blocks for answering Rosetta API queries against a Kava node.
The package has no third-party dependencies.

## Modules

- `kavarosetta.configuration`: reads `MODE`, `NETWORK`, `PORT` and
  `KAVA_RPC_URL` through a loader and checks them. `load_config` returns a
  frozen `Configuration` (`mode`, `network_identifier`, `port`,
  `kava_rpc_url`). It raises `ConfigurationError` when a value is missing,
  when the mode is not `online` or `offline`, or when the port is not a
  positive integer. The network identifier's blockchain is always `"Kava"`.
- `kavarosetta.models`: the Rosetta data types, as dataclasses.
  They include `BlockIdentifier`, `PartialBlockIdentifier`,
  `AccountIdentifier`, `SubAccountIdentifier`, `Currency`, `Amount`,
  `SyncStatus`, `Peer`, `Transaction`, `Block`, `BlockResponse` and
  `AccountBalanceResponse`.
- `kavarosetta.chain`: the fixed chain settings in `ChainConfig`. These are
  coin type 459 and the `kava`, `kavapub`, `kavavaloper`, `kavavaloperpub`,
  `kavavalcons` and `kavavalconspub` prefixes. The module also has
  `bech32_encode` and `bech32_decode`, and `acc_address_from_bech32` and
  `acc_address_to_bech32` for `kava1...` account addresses. Invalid input
  raises `AddressError`.
- `kavarosetta.coins`: `Coin` and `Coins`. A `Coins` value is immutable,
  sorted by denom, and has no zero amounts. It provides `add`, `sub`
  (which raises on a negative result), `amount_of` and `is_zero`.
  `parse_coins` reads strings such as `"5000ukava,10hard"`.
- `kavarosetta.account`: balance services for `BaseAccount` and
  `PeriodicVestingAccount`. `coins_and_sequence(sub_account)` returns the
  coins and the account sequence. The sub-accounts are `liquid`,
  `vesting`, `liquid_delegated`, `vesting_delegated`, `liquid_unbonding`
  and `vesting_unbonding`. Staked and unbonding `ukava` is split into its
  liquid and vesting parts, and an unknown sub-account gives no coins.
  `new_rpc_balance_factory(rpc)` builds the right service for an address
  at a block. It calls `rpc.account`, `rpc.balance`, `rpc.delegations` and
  `rpc.unbonding_delegations`. An account lookup error whose message
  contains "not found" gives a `NullBalance` with no coins.
- `kavarosetta.blockhash`: `begin_block_tx_hash` and `end_block_tx_hash`.
  Each returns the block hash with a `00` or `01` byte in front, as upper
  case hex.
- `kavarosetta.client`: `Client` answers status, balance, block,
  account, gas estimation and broadcast queries.

## Configuration

```python
from kavarosetta.configuration import ConfigurationError, EnvLoader, load_config

try:
    config = load_config(EnvLoader())
except ConfigurationError as err:
    raise SystemExit(f"bad configuration: {err}")
```

`EnvLoader` reads the process environment, and `DictLoader` reads a
mapping. With either loader, a missing key reads as the empty string.

## Addresses and block transaction hashes

```python
from kavarosetta.chain import acc_address_from_bech32, acc_address_to_bech32
from kavarosetta.blockhash import begin_block_tx_hash, end_block_tx_hash

address = acc_address_to_bech32(bytes(20))   # "kava1..."
assert acc_address_from_bech32(address) == bytes(20)

block_hash = bytes.fromhex("D92BDF0B5EDB04434B398A59B2FD4ED3D52B4820A18DAC7311EBDF5D37467E75")
begin_block_tx_hash(block_hash)  # "00D92BDF..."
end_block_tx_hash(block_hash)    # "01D92BDF..."
```

## Client

`Client(rpc, balance_factory, currencies, translator)` takes four arguments:

- `rpc`: an object that talks to the node. It needs `status`, `net_info`,
  `block`, `block_by_hash`, `block_results`, `account`, `simulate_tx` and
  `broadcast_tx_sync`, and returns the result types defined in
  `kavarosetta.client`.
- `balance_factory`: for example `new_rpc_balance_factory(rpc)`.
- `currencies`: a mapping from denom to `Currency`.
- `translator`: an object that decodes raw transactions and turns
  transactions and events into operations (`TransactionTranslator`).

The methods:

- `status()` returns a `NodeStatus`: the current and genesis blocks, the
  current block time in milliseconds, the sync status and the peers.
- `balance(account_identifier, block_identifier, currencies)` returns one
  `Amount` per supported currency. When a list of currencies is given, it
  returns an `Amount` only for those currencies. Absent coins show as `"0"`.
  The response metadata holds `account_sequence`.
- `block(block_identifier)` looks the block up by hash first, then by
  index, and otherwise takes the latest block. If the latest block's
  results are not committed yet, it uses the previous block. Begin-block
  and end-block events appear as extra transactions when they produce
  operations.
- `estimate_gas(tx, adjustment)` returns the simulated gas times
  `1 + adjustment`, rounded.
- `post_tx(tx_bytes)` broadcasts the bytes and returns the transaction
  hash.

## Errors

- `ConfigurationError` when configuration is missing or invalid.
- `AddressError` when an address is not valid bech32 or lacks the `kava`
  prefix.
- `BroadcastError` when a broadcast transaction is rejected. It carries
  the node's log.
- `BlockIndexMismatchError` when the block found does not have the
  requested index.
- `RPCError` for an RPC implementation to raise for node errors.
  `is_retriable_error(err)` returns true when the first `RPCError` in an
  exception chain says that block results are not ready yet.

## What this package does not do

It runs no HTTP server and installs no command. It has no network
transport to a node, so the `rpc` object has to come from you. It has no
transaction decoding, no event-to-operation mapping and no built-in
currency table. These come in through the `translator` and `currencies`
arguments of `Client`.