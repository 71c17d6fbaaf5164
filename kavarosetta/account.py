"""Account balances split into liquid, vesting, delegated and unbonding parts."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Union

from .coins import Coin, Coins
from .models import SubAccountIdentifier

STAKING_DENOM = "ukava"

ACC_LIQUID = "liquid"
ACC_VESTING = "vesting"
ACC_LIQUID_DELEGATED = "liquid_delegated"
ACC_VESTING_DELEGATED = "vesting_delegated"
ACC_LIQUID_UNBONDING = "liquid_unbonding"
ACC_VESTING_UNBONDING = "vesting_unbonding"

_ADDRESS_NOT_FOUND = re.compile("not found")


def _unix(moment: datetime) -> int:
    return math.floor(moment.timestamp())


def _kava_coins(amount: int) -> Coins:
    return Coins([Coin(STAKING_DENOM, amount)])


def _min_coins(a: Coins, b: Coins) -> Coins:
    shared = {coin.denom for coin in a} & {coin.denom for coin in b}
    return Coins(Coin(denom, min(a.amount_of(denom), b.amount_of(denom))) for denom in shared)


@dataclass(frozen=True)
class BlockHeader:
    """Height and time of the block a balance is read at."""

    height: int
    time: datetime


@dataclass(frozen=True)
class BaseAccount:
    """A plain account with its raw address and sequence number."""

    address: bytes = b""
    sequence: int = 0


@dataclass(frozen=True)
class VestingPeriod:
    """Coins that vest after ``length`` seconds from the previous period."""

    length: int
    amount: Coins = field(default_factory=Coins)


@dataclass(frozen=True)
class PeriodicVestingAccount:
    """An account whose original vesting coins unlock over a series of periods."""

    address: bytes = b""
    sequence: int = 0
    original_vesting: Coins = field(default_factory=Coins)
    delegated_free: Coins = field(default_factory=Coins)
    delegated_vesting: Coins = field(default_factory=Coins)
    start_time: int = 0
    end_time: int = 0
    vesting_periods: tuple[VestingPeriod, ...] = ()

    def vested_coins(self, block_time: datetime) -> Coins:
        """Coins that have vested by ``block_time``."""
        now = _unix(block_time)
        if now <= self.start_time:
            return Coins()
        if now >= self.end_time:
            return self.original_vesting
        vested = Coins()
        period_start = self.start_time
        for period in self.vesting_periods:
            if now - period_start < period.length:
                break
            vested = vested.add(period.amount)
            period_start += period.length
        return vested

    def vesting_coins(self, block_time: datetime) -> Coins:
        """Coins still vesting at ``block_time``."""
        return self.original_vesting.sub(self.vested_coins(block_time))

    def locked_coins(self, block_time: datetime) -> Coins:
        """Vesting coins at ``block_time`` that are not covered by vesting delegations."""
        vesting = self.vesting_coins(block_time)
        return vesting.sub(_min_coins(vesting, self.delegated_vesting))


Account = Union[BaseAccount, PeriodicVestingAccount]


@dataclass(frozen=True)
class DelegationResponse:
    """A delegation and its balance."""

    balance: Coin


@dataclass(frozen=True)
class UnbondingDelegationEntry:
    """One pending unbonding of staking tokens."""

    balance: int


@dataclass(frozen=True)
class UnbondingDelegation:
    """All pending unbondings from one validator."""

    entries: tuple[UnbondingDelegationEntry, ...] = ()


class _BalanceRPC(Protocol):
    def account(self, address: bytes, height: int) -> Account: ...

    def balance(self, address: bytes, height: int) -> Iterable[Coin]: ...

    def delegations(self, address: bytes, height: int) -> Iterable[DelegationResponse]: ...

    def unbonding_delegations(
        self, address: bytes, height: int
    ) -> Iterable[UnbondingDelegation]: ...


def sum_delegations(delegations: Iterable[DelegationResponse]) -> Coins:
    """Total coins across delegations."""
    return Coins().add(*(d.balance for d in delegations))


def sum_unbonding_delegations(unbonding_delegations: Iterable[UnbondingDelegation]) -> Coins:
    """Total staking tokens across all unbonding entries."""
    total = sum(entry.balance for u in unbonding_delegations for entry in u.entries)
    if total > 0:
        return _kava_coins(total)
    return Coins()


class AccountBalanceService(ABC):
    """Reads the coins of one account, or of one of its sub-accounts."""

    @abstractmethod
    def coins_and_sequence(
        self, sub_account: Optional[SubAccountIdentifier]
    ) -> tuple[Coins, int]:
        """Return the coins for ``sub_account`` (all owned coins if None) and the sequence."""


BalanceServiceFactory = Callable[[bytes, BlockHeader], AccountBalanceService]


@dataclass
class NullBalance(AccountBalanceService):
    """Balance of an account the chain does not know: no coins."""

    account: Optional[Account] = None

    def coins_and_sequence(
        self, sub_account: Optional[SubAccountIdentifier]
    ) -> tuple[Coins, int]:
        sequence = self.account.sequence if self.account is not None else 0
        return Coins(), sequence


@dataclass
class _StakingBalance(AccountBalanceService, ABC):
    rpc: _BalanceRPC
    account: Account
    balance: Coins
    block_header: BlockHeader

    def _total_delegated(self) -> Coins:
        return sum_delegations(
            self.rpc.delegations(self.account.address, self.block_header.height)
        )

    def _total_unbonding(self) -> Coins:
        return sum_unbonding_delegations(
            self.rpc.unbonding_delegations(self.account.address, self.block_header.height)
        )


@dataclass
class BaseAccountBalance(_StakingBalance):
    """Balance of an account without vesting."""

    def coins_and_sequence(
        self, sub_account: Optional[SubAccountIdentifier]
    ) -> tuple[Coins, int]:
        sequence = self.account.sequence
        if sub_account is None:
            return self.balance, sequence

        kind = sub_account.address
        if kind == ACC_LIQUID:
            coins = self.balance
        elif kind == ACC_LIQUID_DELEGATED:
            coins = self._total_delegated()
        elif kind == ACC_LIQUID_UNBONDING:
            coins = self._total_unbonding()
        else:
            coins = Coins()
        return coins, sequence


@dataclass
class VestingAccountBalance(_StakingBalance):
    """Balance of a vesting account, with staked coins split into liquid and vesting."""

    account: PeriodicVestingAccount

    def coins_and_sequence(
        self, sub_account: Optional[SubAccountIdentifier]
    ) -> tuple[Coins, int]:
        sequence = self.account.sequence
        if sub_account is None:
            return self.balance, sequence

        block_time = self.block_header.time
        kind = sub_account.address
        if kind == ACC_LIQUID:
            coins = self.balance.sub(self.account.locked_coins(block_time))
        elif kind == ACC_VESTING:
            coins = self.account.vesting_coins(block_time)
        elif kind == ACC_LIQUID_DELEGATED:
            coins = self._delegated()[0]
        elif kind == ACC_VESTING_DELEGATED:
            coins = self._delegated()[1]
        elif kind == ACC_LIQUID_UNBONDING:
            coins = self._unbonding()[0]
        elif kind == ACC_VESTING_UNBONDING:
            coins = self._unbonding()[1]
        else:
            coins = Coins()
        return coins, sequence

    def _delegated(self) -> tuple[Coins, Coins]:
        """Liquid and vesting coins that are staked."""
        delegated = self._total_delegated().amount_of(STAKING_DENOM)
        unbonding = self._total_unbonding().amount_of(STAKING_DENOM)
        total_staked = delegated + unbonding
        delegated_free = self.account.delegated_free.amount_of(STAKING_DENOM)

        # staked and unbonding tokens counted as liquid
        total_free = min(total_staked, delegated_free)
        # the rest is vesting, up to the delegated amount
        staked_vesting = min(total_staked - total_free, delegated)
        staked_free = delegated - staked_vesting
        return _kava_coins(staked_free), _kava_coins(staked_vesting)

    def _unbonding(self) -> tuple[Coins, Coins]:
        """Liquid and vesting coins that are unbonding."""
        unbonding = self._total_unbonding().amount_of(STAKING_DENOM)
        delegated_free = self.account.delegated_free.amount_of(STAKING_DENOM)
        unbonding_free = min(delegated_free, unbonding)
        return _kava_coins(unbonding_free), _kava_coins(unbonding - unbonding_free)


def new_rpc_balance_factory(rpc: _BalanceRPC) -> BalanceServiceFactory:
    """Return a factory that builds balance services from RPC lookups."""

    def factory(address: bytes, block_header: BlockHeader) -> AccountBalanceService:
        try:
            account = rpc.account(address, block_header.height)
        except Exception as exc:
            if _ADDRESS_NOT_FOUND.search(str(exc)):
                return NullBalance()
            raise

        balance = Coins(rpc.balance(address, block_header.height))

        if isinstance(account, PeriodicVestingAccount):
            return VestingAccountBalance(
                rpc=rpc, account=account, balance=balance, block_header=block_header
            )
        return BaseAccountBalance(
            rpc=rpc, account=account, balance=balance, block_header=block_header
        )

    return factory