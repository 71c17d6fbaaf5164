from datetime import datetime, timedelta, timezone

import pytest

from kavarosetta.account import (
    ACC_LIQUID,
    ACC_LIQUID_DELEGATED,
    ACC_LIQUID_UNBONDING,
    ACC_VESTING,
    ACC_VESTING_DELEGATED,
    ACC_VESTING_UNBONDING,
    BaseAccount,
    BaseAccountBalance,
    BlockHeader,
    DelegationResponse,
    NullBalance,
    PeriodicVestingAccount,
    UnbondingDelegation,
    UnbondingDelegationEntry,
    VestingAccountBalance,
    VestingPeriod,
    new_rpc_balance_factory,
    sum_delegations,
    sum_unbonding_delegations,
)
from kavarosetta.chain import acc_address_from_bech32
from kavarosetta.coins import Coin, Coins
from kavarosetta.models import SubAccountIdentifier

ADDRESS = acc_address_from_bech32("kava1vlpsrmdyuywvaqrv7rx6xga224sqfwz3fyfhwq")
HEIGHT = 100
BLOCK_TIME = datetime(2021, 4, 8, 15, 13, 25, tzinfo=timezone.utc)
ACCOUNT_NOT_FOUND = "account kava1vlpsrmdyuywvaqrv7rx6xga224sqfwz3fyfhwq not found"


def ukava(amount):
    return Coin("ukava", amount)


def hard(amount):
    return Coin("hard", amount)


class FakeRPC:
    def __init__(
        self,
        account=None,
        balance=(),
        delegated=(),
        unbonding=(),
        account_error=None,
        balance_error=None,
        delegated_error=None,
        unbonding_error=None,
    ):
        self._account = account
        self._balance = balance
        self._delegated = delegated
        self._unbonding = unbonding
        self._account_error = account_error
        self._balance_error = balance_error
        self._delegated_error = delegated_error
        self._unbonding_error = unbonding_error
        self.calls = []

    def _record(self, name, address, height):
        assert address == ADDRESS
        assert height == HEIGHT
        self.calls.append(name)

    def account(self, address, height):
        self._record("account", address, height)
        if self._account_error:
            raise self._account_error
        return self._account

    def balance(self, address, height):
        self._record("balance", address, height)
        if self._balance_error:
            raise self._balance_error
        return self._balance

    def delegations(self, address, height):
        self._record("delegations", address, height)
        if self._delegated_error:
            raise self._delegated_error
        return [DelegationResponse(balance=c) for c in self._delegated]

    def unbonding_delegations(self, address, height):
        self._record("unbonding_delegations", address, height)
        if self._unbonding_error:
            raise self._unbonding_error
        return [
            UnbondingDelegation(entries=(UnbondingDelegationEntry(balance=c.amount),))
            for c in self._unbonding
        ]


def build_service(rpc, block_time=BLOCK_TIME):
    factory = new_rpc_balance_factory(rpc)
    return factory(ADDRESS, BlockHeader(height=HEIGHT, time=block_time))


def sub(name):
    return SubAccountIdentifier(address=name)


def test_account_error_propagates():
    rpc = FakeRPC(account_error=RuntimeError("error retrieving account"))
    with pytest.raises(RuntimeError, match="error retrieving account"):
        build_service(rpc)


def test_null_account_has_no_coins():
    rpc = FakeRPC(account_error=RuntimeError(ACCOUNT_NOT_FOUND))
    service = build_service(rpc)
    assert isinstance(service, NullBalance)
    coins, sequence = service.coins_and_sequence(sub(ACC_LIQUID))
    assert coins == Coins()
    assert sequence == 0
    assert rpc.calls == ["account"]


def test_balance_error_propagates():
    rpc = FakeRPC(account=BaseAccount(), balance_error=RuntimeError("error retrieving balance"))
    with pytest.raises(RuntimeError, match="error retrieving balance"):
        build_service(rpc)


BASE_COINS = Coins([ukava(1000000), hard(500000)])
THREE_HALVES = [ukava(500000), ukava(500000), ukava(500000)]


@pytest.mark.parametrize(
    "sub_account, delegated, unbonding, expected",
    [
        (None, (), (), BASE_COINS),
        (sub(ACC_LIQUID), (), (), BASE_COINS),
        (sub(ACC_VESTING), (), (), Coins()),
        (sub(ACC_LIQUID_DELEGATED), THREE_HALVES, (), Coins([ukava(1500000)])),
        (sub(ACC_VESTING_DELEGATED), [ukava(500000)], (), Coins()),
        (sub(ACC_LIQUID_UNBONDING), (), THREE_HALVES, Coins([ukava(1500000)])),
        (sub(ACC_VESTING_UNBONDING), [ukava(500000)], (), Coins()),
        (sub("unknown"), [ukava(500000)], (), Coins()),
    ],
)
def test_base_account_balance(sub_account, delegated, unbonding, expected):
    account = BaseAccount(address=ADDRESS, sequence=100)
    rpc = FakeRPC(account=account, balance=BASE_COINS, delegated=delegated, unbonding=unbonding)
    service = build_service(rpc)
    assert isinstance(service, BaseAccountBalance)
    coins, sequence = service.coins_and_sequence(sub_account)
    assert coins == expected
    assert sequence == 100


@pytest.mark.parametrize(
    "sub_account, rpc_kwargs",
    [
        (sub(ACC_LIQUID_DELEGATED), {"delegated_error": RuntimeError("some rpc error")}),
        (sub(ACC_LIQUID_UNBONDING), {"unbonding_error": RuntimeError("some rpc error")}),
    ],
)
def test_base_account_rpc_errors(sub_account, rpc_kwargs):
    account = BaseAccount(address=ADDRESS, sequence=100)
    rpc = FakeRPC(account=account, balance=BASE_COINS, **rpc_kwargs)
    service = build_service(rpc)
    with pytest.raises(RuntimeError, match="some rpc error"):
        service.coins_and_sequence(sub_account)


VESTING_START = BLOCK_TIME - timedelta(hours=1)
VESTING_END = VESTING_START + timedelta(hours=2)
PERIOD_AMOUNT = Coins([ukava(500000), hard(250000)])
PERIODS = (
    VestingPeriod(length=3600, amount=PERIOD_AMOUNT),
    VestingPeriod(length=3600, amount=PERIOD_AMOUNT),
)
ORIGINAL_VESTING = Coins().add(*(p.amount for p in PERIODS))
VESTING_BASE_COINS = ORIGINAL_VESTING.add(Coins([ukava(500000), hard(250000)]))
TWO_QUARTERS = [ukava(250000), ukava(250000)]


def vesting_account(original=ORIGINAL_VESTING, delegated_free=(), delegated_vesting=()):
    return PeriodicVestingAccount(
        address=ADDRESS,
        sequence=101,
        original_vesting=original,
        delegated_free=Coins(delegated_free),
        delegated_vesting=Coins(delegated_vesting),
        start_time=int(VESTING_START.timestamp()),
        end_time=int(VESTING_END.timestamp()),
        vesting_periods=PERIODS,
    )


@pytest.mark.parametrize(
    "sub_account, free, dvesting, unbonding, delegated, expected",
    [
        (None, None, None, (), (), VESTING_BASE_COINS),
        (sub(ACC_LIQUID), None, None, (), (), VESTING_BASE_COINS.sub(PERIODS[1].amount)),
        (sub(ACC_VESTING), None, None, (), (), PERIODS[1].amount),
        (sub(ACC_LIQUID_DELEGATED), 1000000, None, TWO_QUARTERS, TWO_QUARTERS,
         Coins([ukava(500000)])),
        (sub(ACC_LIQUID_DELEGATED), 250000, 1000000, TWO_QUARTERS, TWO_QUARTERS, Coins()),
        (sub(ACC_LIQUID_DELEGATED), 250000, 1000000, (), TWO_QUARTERS, Coins([ukava(250000)])),
        (sub(ACC_VESTING_DELEGATED), 750000, 1000000, TWO_QUARTERS, TWO_QUARTERS,
         Coins([ukava(250000)])),
        (sub(ACC_VESTING_DELEGATED), 250000, 1000000, TWO_QUARTERS, TWO_QUARTERS,
         Coins([ukava(500000)])),
        (sub(ACC_VESTING_DELEGATED), 0, 1000000, (), TWO_QUARTERS, Coins([ukava(500000)])),
        (sub(ACC_LIQUID_UNBONDING), 750000, 1000000, TWO_QUARTERS, TWO_QUARTERS,
         Coins([ukava(500000)])),
        (sub(ACC_LIQUID_UNBONDING), 250000, 1000000, TWO_QUARTERS, TWO_QUARTERS,
         Coins([ukava(250000)])),
        (sub(ACC_VESTING_UNBONDING), 500000, 1000000, TWO_QUARTERS, TWO_QUARTERS, Coins()),
        (sub(ACC_VESTING_UNBONDING), 250000, 1000000, TWO_QUARTERS, TWO_QUARTERS,
         Coins([ukava(250000)])),
        (sub("unknown"), None, None, (), (), Coins()),
    ],
)
def test_vesting_account_balance(sub_account, free, dvesting, unbonding, delegated, expected):
    account = vesting_account(
        delegated_free=[] if free is None else [ukava(free)],
        delegated_vesting=[] if dvesting is None else [ukava(dvesting)],
    )
    rpc = FakeRPC(
        account=account, balance=VESTING_BASE_COINS, delegated=delegated, unbonding=unbonding
    )
    service = build_service(rpc)
    assert isinstance(service, VestingAccountBalance)
    coins, sequence = service.coins_and_sequence(sub_account)
    assert coins == expected
    assert sequence == 101


@pytest.mark.parametrize(
    "sub_account, rpc_kwargs",
    [
        (sub(ACC_LIQUID_DELEGATED), {"delegated_error": RuntimeError("some rpc error")}),
        (sub(ACC_LIQUID_DELEGATED), {"unbonding_error": RuntimeError("some rpc error")}),
        (sub(ACC_LIQUID_UNBONDING), {"unbonding_error": RuntimeError("some rpc error")}),
    ],
)
def test_vesting_account_rpc_errors(sub_account, rpc_kwargs):
    account = vesting_account(original=Coins())
    rpc = FakeRPC(account=account, balance=VESTING_BASE_COINS, **rpc_kwargs)
    service = build_service(rpc)
    with pytest.raises(RuntimeError, match="some rpc error"):
        service.coins_and_sequence(sub_account)


def test_vested_coins_before_start_and_after_end():
    account = vesting_account()
    before = VESTING_START - timedelta(seconds=1)
    after = VESTING_END + timedelta(seconds=1)
    assert account.vested_coins(before) == Coins()
    assert account.vesting_coins(before) == ORIGINAL_VESTING
    assert account.vested_coins(after) == ORIGINAL_VESTING
    assert account.vesting_coins(after) == Coins()


def test_vested_and_vesting_sum_to_original():
    account = vesting_account()
    total = account.vested_coins(BLOCK_TIME).add(account.vesting_coins(BLOCK_TIME))
    assert total == ORIGINAL_VESTING


def test_locked_coins_reduced_by_delegated_vesting():
    account = vesting_account(delegated_vesting=[ukava(500000)])
    assert account.locked_coins(BLOCK_TIME) == Coins([hard(250000)])


def test_sum_delegations():
    delegations = [DelegationResponse(balance=c) for c in THREE_HALVES]
    assert sum_delegations(delegations) == Coins([ukava(1500000)])
    assert sum_delegations([]) == Coins()


def test_sum_unbonding_delegations():
    unbonding = [
        UnbondingDelegation(
            entries=(UnbondingDelegationEntry(500000), UnbondingDelegationEntry(500000))
        ),
        UnbondingDelegation(entries=(UnbondingDelegationEntry(500000),)),
    ]
    assert sum_unbonding_delegations(unbonding) == Coins([ukava(1500000)])
    assert sum_unbonding_delegations([UnbondingDelegation()]) == Coins()