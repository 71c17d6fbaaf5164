"""Coin amounts and sorted sets of coins in several denominations."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Any, Union, overload

_DENOM_PATTERN = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"
_DENOM = re.compile(_DENOM_PATTERN)
_DEC_COIN = re.compile(r"([0-9]+(?:\.[0-9]+)?|\.[0-9]+)\s*(" + _DENOM_PATTERN + r")")


@dataclass(frozen=True)
class Coin:
    """A non-negative integer amount of a single denomination."""

    denom: str
    amount: int

    def __post_init__(self) -> None:
        if not _DENOM.fullmatch(self.denom):
            raise ValueError(f"invalid denom: {self.denom}")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"coin amount must be an integer, got {self.amount!r}")
        if self.amount < 0:
            raise ValueError(f"negative coin amount: {self.amount}")

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


CoinLike = Union[Coin, Iterable[Coin]]


def _flatten(args: tuple[CoinLike, ...]) -> Iterator[Coin]:
    for arg in args:
        if isinstance(arg, Coin):
            yield arg
            continue
        for coin in arg:
            if not isinstance(coin, Coin):
                raise TypeError(f"expected a Coin, got {coin!r}")
            yield coin


class Coins(Sequence[Coin]):
    """An immutable set of coins, sorted by denom, with no zero amounts."""

    __slots__ = ("_coins",)

    def __init__(self, coins: Iterable[Coin] = ()) -> None:
        kept = sorted((coin for coin in _flatten((coins,)) if coin.amount), key=lambda c: c.denom)
        for previous, current in zip(kept, kept[1:]):
            if previous.denom == current.denom:
                raise ValueError(f"duplicate denomination {current.denom}")
        self._coins: tuple[Coin, ...] = tuple(kept)

    @overload
    def __getitem__(self, index: int) -> Coin: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Coin, ...]: ...

    def __getitem__(self, index: Any) -> Any:
        return self._coins[index]

    def __len__(self) -> int:
        return len(self._coins)

    def __iter__(self) -> Iterator[Coin]:
        return iter(self._coins)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Coins):
            return NotImplemented
        return self._coins == other._coins

    def __hash__(self) -> int:
        return hash(self._coins)

    def __repr__(self) -> str:
        return f"Coins({list(self._coins)!r})"

    def __str__(self) -> str:
        return ",".join(str(coin) for coin in self._coins)

    def _totals(self) -> dict[str, int]:
        return {coin.denom: coin.amount for coin in self._coins}

    def amount_of(self, denom: str) -> int:
        """Amount held of ``denom``, zero if absent."""
        return next((coin.amount for coin in self._coins if coin.denom == denom), 0)

    def add(self, *args: CoinLike) -> Coins:
        """Return the sum of these coins and the given coins."""
        totals = self._totals()
        for coin in _flatten(args):
            totals[coin.denom] = totals.get(coin.denom, 0) + coin.amount
        return Coins(Coin(denom, amount) for denom, amount in totals.items())

    def sub(self, *args: CoinLike) -> Coins:
        """Return these coins less the given coins; raise if any amount goes negative."""
        totals = self._totals()
        for coin in _flatten(args):
            totals[coin.denom] = totals.get(coin.denom, 0) - coin.amount
        negative = [f"{amount}{denom}" for denom, amount in sorted(totals.items()) if amount < 0]
        if negative:
            raise ValueError(f"negative coin amount: {','.join(negative)}")
        return Coins(Coin(denom, amount) for denom, amount in totals.items())

    def is_zero(self) -> bool:
        """True when no denomination has a positive amount."""
        return not self._coins


def parse_coins(text: str) -> Coins:
    """Parse a comma separated list such as ``"10ukava,5hard"``.

    Decimal amounts are accepted and truncated to whole units; zero amounts are dropped.
    """
    text = text.strip()
    if not text:
        return Coins()
    coins = []
    for part in text.split(","):
        match = _DEC_COIN.fullmatch(part.strip())
        if match is None:
            raise ValueError(f"invalid decimal coin expression: {part.strip()}")
        amount = int(Decimal(match.group(1)).to_integral_value(rounding=ROUND_DOWN))
        coins.append(Coin(match.group(2), amount))
    return Coins(coins)