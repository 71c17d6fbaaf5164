"""Rosetta API data layer for the Kava chain: configuration, addresses, coins, balances and blocks."""

__version__ = "0.0.1"