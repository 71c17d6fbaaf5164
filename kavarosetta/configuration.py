"""Service configuration loaded from the environment."""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .models import NetworkIdentifier

MIDDLEWARE_VERSION = "0.0.1"
BLOCKCHAIN = "Kava"

MODE_ENV = "MODE"
NETWORK_ENV = "NETWORK"
PORT_ENV = "PORT"
KAVA_RPC_URL_ENV = "KAVA_RPC_URL"

_INTEGER = re.compile(r"[+-]?[0-9]+")


class Mode(str, Enum):
    """Whether the service may make outbound connections."""

    ONLINE = "online"
    OFFLINE = "offline"

    def __str__(self) -> str:
        return self.value


class ConfigurationError(ValueError):
    """Raised when the configuration is missing or invalid."""


def mode_from_string(val: str) -> Mode:
    """Return the Mode named by ``val``."""
    try:
        return Mode(val)
    except ValueError:
        raise ConfigurationError(
            f"invalid mode {val}, must be one of [{Mode.ONLINE},{Mode.OFFLINE}]"
        ) from None


class ConfigLoader(ABC):
    """Source of configuration values by key; missing keys give ''."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the value for ``key`` or an empty string."""


class EnvLoader(ConfigLoader):
    """Reads values from the process environment."""

    def get(self, key: str) -> str:
        return os.environ.get(key, "")


class DictLoader(ConfigLoader):
    """Reads values from a mapping."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def get(self, key: str) -> str:
        return self._values.get(key, "")


@dataclass(frozen=True)
class Configuration:
    """Settings for the service and the network it talks to."""

    mode: Mode
    network_identifier: NetworkIdentifier
    port: int
    kava_rpc_url: str


def _require(loader: ConfigLoader, key: str) -> str:
    value = loader.get(key)
    if value == "":
        raise ConfigurationError(f"{key} must be set")
    return value


def load_config(loader: ConfigLoader) -> Configuration:
    """Build a Configuration from ``loader``, raising ConfigurationError on bad input."""
    mode = mode_from_string(_require(loader, MODE_ENV))
    network = _require(loader, NETWORK_ENV)
    port = _require(loader, PORT_ENV)

    if not _INTEGER.fullmatch(port) or int(port) <= 0:
        raise ConfigurationError(f"invalid port '{port}'")

    rpc_url = _require(loader, KAVA_RPC_URL_ENV)

    return Configuration(
        mode=mode,
        network_identifier=NetworkIdentifier(blockchain=BLOCKCHAIN, network=network),
        port=int(port),
        kava_rpc_url=rpc_url,
    )