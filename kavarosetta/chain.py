"""Kava chain parameters and bech32 account addresses."""

from __future__ import annotations

from dataclasses import dataclass

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_MAX_LENGTH = 1023
_MAX_ADDRESS_LENGTH = 255


@dataclass(frozen=True)
class ChainConfig:
    """Sealed address and key-derivation settings of the Kava chain."""

    coin_type: int = 459
    bech32_account_addr_prefix: str = "kava"
    bech32_account_pub_prefix: str = "kavapub"
    bech32_validator_addr_prefix: str = "kavavaloper"
    bech32_validator_pub_prefix: str = "kavavaloperpub"
    bech32_consensus_addr_prefix: str = "kavavalcons"
    bech32_consensus_pub_prefix: str = "kavavalconspub"


CONFIG = ChainConfig()


class AddressError(ValueError):
    """Raised when an address or bech32 string is invalid."""


def _polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for bit, gen in enumerate(_GENERATOR):
            if (top >> bit) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits:
        raise AddressError("invalid incomplete group")
    elif (acc << (to_bits - bits)) & maxv:
        raise AddressError("invalid non-zero padding")
    return out


def bech32_encode(hrp: str, data: bytes) -> str:
    """Encode bytes under a human-readable prefix as a bech32 string."""
    if hrp != hrp.lower():
        raise AddressError("invalid human-readable part: must be lower case")
    words = _convert_bits(bytes(data), 8, 5, True)
    polymod = _polymod(_hrp_expand(hrp) + words + [0] * 6) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_CHARSET[w] for w in words + checksum)


def bech32_decode(text: str) -> tuple[str, bytes]:
    """Decode a bech32 string into its lower-case prefix and data bytes."""
    if len(text) < 8 or len(text) > _MAX_LENGTH:
        raise AddressError(f"decoding bech32 failed: invalid bech32 string length {len(text)}")
    if any(ord(c) < 33 or ord(c) > 126 for c in text):
        raise AddressError("decoding bech32 failed: invalid character in string")
    lower = text.lower()
    if text != lower and text != text.upper():
        raise AddressError("decoding bech32 failed: string not all lowercase or all uppercase")
    sep = lower.rfind("1")
    if sep < 1 or sep + 7 > len(lower):
        raise AddressError(f"decoding bech32 failed: invalid separator index {sep}")
    hrp, payload = lower[:sep], lower[sep + 1 :]
    try:
        words = [_CHARSET.index(c) for c in payload]
    except ValueError:
        raise AddressError("decoding bech32 failed: invalid character not part of charset") from None
    if _polymod(_hrp_expand(hrp) + words) != 1:
        raise AddressError("decoding bech32 failed: invalid checksum")
    try:
        data = bytes(_convert_bits(words[:-6], 5, 8, False))
    except AddressError as exc:
        raise AddressError(f"decoding bech32 failed: {exc}") from None
    return hrp, data


def acc_address_from_bech32(address: str) -> bytes:
    """Decode a Kava account address into its raw bytes."""
    if not address.strip():
        raise AddressError("empty address string is not allowed")
    prefix = CONFIG.bech32_account_addr_prefix
    hrp, data = bech32_decode(address)
    if hrp != prefix:
        raise AddressError(f"invalid Bech32 prefix; expected {prefix}, got {hrp}")
    if not data:
        raise AddressError("invalid address: addresses cannot be empty")
    if len(data) > _MAX_ADDRESS_LENGTH:
        raise AddressError(
            f"invalid address: address max length is {_MAX_ADDRESS_LENGTH}, got {len(data)}"
        )
    return data


def acc_address_to_bech32(address: bytes) -> str:
    """Encode raw account bytes as a Kava bech32 address; empty bytes give ''."""
    if not address:
        return ""
    return bech32_encode(CONFIG.bech32_account_addr_prefix, address)