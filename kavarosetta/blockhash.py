"""Synthetic transaction hashes for begin- and end-block events."""

BEGIN_BLOCK_HASH_START = 0x0
END_BLOCK_HASH_START = 0x1


def _prefixed_hash(prefix: int, block_hash: bytes) -> str:
    return (bytes([prefix]) + bytes(block_hash)).hex().upper()


def begin_block_tx_hash(block_hash: bytes) -> str:
    """Hash of the begin-blocker pseudo transaction for a block."""
    return _prefixed_hash(BEGIN_BLOCK_HASH_START, block_hash)


def end_block_tx_hash(block_hash: bytes) -> str:
    """Hash of the end-blocker pseudo transaction for a block."""
    return _prefixed_hash(END_BLOCK_HASH_START, block_hash)