"""
PoW difficulty controller (non-ZK path)

A block passes when pow_hash(seed, blockHash, nonce) has its lowest
`difficulty` bits all zero, with

    difficulty = baseDifficulty[blockType] + userOffset

The seed is a per-user hash chain advanced after every action, so the
next challenge cannot be precomputed. The offset nudges each user
toward the configured pace: +1 after a batch finished faster than its
target time, -1 (floored at 0) after a slower one.
"""

import logging
from typing import Optional

from . import config
from .crypto_utils import H, low_bits_zero, pow_hash
from .errors import BadBlockTypeError

logger = logging.getLogger(__name__)


def pow_difficulty(mining: 'config.MiningConfig', block_type: int, offset: int) -> int:
    """Required number of zero low bits for a block of this type."""
    if block_type not in config.MINEABLE_TYPES:
        raise BadBlockTypeError(f"Block type {block_type} cannot be mined")
    return mining.base_difficulty[block_type] + offset


def check_pow(mining: 'config.MiningConfig', seed: int, block_hash: int, nonce: int,
              difficulty: int) -> bool:
    """Validate a proof-of-work nonce for one block."""
    if nonce < 0:
        return False
    return low_bits_zero(pow_hash(seed, block_hash, nonce, mining), difficulty)


def next_seed(prev_seed: int, last_block_hash: int, user: str, entropy: int) -> int:
    """Advance a user's PoW seed hash chain."""
    return H(prev_seed, last_block_hash, user, entropy)


def adjust_offset(offset: int, elapsed: int, target: int) -> int:
    """
    Proportional pace controller.

    Args:
        offset: Current difficulty offset
        elapsed: Seconds the batch took (since the previous action)
        target: Sum of target times for the blocks just mined

    Returns:
        New offset
    """
    if elapsed < target:
        return offset + 1
    if elapsed > target:
        return max(0, offset - 1)
    return offset


def find_pow_nonce(mining: 'config.MiningConfig', seed: int, block_hash: int,
                   difficulty: int, start: int = 0,
                   max_attempts: Optional[int] = None) -> Optional[int]:
    """
    Mine a nonce for one block, the client side of check_pow.

    Returns:
        A valid nonce, or None if max_attempts ran out
    """
    nonce = start
    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        if check_pow(mining, seed, block_hash, nonce, difficulty):
            logger.debug(f"Found PoW nonce {nonce} after {attempts + 1} attempts")
            return nonce
        nonce += 1
        attempts += 1
    return None
