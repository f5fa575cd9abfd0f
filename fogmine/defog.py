"""
Defog engine (non-ZK path)

Each block's type hides behind a probability field seeded by
H(blockHash, siteHashKey). Claiming type T with nonce n draws
repeat_rounds consecutive samples

    s_i = H(blockHash, siteHashKey, n + i) mod max_rounds

and every sample must land in T's band. [0, max_rounds) is split into
four contiguous half-open bands by the cumulative thresholds:

    DIRT     [0,        b_stone)
    STONE    [b_stone,  b_gold)
    GOLD     [b_gold,   b_diamond)
    DIAMOND  [b_diamond, max_rounds)

with b_k = max_rounds * threshold_k // DEFOG_THRESHOLD_DIVISOR.
Spoofing a rare type means finding repeat_rounds matching samples in a
row, which gets exponentially harder as repeat_rounds grows.
"""

from typing import List, Optional, Tuple

from . import config
from .config import BlockType
from .crypto_utils import H


def type_bands(defog: 'config.DefogConfig') -> List[Tuple[int, int]]:
    """Half-open [low, high) sample band per block type, indexed by BlockType."""
    edges = [
        defog.max_rounds * t // config.DEFOG_THRESHOLD_DIVISOR
        for t in (defog.stone_threshold, defog.gold_threshold, defog.diamond_threshold)
    ]
    bounds = [0] + edges + [defog.max_rounds]
    return [(bounds[i], bounds[i + 1]) for i in range(len(config.MINEABLE_TYPES))]


def defog_sample(block_hash: int, site_hash_key: int, nonce: int, max_rounds: int) -> int:
    """One draw from the block's probability field."""
    return H(block_hash, site_hash_key, nonce) % max_rounds


def check_defog(defog: 'config.DefogConfig', site_hash_key: int, block_hash: int,
                block_type: int, nonce: int) -> bool:
    """
    Check a claimed block type against its hidden probability field.

    Args:
        defog: Defog parameters
        site_hash_key: Game-wide domain separator
        block_hash: Block being revealed
        block_type: Claimed type
        nonce: First sample index

    Returns:
        True if all repeat_rounds samples fall in the claimed type's band
    """
    if block_type == BlockType.DIRT and nonce == 0:
        return True
    if block_type not in config.MINEABLE_TYPES:
        return False
    if nonce < 0 or nonce >= defog.max_rounds - defog.repeat_rounds:
        return False

    low, high = type_bands(defog)[block_type]
    for i in range(defog.repeat_rounds):
        sample = defog_sample(block_hash, site_hash_key, nonce + i, defog.max_rounds)
        if not low <= sample < high:
            return False
    return True


def find_defog_nonce(defog: 'config.DefogConfig', site_hash_key: int, block_hash: int,
                     block_type: int) -> Optional[int]:
    """
    Search for a nonce that reveals the block as `block_type`.

    Returns:
        The first valid nonce, or None if the field never shows that type
    """
    if block_type == BlockType.DIRT:
        return 0
    for nonce in range(defog.max_rounds - defog.repeat_rounds):
        if check_defog(defog, site_hash_key, block_hash, block_type, nonce):
            return nonce
    return None
