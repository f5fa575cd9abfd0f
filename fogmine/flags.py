"""
Flags consistency check

A proof is anonymous on its own. The last FLAG_COUNT public inputs of
every proof carry values the circuit computed from the game context:

    flags[0] = sizeX mod p
    flags[1] = sizeY mod p
    flags[2] = H(user, siteHashKey, depth) mod p
    flags[3] = H(siteHashKey, depth) mod p

Recomputing them here ties the proof to one user and one depth, so a
proof minted for user A at depth D cannot be replayed by user B or at
another depth.

Mine proofs additionally bind input[0] to the block hash and input[1]
to the claimed block type; unlock proofs bind input[0] to the opening
block hash.
"""

from typing import List, Sequence

from . import config
from .crypto_utils import H
from .errors import FlagsMismatchError, MalformedBatchError

MINE_INPUT_LENGTH = 2 + config.FLAG_COUNT
UNLOCK_INPUT_LENGTH = 1 + config.FLAG_COUNT


def expected_flags(game_config: 'config.GameConfig', site_hash_key: int,
                   user: str, depth: int) -> List[int]:
    """Flags an honest circuit produces for (user, depth)."""
    p = config.SNARK_SCALAR_FIELD
    return [
        game_config.general.size_x % p,
        game_config.general.size_y % p,
        H(user, site_hash_key, depth) % p,
        H(site_hash_key, depth) % p,
    ]


def check_flags(vector: Sequence[int], expected: Sequence[int]):
    """Raise FlagsMismatchError unless the trailing flags equal `expected` exactly."""
    if len(vector) < config.FLAG_COUNT:
        raise MalformedBatchError("Public input vector is too short to carry flags")
    if list(vector[-config.FLAG_COUNT:]) != list(expected):
        raise FlagsMismatchError("Proof flags do not match map size, user or depth")


def check_mine_inputs(vector: Sequence[int], block_hash: int, block_type: int,
                      expected: Sequence[int]):
    """Validate the public inputs of one mine proof."""
    if len(vector) != MINE_INPUT_LENGTH:
        raise MalformedBatchError("Mine proof has the wrong number of public inputs")
    if vector[0] != block_hash % config.SNARK_SCALAR_FIELD or vector[1] != int(block_type):
        raise FlagsMismatchError("Mine proof is bound to a different block")
    check_flags(vector, expected)


def check_unlock_inputs(vector: Sequence[int], opening_block: int, expected: Sequence[int]):
    """Validate the public inputs of one unlock proof."""
    if len(vector) != UNLOCK_INPUT_LENGTH:
        raise MalformedBatchError("Unlock proof has the wrong number of public inputs")
    if vector[0] != opening_block % config.SNARK_SCALAR_FIELD:
        raise FlagsMismatchError("Unlock proof is bound to a different opening block")
    check_flags(vector, expected)


def mine_inputs(game_config: 'config.GameConfig', site_hash_key: int, user: str,
                depth: int, block_hash: int, block_type: int) -> List[int]:
    """Public-input vector an honest mine proof carries."""
    return ([block_hash % config.SNARK_SCALAR_FIELD, int(block_type)]
            + expected_flags(game_config, site_hash_key, user, depth))


def unlock_inputs(game_config: 'config.GameConfig', site_hash_key: int, user: str,
                  depth: int, opening_block: int) -> List[int]:
    """Public-input vector an honest unlock proof carries."""
    return ([opening_block % config.SNARK_SCALAR_FIELD]
            + expected_flags(game_config, site_hash_key, user, depth))
