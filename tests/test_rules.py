"""
Tests for the flags check, the defog engine and the PoW controller
"""

import os
import sys
import unittest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fogmine.config import SNARK_SCALAR_FIELD, BlockType, DefogConfig, GameConfig, MiningConfig
from fogmine.crypto_utils import H, low_bits_zero, pow_hash
from fogmine.defog import check_defog, defog_sample, find_defog_nonce, type_bands
from fogmine.difficulty import (
    adjust_offset, check_pow, find_pow_nonce, next_seed, pow_difficulty,
)
from fogmine.errors import BadBlockTypeError, FlagsMismatchError, MalformedBatchError
from fogmine.flags import (
    check_flags, check_mine_inputs, check_unlock_inputs, expected_flags, mine_inputs,
    unlock_inputs,
)

SITE_KEY = 0x5151


class TestFlags(unittest.TestCase):
    """Proof flags bind map size, user and depth."""

    def setUp(self):
        self.cfg = GameConfig()
        self.flags = expected_flags(self.cfg, SITE_KEY, "alice", 2)

    def test_expected_flags(self):
        self.assertEqual(self.flags[:2], [16, 16])
        self.assertEqual(self.flags[2], H("alice", SITE_KEY, 2) % SNARK_SCALAR_FIELD)
        self.assertEqual(self.flags[3], H(SITE_KEY, 2) % SNARK_SCALAR_FIELD)

    def test_honest_vectors_pass(self):
        check_mine_inputs(mine_inputs(self.cfg, SITE_KEY, "alice", 2, 0xabc, BlockType.GOLD),
                          0xabc, BlockType.GOLD, self.flags)
        check_unlock_inputs(unlock_inputs(self.cfg, SITE_KEY, "alice", 2, 0xdef),
                            0xdef, self.flags)

    def test_other_user_or_depth_rejected(self):
        for user, depth in (("bob", 2), ("alice", 3)):
            vector = mine_inputs(self.cfg, SITE_KEY, user, depth, 0xabc, BlockType.DIRT)
            with self.assertRaises(FlagsMismatchError):
                check_mine_inputs(vector, 0xabc, BlockType.DIRT, self.flags)

    def test_other_map_size_rejected(self):
        vector = list(self.flags)
        vector[0] = 32
        with self.assertRaises(FlagsMismatchError):
            check_flags(vector, self.flags)

    def test_block_binding(self):
        vector = mine_inputs(self.cfg, SITE_KEY, "alice", 2, 0xabc, BlockType.DIRT)
        with self.assertRaises(FlagsMismatchError):
            check_mine_inputs(vector, 0xabd, BlockType.DIRT, self.flags)
        with self.assertRaises(FlagsMismatchError):
            check_mine_inputs(vector, 0xabc, BlockType.DIAMOND, self.flags)
        unlock = unlock_inputs(self.cfg, SITE_KEY, "alice", 2, 0xdef)
        with self.assertRaises(FlagsMismatchError):
            check_unlock_inputs(unlock, 0xdee, self.flags)

    def test_wrong_length_rejected(self):
        vector = mine_inputs(self.cfg, SITE_KEY, "alice", 2, 0xabc, BlockType.DIRT)
        with self.assertRaises(MalformedBatchError):
            check_mine_inputs(vector[1:], 0xabc, BlockType.DIRT, self.flags)
        with self.assertRaises(MalformedBatchError):
            check_unlock_inputs(vector, 0xabc, self.flags)
        with self.assertRaises(MalformedBatchError):
            check_flags([1, 2], self.flags)


class TestDefog(unittest.TestCase):
    """Defog bands and sampling."""

    def setUp(self):
        self.defog = DefogConfig()

    def test_type_bands(self):
        self.assertEqual(type_bands(self.defog), [(0, 600), (600, 900), (900, 990), (990, 1000)])

    def test_dirt_free_pass(self):
        for block_hash in (1, 2, 0xffff):
            self.assertTrue(check_defog(self.defog, SITE_KEY, block_hash, BlockType.DIRT, 0))
        self.assertEqual(find_defog_nonce(self.defog, SITE_KEY, 7, BlockType.DIRT), 0)

    def test_nonce_range(self):
        limit = self.defog.max_rounds - self.defog.repeat_rounds
        self.assertFalse(check_defog(self.defog, SITE_KEY, 1, BlockType.STONE, limit))
        self.assertFalse(check_defog(self.defog, SITE_KEY, 1, BlockType.STONE, -1))
        self.assertFalse(check_defog(self.defog, SITE_KEY, 1, BlockType.UNKNOWN, 5))

    def test_found_nonce_reveals_only_its_type(self):
        nonce = find_defog_nonce(self.defog, SITE_KEY, 0xabc, BlockType.STONE)
        self.assertIsNotNone(nonce)
        self.assertTrue(check_defog(self.defog, SITE_KEY, 0xabc, BlockType.STONE, nonce))
        self.assertFalse(check_defog(self.defog, SITE_KEY, 0xabc, BlockType.GOLD, nonce))

        low, high = type_bands(self.defog)[BlockType.STONE]
        for i in range(self.defog.repeat_rounds):
            sample = defog_sample(0xabc, SITE_KEY, nonce + i, self.defog.max_rounds)
            self.assertTrue(low <= sample < high)

    def test_single_sample_decides_type(self):
        """With one round, exactly one type matches each nonce."""
        defog = DefogConfig(repeat_rounds=1)
        sample = defog_sample(0x77, SITE_KEY, 5, defog.max_rounds)
        matching = [t for t in (BlockType.STONE, BlockType.GOLD, BlockType.DIAMOND)
                    if check_defog(defog, SITE_KEY, 0x77, t, 5)]
        bands = type_bands(defog)
        expected = [t for t in (BlockType.STONE, BlockType.GOLD, BlockType.DIAMOND)
                    if bands[t][0] <= sample < bands[t][1]]
        self.assertEqual(matching, expected)
        self.assertEqual(check_defog(defog, SITE_KEY, 0x77, BlockType.DIRT, 5),
                         sample < bands[BlockType.DIRT][1])

    def test_site_key_changes_field(self):
        samples = [defog_sample(0x77, key, 0, 1000) for key in range(20)]
        self.assertGreater(len(set(samples)), 1)


class TestDifficulty(unittest.TestCase):
    """PoW difficulty and the pace controller."""

    def setUp(self):
        self.mining = MiningConfig(argon2_memory_cost=8)

    def test_pow_difficulty(self):
        self.assertEqual(pow_difficulty(self.mining, BlockType.DIRT, 0), 2)
        self.assertEqual(pow_difficulty(self.mining, BlockType.GOLD, 3), 9)
        with self.assertRaises(BadBlockTypeError):
            pow_difficulty(self.mining, BlockType.UNKNOWN, 0)

    def test_adjust_offset(self):
        self.assertEqual(adjust_offset(0, 5, 10), 1)
        self.assertEqual(adjust_offset(3, 20, 10), 2)
        self.assertEqual(adjust_offset(0, 20, 10), 0)
        self.assertEqual(adjust_offset(2, 10, 10), 2)

    def test_find_and_check_pow(self):
        nonce = find_pow_nonce(self.mining, 0x1234, 0xabc, 4)
        self.assertIsNotNone(nonce)
        self.assertTrue(check_pow(self.mining, 0x1234, 0xabc, nonce, 4))
        self.assertTrue(low_bits_zero(pow_hash(0x1234, 0xabc, nonce, self.mining), 4))
        self.assertFalse(check_pow(self.mining, 0x1234, 0xabc, -1, 0))

    def test_find_pow_gives_up(self):
        self.assertIsNone(find_pow_nonce(self.mining, 1, 2, 4, max_attempts=0))

    def test_zero_difficulty_accepts_any_nonce(self):
        self.assertTrue(check_pow(self.mining, 1, 2, 12345, 0))

    def test_seed_chain(self):
        seed = next_seed(1, 0xabc, "alice", 9)
        self.assertEqual(seed, next_seed(1, 0xabc, "alice", 9))
        self.assertNotEqual(seed, next_seed(1, 0xabc, "alice", 10))
        self.assertNotEqual(seed, next_seed(1, 0xabc, "bob", 9))


if __name__ == '__main__':
    unittest.main()
