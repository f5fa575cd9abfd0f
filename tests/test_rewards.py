"""
Tests for the reward ledger and the state records it maintains
"""

import os
import sys
import unittest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fogmine.config import BlockType, RewardConfig, RewardLevel
from fogmine.errors import (
    InsufficientPoolError, InvalidAmountError, LedgerConsistencyError, NothingToClaimError,
)
from fogmine.rewards import RewardLedger, reward_draw, roll_reward
from fogmine.state import GameState, UserState


def funded_state(amount: int) -> GameState:
    state = GameState()
    RewardLedger.deposit(state, amount)
    return state


class TestRoll(unittest.TestCase):

    def test_miss(self):
        level = RewardLevel(probability=5000, min_amount=10, max_amount=20)
        self.assertEqual(roll_reward(level, 7 * 10000 + 5000), 0)
        self.assertEqual(roll_reward(RewardLevel(0, 10, 20), 0), 0)

    def test_hit_amount(self):
        level = RewardLevel(probability=5000, min_amount=10, max_amount=20)
        self.assertEqual(roll_reward(level, 7 * 10000 + 4999), 17)
        self.assertEqual(roll_reward(level, 13 * 10000), 13)

    def test_fixed_amount(self):
        self.assertEqual(roll_reward(RewardLevel(10000, 50, 50), reward_draw(1, 2, 3, "a")), 50)

    def test_draw_depends_on_user(self):
        self.assertNotEqual(reward_draw(1, 2, 3, "alice"), reward_draw(1, 2, 3, "bob"))


class TestRewardLedger(unittest.TestCase):

    def setUp(self):
        self.cfg = RewardConfig(daily_cap=100, hourly_cap=60, user_daily_cap=1000,
                                user_lifetime_cap=1000,
                                levels=[RewardLevel(10000, 50, 50)] * 4)
        self.ledger = RewardLedger(self.cfg)
        self.state = funded_state(1000)
        self.user = UserState()

    def test_pool_clamp(self):
        """A 50 roll against a pool of 10 credits 10."""
        state = funded_state(10)
        credited = self.ledger.grant(state, self.user, "alice", BlockType.STONE, 0x1, 0, 0)
        self.assertEqual(credited, 10)
        self.assertEqual(state.remaining_reward, 0)
        self.assertEqual(self.user.balance, 10)
        state.check_invariant()
        self.assertEqual(self.ledger.grant(state, self.user, "alice", BlockType.STONE, 0x2, 0, 0), 0)

    def test_hourly_and_daily_windows(self):
        credit = self.ledger.credit
        self.assertEqual(credit(self.state, self.user, 50, 0), 50)
        self.assertEqual(credit(self.state, self.user, 50, 10), 10)
        self.assertEqual(credit(self.state, self.user, 50, 20), 0)
        # next hour: hourly budget back, daily has 40 left
        self.assertEqual(credit(self.state, self.user, 50, 3600), 40)
        self.assertEqual(credit(self.state, self.user, 50, 7200), 0)
        # next day
        self.assertEqual(credit(self.state, self.user, 50, 86400), 50)
        self.assertEqual(self.state.day_counter, 1)
        self.assertEqual(self.state.hour_counter, 24)
        self.assertEqual(self.state.day_total, 50)

    def test_windows_reset_once(self):
        self.ledger.credit(self.state, self.user, 30, 3600)
        self.ledger.credit(self.state, self.user, 20, 3601)
        self.assertEqual(self.state.hour_total, 50)
        self.assertEqual(self.state.day_total, 50)

    def test_user_caps(self):
        cfg = RewardConfig(daily_cap=1000, hourly_cap=1000, user_daily_cap=60,
                           user_lifetime_cap=70, levels=[RewardLevel()] * 4)
        ledger = RewardLedger(cfg)
        self.assertEqual(ledger.credit(self.state, self.user, 50, 0), 50)
        self.assertEqual(ledger.credit(self.state, self.user, 50, 0), 10)
        self.assertEqual(ledger.credit(self.state, self.user, 50, 86400), 10)
        self.assertEqual(ledger.credit(self.state, self.user, 50, 2 * 86400), 0)
        self.assertEqual(self.user.earned_reward, 70)

    def test_claim(self):
        self.ledger.credit(self.state, self.user, 30, 0)
        amount = RewardLedger.claim(self.state, self.user)

        self.assertEqual(amount, 30)
        self.assertEqual(self.user.balance, 0)
        self.assertEqual(self.user.claimed_reward, 30)
        self.assertEqual(self.state.total_pending, 0)
        self.assertEqual(self.state.total_claimed, 30)
        self.state.check_invariant()
        self.user.check_invariant()

        with self.assertRaises(NothingToClaimError):
            RewardLedger.claim(self.state, self.user)

    def test_claim_checks_invariants(self):
        self.ledger.credit(self.state, self.user, 30, 0)
        self.state.total_reward += 1
        with self.assertRaises(LedgerConsistencyError):
            RewardLedger.claim(self.state, self.user)

    def test_deposit_and_withdraw(self):
        RewardLedger.withdraw(self.state, 400)
        self.assertEqual(self.state.total_reward, 600)
        self.assertEqual(self.state.remaining_reward, 600)
        with self.assertRaises(InsufficientPoolError):
            RewardLedger.withdraw(self.state, 601)
        with self.assertRaises(InvalidAmountError):
            RewardLedger.deposit(self.state, 0)
        with self.assertRaises(InvalidAmountError):
            RewardLedger.withdraw(self.state, -5)


class TestStateRecords(unittest.TestCase):

    def test_game_state_invariant(self):
        state = funded_state(100)
        state.check_invariant()
        state.remaining_reward -= 1
        with self.assertRaises(LedgerConsistencyError):
            state.check_invariant()

    def test_user_state_invariant(self):
        user = UserState(earned_reward=10, balance=4, claimed_reward=6)
        user.check_invariant()
        user.balance = 5
        with self.assertRaises(LedgerConsistencyError):
            user.check_invariant()

    def test_round_trip(self):
        user = UserState(depth=3, mined=[1, 2, 3, 4], pow_seed=2 ** 255)
        self.assertEqual(UserState.from_dict(user.to_dict()), user)
        self.assertEqual(user.total_blocks, 10)


if __name__ == '__main__':
    unittest.main()
