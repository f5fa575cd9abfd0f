"""
Reward ledger

Every successfully mined block rolls for a reward. A hit samples an
amount in [min, max) for the block's type; the credited amount is then
clamped to the smallest of five budgets:

    pool remaining, global daily, global hourly, user daily, user lifetime

Day/hour windows reset lazily the first time a later period is seen.
Grants run per block, not per batch, so blocks in one batch compete for
the same shrinking budgets.
"""

import logging

from . import config
from .crypto_utils import H
from .errors import InsufficientPoolError, InvalidAmountError, NothingToClaimError
from .state import GameState, UserState

logger = logging.getLogger(__name__)


def reward_draw(now: int, entropy: int, block_hash: int, user: str) -> int:
    """Pseudo-random draw for one block's reward roll."""
    return H(now, entropy, block_hash, user)


def roll_reward(level: 'config.RewardLevel', draw: int) -> int:
    """
    Nominal reward for a draw, before any cap.

    Returns:
        0 if the draw misses the trigger probability, otherwise an amount
        uniform in [min_amount, max_amount)
    """
    if draw % config.PROBABILITY_DIVIDEND >= level.probability:
        return 0
    spread = level.max_amount - level.min_amount
    if spread <= 0:
        return level.min_amount
    return level.min_amount + (draw // config.PROBABILITY_DIVIDEND) % spread


class RewardLedger:
    """Bounded reward accounting over GameState and UserState."""

    def __init__(self, reward_config: 'config.RewardConfig'):
        self.config = reward_config

    def headroom(self, state: GameState, user: UserState) -> int:
        """Largest amount a single grant may credit right now (windows already reset)."""
        cfg = self.config
        return max(0, min(
            state.remaining_reward,
            cfg.daily_cap - state.day_total,
            cfg.hourly_cap - state.hour_total,
            cfg.user_daily_cap - user.day_earned,
            cfg.user_lifetime_cap - user.earned_reward,
        ))

    def credit(self, state: GameState, user: UserState, amount: int, now: int) -> int:
        """
        Credit up to `amount` to a user, clamped to every budget.

        Returns:
            The amount actually credited
        """
        state.reset_windows(now)
        user.reset_day(now)
        amount = min(amount, self.headroom(state, user))
        if amount <= 0:
            return 0

        user.balance += amount
        user.earned_reward += amount
        user.day_earned += amount

        state.day_total += amount
        state.hour_total += amount
        state.total_pending += amount
        state.remaining_reward -= amount
        return amount

    def grant(self, state: GameState, user: UserState, user_id: str, block_type: int,
              block_hash: int, now: int, entropy: int) -> int:
        """
        Roll and credit the reward for one mined block.

        Args:
            state: Global state (mutated)
            user: The miner's state (mutated)
            user_id: The miner's identity
            block_type: Type of the mined block
            block_hash: Hash of the mined block
            now: Current time
            entropy: Block-level entropy

        Returns:
            Tokens credited (0 on a miss or when a budget is exhausted)
        """
        draw = reward_draw(now, entropy, block_hash, user_id)
        nominal = roll_reward(self.config.levels[block_type], draw)
        if nominal == 0:
            return 0
        credited = self.credit(state, user, nominal, now)
        if credited < nominal:
            logger.debug(f"Reward for {user_id} clamped from {nominal} to {credited}")
        return credited

    @staticmethod
    def claim(state: GameState, user: UserState) -> int:
        """
        Move a user's whole balance from pending to claimed.

        Both invariants are checked before anything moves.

        Returns:
            The amount to release to the user
        """
        state.check_invariant()
        user.check_invariant()
        amount = user.balance
        if amount <= 0:
            raise NothingToClaimError("No reward to claim")
        if amount > state.total_pending:
            raise InsufficientPoolError("Pending pool cannot cover the claim")

        user.balance = 0
        user.claimed_reward += amount
        state.total_pending -= amount
        state.total_claimed += amount
        return amount

    @staticmethod
    def deposit(state: GameState, amount: int):
        """Add tokens to the reward pool."""
        if amount <= 0:
            raise InvalidAmountError("Deposit amount must be positive")
        state.total_reward += amount
        state.remaining_reward += amount

    @staticmethod
    def withdraw(state: GameState, amount: int):
        """Remove ungranted tokens from the reward pool."""
        if amount <= 0:
            raise InvalidAmountError("Withdrawal amount must be positive")
        if amount > state.remaining_reward:
            raise InsufficientPoolError(
                f"Pool has {state.remaining_reward} remaining, cannot withdraw {amount}"
            )
        state.total_reward -= amount
        state.remaining_reward -= amount
