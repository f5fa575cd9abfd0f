"""
Game and user state records

GameState is the single global record; UserState is one per admitted
player. Both carry a ledger invariant that can be checked at any time:

    totalReward == remainingReward + totalPending + totalClaimed
    currentBalance == earnedReward - claimedReward
"""

from typing import Any, Dict, List
from dataclasses import dataclass, field, asdict

from . import config
from .errors import LedgerConsistencyError


def _zero_counts() -> List[int]:
    return [0] * len(config.MINEABLE_TYPES)


@dataclass
class GameState:
    """
    Global game state.

    Attributes:
        user_count: Number of admitted users
        total_mined: Mined block count per type, all users
        site_hash_key: Domain separator for defog and flags hashing
        total_reward: Tokens ever deposited into the pool (net of withdrawals)
        remaining_reward: Pool tokens not yet granted
        total_pending: Granted but unclaimed tokens
        total_claimed: Tokens paid out to users
        day_counter: Day number of the current daily window
        day_total: Tokens granted in the current daily window
        hour_counter: Hour number of the current hourly window
        hour_total: Tokens granted in the current hourly window
    """
    site_hash_key: int = 0
    user_count: int = 0
    total_mined: List[int] = field(default_factory=_zero_counts)
    total_reward: int = 0
    remaining_reward: int = 0
    total_pending: int = 0
    total_claimed: int = 0
    day_counter: int = 0
    day_total: int = 0
    hour_counter: int = 0
    hour_total: int = 0

    @property
    def total_blocks(self) -> int:
        return sum(self.total_mined)

    def reset_windows(self, now: int):
        """Start new day/hour windows if `now` falls past the stored ones."""
        day = now // config.SECONDS_PER_DAY
        hour = now // config.SECONDS_PER_HOUR
        if day > self.day_counter:
            self.day_counter = day
            self.day_total = 0
        if hour > self.hour_counter:
            self.hour_counter = hour
            self.hour_total = 0

    def check_invariant(self):
        """Raise LedgerConsistencyError if the pool partitions do not add up."""
        if self.total_reward != self.remaining_reward + self.total_pending + self.total_claimed:
            raise LedgerConsistencyError(
                f"Pool out of balance: total={self.total_reward} "
                f"remaining={self.remaining_reward} pending={self.total_pending} "
                f"claimed={self.total_claimed}"
            )
        if min(self.remaining_reward, self.total_pending, self.total_claimed) < 0:
            raise LedgerConsistencyError("Pool partition went negative")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameState':
        return cls(**data)


@dataclass
class UserState:
    """
    Per-user progress and reward ledger.

    Attributes:
        init_time: Admission time
        difficulty_offset: PoW difficulty added on top of the per-type base
        depth: Current depth index
        mined_in_depth: Blocks mined in the current depth, opening block included
        depth_opening_block: Hash of the block that opened the current depth
        energy: Remaining energy as of last_mine_time
        mined: Lifetime mined count per type
        last_mine_time: Time of the last admission/mine/unlock
        pow_seed: Rolling proof-of-work seed
        earned_reward: Lifetime tokens granted
        balance: Claimable tokens
        claimed_reward: Lifetime tokens claimed
        last_earned_day: Day number of day_earned
        day_earned: Tokens granted on last_earned_day
    """
    init_time: int = 0
    difficulty_offset: int = 0
    depth: int = 0
    mined_in_depth: int = 0
    depth_opening_block: int = 0
    energy: int = 0
    mined: List[int] = field(default_factory=_zero_counts)
    last_mine_time: int = 0
    pow_seed: int = 0
    earned_reward: int = 0
    balance: int = 0
    claimed_reward: int = 0
    last_earned_day: int = 0
    day_earned: int = 0

    @property
    def total_blocks(self) -> int:
        return sum(self.mined)

    def reset_day(self, now: int):
        """Start a new per-user daily window if the day advanced."""
        day = now // config.SECONDS_PER_DAY
        if day > self.last_earned_day:
            self.last_earned_day = day
            self.day_earned = 0

    def check_invariant(self):
        """Raise LedgerConsistencyError if balance != earned - claimed."""
        if self.balance != self.earned_reward - self.claimed_reward or self.balance < 0:
            raise LedgerConsistencyError(
                f"User ledger out of balance: balance={self.balance} "
                f"earned={self.earned_reward} claimed={self.claimed_reward}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserState':
        return cls(**data)
