"""
FogMine Configuration

Protocol constants are module level. Economic parameters (rewards,
difficulties, map size, caps) live in a GameConfig record that the
operator sets at initialization and may replace wholesale.
"""

import json
from enum import IntEnum
from typing import Any, Dict, List
from dataclasses import dataclass, field, asdict

from .errors import ConfigError

# =============================================================================
# PROOF SYSTEM
# =============================================================================

# BN254 (alt_bn128) scalar field: every public input must be below this
SNARK_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Number of trailing public inputs carrying the flags (sizeX, sizeY, user/depth, depth)
FLAG_COUNT = 4

# Batch weights are drawn from [1, BATCH_WEIGHT_BOUND)
BATCH_WEIGHT_BOUND = 10 ** 18

# =============================================================================
# PROBABILITIES
# =============================================================================

# Reward trigger probabilities are expressed out of this dividend
PROBABILITY_DIVIDEND = 10000

# Defog thresholds are expressed out of this divisor
DEFOG_THRESHOLD_DIVISOR = 10000

# =============================================================================
# TIME WINDOWS
# =============================================================================

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# =============================================================================
# ARGON2 PARAMETERS (PoW fallback hash)
# =============================================================================

ARGON2_TIME_COST = 1
ARGON2_MEMORY_COST = 4096  # KiB; lighter than a coin miner since batches are verified server side
ARGON2_PARALLELISM = 1
ARGON2_HASH_LEN = 32

# =============================================================================
# SERVER
# =============================================================================

DEFAULT_PORT = 8420
DEFAULT_DATA_DIR = "~/.fogmine"


class BlockType(IntEnum):
    """Hidden type of a map block."""
    DIRT = 0
    STONE = 1
    GOLD = 2
    DIAMOND = 3
    UNKNOWN = 4


MINEABLE_TYPES = (BlockType.DIRT, BlockType.STONE, BlockType.GOLD, BlockType.DIAMOND)


@dataclass
class GeneralConfig:
    """Map, energy and schedule parameters."""
    game_id: str = "fogmine"
    size_x: int = 16
    size_y: int = 16
    max_energy: int = 100
    energy_reset_interval: int = SECONDS_PER_DAY
    start_time: int = 0
    duration: int = 30 * SECONDS_PER_DAY
    admission_pubkey: str = ""  # SECP256k1 verifying key, hex


@dataclass
class DefogConfig:
    """
    Defog parameters.

    Thresholds are cumulative band edges out of DEFOG_THRESHOLD_DIVISOR:
    DIRT below stone_threshold, STONE below gold_threshold, GOLD below
    diamond_threshold, DIAMOND up to max_rounds.
    """
    max_rounds: int = 1000
    repeat_rounds: int = 3
    stone_threshold: int = 6000
    gold_threshold: int = 9000
    diamond_threshold: int = 9900


@dataclass
class MiningConfig:
    """Per-type PoW base difficulty (low zero bits) and target mining time (seconds)."""
    base_difficulty: List[int] = field(default_factory=lambda: [2, 4, 6, 8])
    target_time: List[int] = field(default_factory=lambda: [5, 10, 20, 40])
    argon2_time_cost: int = ARGON2_TIME_COST
    argon2_memory_cost: int = ARGON2_MEMORY_COST
    argon2_parallelism: int = ARGON2_PARALLELISM


@dataclass
class RewardLevel:
    """Reward distribution for one block type."""
    probability: int = 0  # out of PROBABILITY_DIVIDEND
    min_amount: int = 0
    max_amount: int = 0


@dataclass
class RewardConfig:
    """Reward token and the four caps that bound every grant."""
    token: str = "FOG"
    daily_cap: int = 0
    hourly_cap: int = 0
    user_daily_cap: int = 0
    user_lifetime_cap: int = 0
    levels: List[RewardLevel] = field(default_factory=lambda: [RewardLevel() for _ in MINEABLE_TYPES])


@dataclass
class GameConfig:
    """Complete game configuration (immutable per epoch)."""
    general: GeneralConfig = field(default_factory=GeneralConfig)
    defog: DefogConfig = field(default_factory=DefogConfig)
    mining: MiningConfig = field(default_factory=MiningConfig)
    reward: RewardConfig = field(default_factory=RewardConfig)

    @property
    def depth_quota(self) -> int:
        """Number of blocks that complete one depth."""
        return self.general.size_x * self.general.size_y

    @property
    def end_time(self) -> int:
        return self.general.start_time + self.general.duration

    def validate(self):
        """Raise ConfigError if the configuration cannot drive a game."""
        g, d, m, r = self.general, self.defog, self.mining, self.reward
        if g.size_x <= 0 or g.size_y <= 0:
            raise ConfigError("Map size must be positive")
        if g.size_x * g.size_y < 2:
            raise ConfigError("A depth needs room for at least one block besides its opening block")
        if g.max_energy <= 0 or g.energy_reset_interval <= 0:
            raise ConfigError("Energy cap and reset interval must be positive")
        if g.duration <= 0:
            raise ConfigError("Game duration must be positive")
        if d.repeat_rounds <= 0 or d.max_rounds <= d.repeat_rounds:
            raise ConfigError("Defog needs max_rounds > repeat_rounds > 0")
        if not (0 <= d.stone_threshold <= d.gold_threshold <= d.diamond_threshold
                <= DEFOG_THRESHOLD_DIVISOR):
            raise ConfigError("Defog thresholds must be ordered within the divisor")
        if len(m.base_difficulty) != len(MINEABLE_TYPES) or len(m.target_time) != len(MINEABLE_TYPES):
            raise ConfigError("Mining parameters must cover every block type")
        if any(v < 0 for v in m.base_difficulty + m.target_time):
            raise ConfigError("Difficulties and target times cannot be negative")
        if len(r.levels) != len(MINEABLE_TYPES):
            raise ConfigError("Reward levels must cover every block type")
        for level in r.levels:
            if not 0 <= level.probability <= PROBABILITY_DIVIDEND:
                raise ConfigError("Reward probability out of range")
            if level.min_amount < 0 or level.max_amount < level.min_amount:
                raise ConfigError("Reward amount range is invalid")
        if min(r.daily_cap, r.hourly_cap, r.user_daily_cap, r.user_lifetime_cap) < 0:
            raise ConfigError("Reward caps cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameConfig':
        """Create a GameConfig from dictionary."""
        reward = dict(data.get('reward', {}))
        if 'levels' in reward:
            reward['levels'] = [RewardLevel(**lvl) for lvl in reward['levels']]
        return cls(
            general=GeneralConfig(**data.get('general', {})),
            defog=DefogConfig(**data.get('defog', {})),
            mining=MiningConfig(**data.get('mining', {})),
            reward=RewardConfig(**reward),
        )

    def save(self, filepath: str):
        """Save config to file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'GameConfig':
        """Load config from file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
