"""
Persistent game store

One config record, one global state record, a grow-only user map and a
grow-only set of (user, blockHash) mined markers, saved together as a
single JSON document.
"""

import json
import logging
from typing import Any, Dict, Iterator, Optional, Set, Tuple

from .config import GameConfig
from .crypto_utils import H
from .state import GameState, UserState

logger = logging.getLogger(__name__)


class MinedSet:
    """Set of (user, block_hash) markers. Membership is monotonic."""

    def __init__(self):
        self._marks: Set[Tuple[str, int]] = set()

    def add(self, user: str, block_hash: int):
        self._marks.add((user, block_hash))

    def update(self, marks):
        self._marks.update(marks)

    def __contains__(self, mark: Tuple[str, int]) -> bool:
        return mark in self._marks

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self._marks)

    def __len__(self) -> int:
        return len(self._marks)


class GameStore:
    """
    Authoritative game data.

    Attributes:
        config: Current game configuration
        state: Global state
        users: user id -> UserState, never shrinks
        mined: mined markers, never shrinks
        pow_bypass: True when the PoW/defog path replaces ZK proofs
        authorized_upgrade: Last implementation id an operator authorized
    """

    def __init__(self, config: GameConfig, state: Optional[GameState] = None):
        self.config = config
        self.state = state or GameState()
        self.users: Dict[str, UserState] = {}
        self.mined = MinedSet()
        self.pow_bypass = False
        self.authorized_upgrade = ""

    @classmethod
    def create(cls, config: GameConfig, entropy: int) -> 'GameStore':
        """
        Initialize a new game.

        The site hash key is fixed here for the life of the game.
        """
        config.validate()
        state = GameState(site_hash_key=H("fogmine-site", config.general.game_id, entropy))
        logger.info(f"Created game {config.general.game_id}")
        return cls(config, state)

    def is_mined(self, user: str, block_hash: int) -> bool:
        return (user, block_hash) in self.mined

    def to_dict(self) -> Dict[str, Any]:
        """Convert store to dictionary."""
        return {
            'config': self.config.to_dict(),
            'state': self.state.to_dict(),
            'users': {uid: u.to_dict() for uid, u in self.users.items()},
            'mined': sorted([uid, hex(h)] for uid, h in self.mined),
            'pow_bypass': self.pow_bypass,
            'authorized_upgrade': self.authorized_upgrade,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameStore':
        """Create a GameStore from dictionary."""
        store = cls(GameConfig.from_dict(data['config']), GameState.from_dict(data['state']))
        store.users = {uid: UserState.from_dict(u) for uid, u in data.get('users', {}).items()}
        store.mined.update((uid, int(h, 16)) for uid, h in data.get('mined', []))
        store.pow_bypass = data.get('pow_bypass', False)
        store.authorized_upgrade = data.get('authorized_upgrade', "")
        return store

    def save(self, filepath: str):
        """Save store to file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'GameStore':
        """Load store from file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def __repr__(self) -> str:
        return (f"GameStore(game={self.config.general.game_id}, "
                f"users={len(self.users)}, mined={len(self.mined)})")
