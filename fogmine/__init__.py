"""
FogMine - rules engine for a fog-of-war mining game
"""

__version__ = "1.0.0"
__author__ = "FogMine Team"

from .config import BlockType, GameConfig
from .engine import GameEngine, MineResult, ProofBatch
from .store import GameStore
from .verifier import BatchVerifier, GameVerifier, Proof, VerifyingKey

__all__ = [
    'BlockType', 'GameConfig', 'GameEngine', 'MineResult', 'ProofBatch', 'GameStore',
    'BatchVerifier', 'GameVerifier', 'Proof', 'VerifyingKey',
]
