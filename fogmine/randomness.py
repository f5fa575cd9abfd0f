"""
Entropy sources

The engine never reads the clock or draws entropy directly; it asks an
EntropySource. SystemEntropy is used in production, FixedEntropy lets
tests replay PoW seeds, defog draws and reward rolls exactly.

Neither source is secure against a privileged operator of the process.
"""

import secrets
import time

from .crypto_utils import H


class EntropySource:
    """Clock plus block-level entropy."""

    def now(self) -> int:
        """Current time in whole seconds."""
        raise NotImplementedError

    def entropy(self) -> int:
        """A fresh 256-bit entropy value."""
        raise NotImplementedError


class SystemEntropy(EntropySource):
    """Wall clock and the OS random source."""

    def now(self) -> int:
        return int(time.time())

    def entropy(self) -> int:
        return secrets.randbits(256)


class FixedEntropy(EntropySource):
    """
    Deterministic source for tests and replays.

    The clock only moves when told to. Entropy is a hash chain over a
    fixed seed and a draw counter, so two runs with the same seed and
    the same call sequence see identical values.
    """

    def __init__(self, now: int = 0, seed: int = 0):
        self._now = now
        self.seed = seed
        self.draws = 0

    def now(self) -> int:
        return self._now

    def set_time(self, now: int):
        self._now = now

    def advance(self, seconds: int):
        self._now += seconds

    def entropy(self) -> int:
        self.draws += 1
        return H("fogmine-entropy", self.seed, self.draws)
