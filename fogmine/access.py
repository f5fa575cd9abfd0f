"""
Capability layer

Operator actions are gated by capabilities held by an authenticated
caller identity. Authentication itself happens in front of the engine.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from .errors import AccessDeniedError, GamePausedError

logger = logging.getLogger(__name__)


class Capability(Enum):
    CONFIGURE = "configure"   # replace the game config, toggle PoW bypass
    PAUSE = "pause"           # pause / unpause
    TREASURY = "treasury"     # deposit / withdraw pool funds
    VERIFIER = "verifier"     # replace the proof verifier
    UPGRADE = "upgrade"       # authorize upgrades


class AccessControl:
    """Caller -> capability set, plus the pause switch."""

    def __init__(self, admin: Optional[str] = None):
        self._grants: Dict[str, Set[Capability]] = {}
        self.paused = False
        if admin:
            self.grant(admin, *Capability)

    def grant(self, caller: str, *capabilities: Capability):
        self._grants.setdefault(caller, set()).update(capabilities)
        logger.info(f"Granted {sorted(c.value for c in capabilities)} to {caller}")

    def revoke(self, caller: str, *capabilities: Capability):
        self._grants.get(caller, set()).difference_update(capabilities)

    def has(self, caller: str, capability: Capability) -> bool:
        return capability in self._grants.get(caller, ())

    def require(self, caller: str, capability: Capability):
        """Raise AccessDeniedError unless caller holds the capability."""
        if not self.has(caller, capability):
            raise AccessDeniedError(f"{caller} lacks the {capability.value} capability")

    def ensure_not_paused(self):
        if self.paused:
            raise GamePausedError("Game is paused")

    def holders(self) -> Dict[str, Iterable[str]]:
        return {caller: sorted(c.value for c in caps) for caller, caps in self._grants.items()}
