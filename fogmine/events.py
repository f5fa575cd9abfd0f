"""
Event log

Ordered, append-only notifications emitted by committed operations.
Subscribers are called in order after each append; an optional
JSON-lines file keeps the log durable across restarts.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field, asdict

logger = logging.getLogger(__name__)

USER_ADMITTED = "user_admitted"
BLOCK_MINED = "block_mined"
DEPTH_UNLOCKED = "depth_unlocked"
DIFFICULTY_CHANGED = "difficulty_changed"
REWARD_GRANTED = "reward_granted"
REWARD_CLAIMED = "reward_claimed"
POOL_DEPOSITED = "pool_deposited"
POOL_WITHDRAWN = "pool_withdrawn"
CONFIG_UPDATED = "config_updated"
PAUSED = "paused"
UNPAUSED = "unpaused"
POW_BYPASS_CHANGED = "pow_bypass_changed"
VERIFIER_CHANGED = "verifier_changed"
UPGRADE_AUTHORIZED = "upgrade_authorized"


@dataclass
class Event:
    """One log entry."""
    seq: int
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EventLog:
    """
    Append-only event log.

    Usage:
        log = EventLog("events.jsonl")
        log.subscribe(lambda ev: print(ev.name))
        log.append(BLOCK_MINED, {'user': 'alice'})
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._events: List[Event] = []
        self._subscribers: List[Callable[[Event], None]] = []
        if path and Path(path).exists():
            self._replay(path)

    def _replay(self, path: str):
        with open(path, 'r') as f:
            for line in f:
                if line.strip():
                    self._events.append(Event(**json.loads(line)))
        logger.info(f"Replayed {len(self._events)} events from {path}")

    def subscribe(self, callback: Callable[[Event], None]):
        self._subscribers.append(callback)

    def append(self, name: str, data: Optional[Dict[str, Any]] = None) -> Event:
        event = Event(seq=len(self._events), name=name, data=dict(data or {}),
                      timestamp=time.time())
        self._events.append(event)
        if self.path:
            with open(self.path, 'a') as f:
                f.write(json.dumps(event.to_dict()) + "\n")
        for callback in self._subscribers:
            callback(event)
        return event

    def entries(self, since: int = 0, name: Optional[str] = None) -> List[Event]:
        """Events with seq >= since, optionally filtered by name."""
        return [e for e in self._events[since:] if name is None or e.name == name]

    def __len__(self) -> int:
        return len(self._events)
