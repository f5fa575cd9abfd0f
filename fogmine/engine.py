"""
FogMine game engine

Mining state machine per user:

    Uninitialized -> Admitted -> (Mining <-> DepthUnlock) -> Admitted (next depth)

Every mutating call runs to completion under one lock against staged
copies of the global and user records; the copies and the new mined
markers are committed only if the whole call succeeds, so a failing
block anywhere in a batch leaves no trace. Read-only queries never take
the lock.

Request flow for a batch:
1. Flags check + batch proof verification (or, with PoW bypass, defog +
   PoW per block)
2. Topology checks and mined-set updates per block
3. Reward grant per block
4. Counts, energy, difficulty controller, PoW reseed
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from . import config, events as ev
from .access import AccessControl, Capability
from .config import BlockType, GameConfig
from .crypto_utils import admission_message, verify_signature
from .defog import check_defog
from .difficulty import adjust_offset, check_pow, next_seed, pow_difficulty
from .errors import (
    AlreadyAdmittedError, BadBlockTypeError, BadSignatureError, BlockAlreadyMinedError,
    DefogMismatchError, GameEndedError, GameError, InsufficientEnergyError,
    InvalidProofError, MalformedBatchError, MustNotUnlockDepthError, MustUnlockDepthError,
    NeighbourNotMinedError, NotAdmittedError, PowMismatchError, ReentrancyError,
)
from .events import EventLog
from .flags import check_mine_inputs, check_unlock_inputs, expected_flags
from .randomness import EntropySource, SystemEntropy
from .rewards import RewardLedger
from .state import GameState, UserState
from .store import GameStore
from .treasury import InMemoryTokenLedger, TokenLedger
from .verifier import Proof, batch_seed

logger = logging.getLogger(__name__)


@dataclass
class ProofBatch:
    """Proofs submitted with one call, one public-input vector per proof."""
    proofs: List[Proof] = field(default_factory=list)
    inputs: List[List[int]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.proofs)

    def to_dict(self) -> Dict[str, Any]:
        return {'proofs': [p.to_dict() for p in self.proofs], 'inputs': self.inputs}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProofBatch':
        return cls([Proof.from_dict(p) for p in data.get('proofs', [])],
                   [[int(v) for v in vec] for vec in data.get('inputs', [])])


@dataclass
class MineResult:
    """Outcome of a committed mining call."""
    blocks_mined: int = 0
    rewards: List[int] = field(default_factory=list)
    difficulty_offset: int = 0
    energy_left: int = 0
    depth: int = 0
    unlocked: bool = False

    @property
    def total_reward(self) -> int:
        return sum(self.rewards)


class _Txn:
    """Staged copies for one mutating call."""

    def __init__(self, store: GameStore, user_id: str, user: Optional[UserState]):
        self.user_id = user_id
        self.state: GameState = copy.deepcopy(store.state)
        self.user: Optional[UserState] = copy.deepcopy(user)
        self.marks: List[Tuple[str, int]] = []
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self._store = store

    def is_mined(self, block_hash: int) -> bool:
        mark = (self.user_id, block_hash)
        return mark in self._store.mined or mark in self.marks

    def mark(self, block_hash: int):
        self.marks.append((self.user_id, block_hash))

    def emit(self, name: str, **data):
        self.events.append((name, data))


class GameEngine:
    """
    Authoritative rules engine.

    Usage:
        store = GameStore.create(game_config, entropy=SystemEntropy().entropy())
        engine = GameEngine(store, verifier=GameVerifier(mine_vk, unlock_vk),
                            access=AccessControl(admin="operator"))
        engine.admit("alice", opening_block, signature, nonce, unlock_proof)
        engine.mine_batch("alice", blocks, neighbours, types, [], [], proof_batch)
    """

    def __init__(self, store: GameStore, entropy: Optional[EntropySource] = None,
                 verifier=None, token_ledger: Optional[TokenLedger] = None,
                 access: Optional[AccessControl] = None, events: Optional[EventLog] = None,
                 autosave_path: Optional[str] = None):
        self.store = store
        self.entropy = entropy or SystemEntropy()
        self.verifier = verifier
        self.token_ledger = token_ledger or InMemoryTokenLedger()
        self.access = access or AccessControl()
        self.events = events or EventLog()
        self.autosave_path = autosave_path

        self._lock = threading.RLock()
        self._releasing = False

    @property
    def config(self) -> GameConfig:
        return self.store.config

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _ensure_active(self):
        self.access.ensure_not_paused()
        if self.is_ended():
            raise GameEndedError("Game has ended")

    def _ensure_not_releasing(self, action: str):
        """Reject any mutation while a token transfer is in flight."""
        if self._releasing:
            raise ReentrancyError(f"{action} entered during a token release")

    def _require_user(self, user_id: str) -> UserState:
        user = self.store.users.get(user_id)
        if user is None:
            raise NotAdmittedError(f"{user_id} has not been admitted")
        return user

    def _energy_round(self, t: int) -> int:
        g = self.config.general
        return (t - g.start_time) // g.energy_reset_interval

    def _energy_at(self, user: UserState, now: int) -> int:
        """Energy after the lazy reset for the round `now` falls in."""
        if self._energy_round(now) != self._energy_round(user.last_mine_time):
            return self.config.general.max_energy
        return user.energy

    def _commit(self, txn: _Txn):
        if txn.user is not None:
            txn.user.check_invariant()
        txn.state.check_invariant()

        self.store.state = txn.state
        if txn.user is not None:
            self.store.users[txn.user_id] = txn.user
        self.store.mined.update(txn.marks)
        if self.autosave_path:
            self.store.save(self.autosave_path)
        for name, data in txn.events:
            self.events.append(name, data)

    def _unlock(self, txn: _Txn, opening_block: int, depth: int,
                unlock_proof: Optional[ProofBatch], now: int):
        """Open `depth` for the staged user by marking its opening block."""
        user = txn.user
        if txn.is_mined(opening_block):
            raise BlockAlreadyMinedError(f"Opening block {opening_block:#x} is already mined")

        if not self.store.pow_bypass:
            if unlock_proof is None or len(unlock_proof) != 1 or len(unlock_proof.inputs) != 1:
                raise MalformedBatchError("Unlocking a depth needs exactly one unlock proof")
            vector = unlock_proof.inputs[0]
            check_unlock_inputs(vector, opening_block, expected_flags(
                self.config, txn.state.site_hash_key, txn.user_id, depth))
            seed = batch_seed(now, self.entropy.entropy(), unlock_proof.proofs[0])
            if self.verifier is None or not self.verifier.verify_unlock(
                    unlock_proof.proofs[0], vector, seed):
                raise InvalidProofError("Unlock proof is invalid")

        txn.mark(opening_block)
        user.depth = depth
        user.mined_in_depth = 1
        user.depth_opening_block = opening_block
        user.pow_seed = next_seed(user.pow_seed, opening_block, txn.user_id, self.entropy.entropy())
        txn.emit(ev.DEPTH_UNLOCKED, user=txn.user_id, depth=depth, opening_block=hex(opening_block))

    def _verify_mine_proofs(self, txn: _Txn, blocks: Sequence[int], types: Sequence[int],
                            proof_batch: Optional[ProofBatch], now: int):
        if proof_batch is None or len(proof_batch) != len(blocks) \
                or len(proof_batch.inputs) != len(blocks):
            raise MalformedBatchError("Need one mine proof and input vector per block")
        flags = expected_flags(self.config, txn.state.site_hash_key, txn.user_id, txn.user.depth)
        for vector, block_hash, block_type in zip(proof_batch.inputs, blocks, types):
            check_mine_inputs(vector, block_hash, block_type, flags)
        seed = batch_seed(now, self.entropy.entropy(), proof_batch.proofs[0])
        if self.verifier is None or not self.verifier.verify_mine(
                proof_batch.proofs, proof_batch.inputs, seed):
            raise InvalidProofError("Mine proof batch is invalid")

    def _mine(self, txn: _Txn, blocks: Sequence[int], neighbours: Sequence[int],
              types: Sequence[int], defog_nonces: Sequence[int], pow_nonces: Sequence[int],
              proof_batch: Optional[ProofBatch], completes_depth: bool, now: int) -> MineResult:
        cfg = self.config
        user = txn.user
        bypass = self.store.pow_bypass
        count = len(blocks)

        if count == 0 or len(neighbours) != count or len(types) != count:
            raise MalformedBatchError("blocks, neighbours and types must have equal, non-zero length")
        if bypass and (len(defog_nonces) != count or len(pow_nonces) != count):
            raise MalformedBatchError("Need one defog nonce and one PoW nonce per block")

        crosses = user.mined_in_depth + count >= cfg.depth_quota
        if crosses and not completes_depth:
            raise MustUnlockDepthError("Batch completes the depth; use mine-and-unlock")
        if completes_depth and not crosses:
            raise MustNotUnlockDepthError("Batch does not complete the depth")

        user.energy = self._energy_at(user, now)
        if user.energy < count:
            raise InsufficientEnergyError(f"Need {count} energy, have {user.energy}")

        for block_type in types:
            if block_type not in config.MINEABLE_TYPES:
                raise BadBlockTypeError(f"Block type {block_type} cannot be mined")

        if not bypass:
            self._verify_mine_proofs(txn, blocks, types, proof_batch, now)

        ledger = RewardLedger(cfg.reward)
        result = MineResult()
        for i, (block_hash, neighbour, block_type) in enumerate(zip(blocks, neighbours, types)):
            if not txn.is_mined(neighbour):
                raise NeighbourNotMinedError(f"Neighbour {neighbour:#x} is not mined")
            if txn.is_mined(block_hash):
                raise BlockAlreadyMinedError(f"Block {block_hash:#x} is already mined")

            if bypass:
                if not check_defog(cfg.defog, txn.state.site_hash_key, block_hash,
                                   block_type, defog_nonces[i]):
                    raise DefogMismatchError(f"Block {block_hash:#x} is not {BlockType(block_type).name}")
                difficulty = pow_difficulty(cfg.mining, block_type, user.difficulty_offset)
                if not check_pow(cfg.mining, user.pow_seed, block_hash, pow_nonces[i], difficulty):
                    raise PowMismatchError(f"PoW nonce for {block_hash:#x} misses difficulty {difficulty}")

            txn.mark(block_hash)
            reward = ledger.grant(txn.state, user, txn.user_id, block_type, block_hash,
                                  now, self.entropy.entropy())
            result.rewards.append(reward)
            txn.emit(ev.BLOCK_MINED, user=txn.user_id, block=hex(block_hash),
                     block_type=BlockType(block_type).name, depth=user.depth, reward=reward)
            if reward:
                txn.emit(ev.REWARD_GRANTED, user=txn.user_id, amount=reward)

        for block_type in types:
            user.mined[block_type] += 1
            txn.state.total_mined[block_type] += 1
        user.mined_in_depth += count
        user.energy -= count

        target = sum(cfg.mining.target_time[t] for t in types)
        old_offset = user.difficulty_offset
        user.difficulty_offset = adjust_offset(old_offset, now - user.last_mine_time, target)
        if user.difficulty_offset != old_offset:
            txn.emit(ev.DIFFICULTY_CHANGED, user=txn.user_id, old=old_offset,
                     new=user.difficulty_offset)

        user.last_mine_time = now
        user.pow_seed = next_seed(user.pow_seed, blocks[-1], txn.user_id, self.entropy.entropy())

        result.blocks_mined = count
        result.difficulty_offset = user.difficulty_offset
        result.energy_left = user.energy
        result.depth = user.depth
        return result

    # =========================================================================
    # Player operations
    # =========================================================================

    def admit(self, user_id: str, opening_block: int, signature: str, nonce: int,
              unlock_proof: Optional[ProofBatch] = None) -> UserState:
        """
        Admit a new player and open depth 0 for them.

        Args:
            user_id: Caller identity
            opening_block: Hash of the block that opens depth 0
            signature: Admission signer's signature over (game, user, nonce)
            nonce: Admission nonce
            unlock_proof: Unlock proof for depth 0 (ignored under PoW bypass)

        Returns:
            The new user's state
        """
        with self._lock:
            self._ensure_not_releasing("Admission")
            try:
                self._ensure_active()
                if user_id in self.store.users:
                    raise AlreadyAdmittedError(f"{user_id} is already admitted")
                message = admission_message(self.config.general.game_id, user_id, nonce)
                if not verify_signature(self.config.general.admission_pubkey, message, signature):
                    raise BadSignatureError("Admission signature is invalid")

                now = self.entropy.now()
                txn = _Txn(self.store, user_id, UserState(
                    init_time=now,
                    energy=self.config.general.max_energy,
                    last_mine_time=now,
                ))
                txn.state.user_count += 1
                txn.emit(ev.USER_ADMITTED, user=user_id)
                self._unlock(txn, opening_block, 0, unlock_proof, now)
                self._commit(txn)
            except GameError as e:
                logger.warning(f"Admission of {user_id} rejected: {e}")
                raise

        logger.info(f"Admitted {user_id} (user #{self.store.state.user_count})")
        return copy.deepcopy(self.store.users[user_id])

    def mine_batch(self, user_id: str, blocks: Sequence[int], neighbours: Sequence[int],
                   types: Sequence[int], defog_nonces: Sequence[int] = (),
                   pow_nonces: Sequence[int] = (),
                   proof_batch: Optional[ProofBatch] = None) -> MineResult:
        """
        Mine blocks without completing the current depth.

        Args:
            user_id: Caller identity
            blocks: Block hashes to reveal, in order
            neighbours: For each block, an already-revealed adjacent block
            types: Claimed type per block
            defog_nonces: Defog nonce per block (PoW bypass only)
            pow_nonces: PoW nonce per block (PoW bypass only)
            proof_batch: One mine proof per block (ZK path)

        Returns:
            MineResult for the committed batch
        """
        with self._lock:
            self._ensure_not_releasing("Mining")
            try:
                self._ensure_active()
                txn = _Txn(self.store, user_id, self._require_user(user_id))
                result = self._mine(txn, blocks, neighbours, types, defog_nonces, pow_nonces,
                                     proof_batch, False, self.entropy.now())
                self._commit(txn)
            except GameError as e:
                logger.warning(f"Batch of {len(blocks)} from {user_id} rejected: {e}")
                raise

        logger.info(f"{user_id} mined {result.blocks_mined} block(s), "
                    f"reward {result.total_reward}, offset {result.difficulty_offset}")
        return result

    def mine_batch_and_unlock(self, user_id: str, blocks: Sequence[int],
                              neighbours: Sequence[int], types: Sequence[int],
                              defog_nonces: Sequence[int] = (), pow_nonces: Sequence[int] = (),
                              proof_batch: Optional[ProofBatch] = None,
                              next_opening_block: Optional[int] = None,
                              unlock_proof: Optional[ProofBatch] = None) -> MineResult:
        """
        Mine the blocks that complete the current depth, then open the next one.

        Takes the same batch arguments as mine_batch, plus the opening
        block of the next depth and (ZK path) its unlock proof.
        """
        with self._lock:
            self._ensure_not_releasing("Mining")
            try:
                if next_opening_block is None:
                    raise MalformedBatchError("Missing the opening block of the next depth")
                self._ensure_active()
                txn = _Txn(self.store, user_id, self._require_user(user_id))
                now = self.entropy.now()
                result = self._mine(txn, blocks, neighbours, types, defog_nonces, pow_nonces,
                                     proof_batch, True, now)
                self._unlock(txn, next_opening_block, txn.user.depth + 1, unlock_proof, now)
                result.unlocked = True
                result.depth = txn.user.depth
                self._commit(txn)
            except GameError as e:
                logger.warning(f"Batch-and-unlock from {user_id} rejected: {e}")
                raise

        logger.info(f"{user_id} cleared a depth and unlocked depth {result.depth}")
        return result

    def claim_reward(self, user_id: str) -> int:
        """
        Pay out the caller's whole claimable balance.

        The ledger moves first; the external transfer follows under a
        reentrancy guard and the ledger is restored if the transfer fails.

        Returns:
            Amount transferred
        """
        with self._lock:
            self._ensure_not_releasing("Claim")
            try:
                self.access.ensure_not_paused()
                txn = _Txn(self.store, user_id, self._require_user(user_id))
                amount = RewardLedger.claim(txn.state, txn.user)
                txn.emit(ev.REWARD_CLAIMED, user=user_id, amount=amount)
                self._release(txn, user_id, amount)
            except GameError as e:
                logger.warning(f"Claim by {user_id} rejected: {e}")
                raise

        logger.info(f"{user_id} claimed {amount}")
        return amount

    def _release(self, txn: _Txn, recipient: str, amount: int):
        """Commit a ledger change that releases tokens, then transfer them out."""
        previous_state = self.store.state
        previous_user = self.store.users.get(txn.user_id) if txn.user is not None else None
        previous_events = txn.events
        txn.events = []
        self._commit(txn)

        self._releasing = True
        try:
            self.token_ledger.transfer_out(recipient, amount)
        except Exception:
            self.store.state = previous_state
            if previous_user is not None:
                self.store.users[txn.user_id] = previous_user
            if self.autosave_path:
                self.store.save(self.autosave_path)
            raise
        finally:
            self._releasing = False

        for name, data in previous_events:
            self.events.append(name, data)

    # =========================================================================
    # Operator operations
    # =========================================================================

    def set_config(self, caller: str, new_config: GameConfig):
        """Replace the game configuration wholesale."""
        with self._lock:
            self._ensure_not_releasing("Configuration change")
            self.access.require(caller, Capability.CONFIGURE)
            new_config.validate()
            self.store.config = new_config
            self.events.append(ev.CONFIG_UPDATED, {'by': caller})
            if self.autosave_path:
                self.store.save(self.autosave_path)
        logger.info(f"Configuration replaced by {caller}")

    def pause(self, caller: str):
        with self._lock:
            self._ensure_not_releasing("Pause")
            self.access.require(caller, Capability.PAUSE)
            self.access.paused = True
            self.events.append(ev.PAUSED, {'by': caller})
        logger.info(f"Game paused by {caller}")

    def unpause(self, caller: str):
        with self._lock:
            self._ensure_not_releasing("Unpause")
            self.access.require(caller, Capability.PAUSE)
            self.access.paused = False
            self.events.append(ev.UNPAUSED, {'by': caller})
        logger.info(f"Game unpaused by {caller}")

    def set_pow_bypass(self, caller: str, enabled: bool):
        """Switch between the ZK path (False) and the defog + PoW path (True)."""
        with self._lock:
            self._ensure_not_releasing("PoW bypass change")
            self.access.require(caller, Capability.CONFIGURE)
            self.store.pow_bypass = bool(enabled)
            self.events.append(ev.POW_BYPASS_CHANGED, {'enabled': bool(enabled)})
        logger.info(f"PoW bypass {'enabled' if enabled else 'disabled'} by {caller}")

    def set_verifier(self, caller: str, verifier):
        """Replace the proof verifier (and with it the verifying keys)."""
        with self._lock:
            self._ensure_not_releasing("Verifier change")
            self.access.require(caller, Capability.VERIFIER)
            self.verifier = verifier
            self.events.append(ev.VERIFIER_CHANGED, {'by': caller})
        logger.info(f"Proof verifier replaced by {caller}")

    def authorize_upgrade(self, caller: str, implementation: str):
        with self._lock:
            self._ensure_not_releasing("Upgrade authorization")
            self.access.require(caller, Capability.UPGRADE)
            self.store.authorized_upgrade = implementation
            self.events.append(ev.UPGRADE_AUTHORIZED, {'implementation': implementation})
        logger.info(f"Upgrade to {implementation} authorized by {caller}")

    def deposit(self, caller: str, amount: int):
        """Pull tokens from the caller into the reward pool."""
        with self._lock:
            self._ensure_not_releasing("Deposit")
            self.access.require(caller, Capability.TREASURY)
            txn = _Txn(self.store, caller, None)
            RewardLedger.deposit(txn.state, amount)
            self.token_ledger.transfer_in(caller, amount)
            txn.emit(ev.POOL_DEPOSITED, by=caller, amount=amount)
            self._commit(txn)
        logger.info(f"{caller} deposited {amount} into the reward pool")

    def withdraw(self, caller: str, amount: int, recipient: Optional[str] = None):
        """Take ungranted tokens back out of the reward pool."""
        recipient = recipient or caller
        with self._lock:
            self.access.require(caller, Capability.TREASURY)
            self._ensure_not_releasing("Withdrawal")
            txn = _Txn(self.store, caller, None)
            RewardLedger.withdraw(txn.state, amount)
            txn.emit(ev.POOL_WITHDRAWN, by=caller, to=recipient, amount=amount)
            self._release(txn, recipient, amount)
        logger.info(f"{caller} withdrew {amount} from the reward pool to {recipient}")

    def emergency_withdraw(self, caller: str, recipient: Optional[str] = None) -> int:
        """Withdraw everything not yet granted. Works while paused."""
        with self._lock:
            self._ensure_not_releasing("Emergency withdrawal")
            amount = self.store.state.remaining_reward
            if amount > 0:
                self.withdraw(caller, amount, recipient)
                logger.warning(f"Emergency withdrawal of {amount} by {caller}")
            else:
                self.access.require(caller, Capability.TREASURY)
        return amount

    # =========================================================================
    # Read-only queries
    # =========================================================================

    def is_ended(self) -> bool:
        return self.entropy.now() >= self.config.end_time

    def game_status(self) -> Dict[str, Any]:
        state = self.store.state
        cfg = self.config
        return {
            'game_id': cfg.general.game_id,
            'start_time': cfg.general.start_time,
            'end_time': cfg.end_time,
            'ended': self.is_ended(),
            'paused': self.access.paused,
            'pow_bypass': self.store.pow_bypass,
            'user_count': state.user_count,
            'total_mined': {t.name: state.total_mined[t] for t in config.MINEABLE_TYPES},
            'total_reward': state.total_reward,
            'remaining_reward': state.remaining_reward,
            'total_pending': state.total_pending,
            'total_claimed': state.total_claimed,
            'token': cfg.reward.token,
        }

    def user_info(self, user_id: str) -> UserState:
        return copy.deepcopy(self._require_user(user_id))

    def remaining_energy(self, user_id: str) -> int:
        return self._energy_at(self._require_user(user_id), self.entropy.now())

    def user_difficulty(self, user_id: str, block_type: int) -> int:
        user = self._require_user(user_id)
        return pow_difficulty(self.config.mining, block_type, user.difficulty_offset)

    def is_mined(self, user_id: str, block_hash: int) -> bool:
        return self.store.is_mined(user_id, block_hash)

    def pow_challenge(self, user_id: str, block_type: int) -> Tuple[int, int]:
        """(seed, difficulty) a client must solve to mine a block of this type next."""
        user = self._require_user(user_id)
        return user.pow_seed, pow_difficulty(self.config.mining, block_type, user.difficulty_offset)

    def check_invariants(self):
        """Raise LedgerConsistencyError if any global or per-user invariant fails."""
        self.store.state.check_invariant()
        for user in list(self.store.users.values()):
            user.check_invariant()
