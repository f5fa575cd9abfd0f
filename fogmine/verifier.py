"""
Batched Groth16 verification

N independent proofs against one verifying key collapse into a single
pairing-product check using pseudo-random weights r_i:

    e(alfa1 * sum(r_i), beta2)
      * prod_i e(-r_i * A_i, B_i)
      * e(sum(r_i * vk_x_i), gamma2)
      * e(sum(r_i * C_i), delta2)  == 1

where vk_x_i = IC[0] + sum_j input_i[j] * IC[j+1].

A single corrupted proof makes the product differ from 1 except with
negligible probability, so the batch is as sound as N separate checks.
The verdict is binary; no attempt is made to find the bad proof.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, field

from . import config
from .crypto_utils import H
from .pairing import Bn128Backend, G1Point, G2Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proof:
    """Groth16 proof: A and C in G1, B in G2."""
    a: G1Point
    b: G2Point
    c: G1Point

    def to_dict(self) -> Dict[str, Any]:
        return {'a': self.a.to_list(), 'b': self.b.to_list(), 'c': self.c.to_list()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Proof':
        return cls(G1Point.from_list(data['a']), G2Point.from_list(data['b']),
                   G1Point.from_list(data['c']))


@dataclass
class VerifyingKey:
    """Groth16 verifying key with its input-commitment vector IC."""
    alfa1: G1Point
    beta2: G2Point
    gamma2: G2Point
    delta2: G2Point
    ic: List[G1Point] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'alfa1': self.alfa1.to_list(),
            'beta2': self.beta2.to_list(),
            'gamma2': self.gamma2.to_list(),
            'delta2': self.delta2.to_list(),
            'ic': [p.to_list() for p in self.ic],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VerifyingKey':
        return cls(
            alfa1=G1Point.from_list(data['alfa1']),
            beta2=G2Point.from_list(data['beta2']),
            gamma2=G2Point.from_list(data['gamma2']),
            delta2=G2Point.from_list(data['delta2']),
            ic=[G1Point.from_list(p) for p in data['ic']],
        )


def batch_seed(now: int, entropy: int, first_proof: Proof) -> int:
    """Domain-separated seed for the batch weights."""
    return H("fogmine-batch", now, entropy, first_proof.a.x, first_proof.a.y)


def derive_weights(seed: int, count: int) -> List[int]:
    """
    Derive `count` batch weights in [1, BATCH_WEIGHT_BOUND).

    A zero weight would drop its proof from the aggregate, so the range
    starts at one.
    """
    span = config.BATCH_WEIGHT_BOUND - 1
    return [(H(seed, i) % span + 1) % config.SNARK_SCALAR_FIELD for i in range(count)]


class BatchVerifier:
    """
    Verifies a batch of proofs sharing one verifying key.

    Usage:
        verifier = BatchVerifier()
        ok = verifier.verify_batch(proofs, inputs, vk, seed)
    """

    def __init__(self, backend: Optional[Bn128Backend] = None):
        self.backend = backend or Bn128Backend()

    def _well_formed(self, proofs: Sequence[Proof], inputs: Sequence[Sequence[int]],
                     vk: VerifyingKey) -> bool:
        if not proofs or len(proofs) != len(inputs):
            return False
        for vector in inputs:
            if len(vk.ic) != len(vector) + 1:
                return False
            if any(v < 0 or v >= config.SNARK_SCALAR_FIELD for v in vector):
                return False
        return True

    def _vk_x(self, vk: VerifyingKey, vector: Sequence[int]) -> G1Point:
        acc = vk.ic[0]
        for value, point in zip(vector, vk.ic[1:]):
            acc = self.backend.g1_add(acc, self.backend.g1_mul(point, value))
        return acc

    def verify_batch(self, proofs: Sequence[Proof], inputs: Sequence[Sequence[int]],
                     vk: VerifyingKey, seed: Optional[int] = None) -> bool:
        """
        Verify every proof in the batch in one pairing check.

        Args:
            proofs: Proofs to verify (N >= 1)
            inputs: Public-input vector per proof
            vk: Verifying key shared by the batch
            seed: Weight seed; drawn by the caller from time, entropy and
                  the first proof (see batch_seed). Defaults to a value
                  derived from the proofs alone.

        Returns:
            True only if every proof verifies
        """
        if not self._well_formed(proofs, inputs, vk):
            logger.debug("Rejecting malformed proof batch")
            return False

        if seed is None:
            seed = batch_seed(0, 0, proofs[0])
        weights = derive_weights(seed, len(proofs))

        bk = self.backend
        try:
            agg_c = G1Point(0, 0)
            agg_vk_x = G1Point(0, 0)
            pairs = []
            for proof, vector, r in zip(proofs, inputs, weights):
                pairs.append((bk.g1_neg(bk.g1_mul(proof.a, r)), proof.b))
                agg_c = bk.g1_add(agg_c, bk.g1_mul(proof.c, r))
                agg_vk_x = bk.g1_add(agg_vk_x, bk.g1_mul(self._vk_x(vk, vector), r))

            weight_sum = sum(weights) % config.SNARK_SCALAR_FIELD
            equation = [(bk.g1_mul(vk.alfa1, weight_sum), vk.beta2)]
            equation.extend(pairs)
            equation.append((agg_vk_x, vk.gamma2))
            equation.append((agg_c, vk.delta2))

            return bk.pairing_product_is_one(equation)
        except ValueError as e:
            logger.debug(f"Proof batch rejected: {e}")
            return False


class GameVerifier:
    """
    The proof verifier the engine is wired to.

    Holds the registered verifying keys for the two circuits: "mine"
    (one proof per revealed block) and "unlock" (one proof per opened
    depth). Operators swap the whole object to rotate keys.
    """

    def __init__(self, mine_key: VerifyingKey, unlock_key: VerifyingKey,
                 batch_verifier: Optional[BatchVerifier] = None):
        self.mine_key = mine_key
        self.unlock_key = unlock_key
        self.batch_verifier = batch_verifier or BatchVerifier()

    def verify_mine(self, proofs: Sequence[Proof], inputs: Sequence[Sequence[int]],
                    seed: int) -> bool:
        return self.batch_verifier.verify_batch(proofs, inputs, self.mine_key, seed)

    def verify_unlock(self, proof: Proof, inputs: Sequence[int], seed: int) -> bool:
        return self.batch_verifier.verify_batch([proof], [inputs], self.unlock_key, seed)

    def to_dict(self) -> Dict[str, Any]:
        return {'mine_key': self.mine_key.to_dict(), 'unlock_key': self.unlock_key.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameVerifier':
        return cls(VerifyingKey.from_dict(data['mine_key']),
                   VerifyingKey.from_dict(data['unlock_key']))
