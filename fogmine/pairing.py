"""
BN254 curve backend

The only module that touches elliptic-curve arithmetic. Points cross
the boundary as affine integer coordinates (the form proofs and keys
are submitted in); everything else is delegated to py_ecc.

G2 coordinates are ordered (real, imaginary): x = x[0] + x[1]*i.
The all-zero point stands for the point at infinity.
"""

from typing import Any, List, Sequence, Tuple
from dataclasses import dataclass

from py_ecc.optimized_bn128 import (
    FQ, FQ2, FQ12, G1, G2, Z1, Z2, add, b, b2, curve_order, field_modulus,
    final_exponentiate, is_inf, is_on_curve, multiply, neg, normalize, pairing,
)


@dataclass(frozen=True)
class G1Point:
    x: int
    y: int

    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 0

    def to_list(self) -> List[int]:
        return [self.x, self.y]

    @classmethod
    def from_list(cls, data: Sequence[int]) -> 'G1Point':
        return cls(int(data[0]), int(data[1]))


@dataclass(frozen=True)
class G2Point:
    x: Tuple[int, int]
    y: Tuple[int, int]

    def is_zero(self) -> bool:
        return self.x == (0, 0) and self.y == (0, 0)

    def to_list(self) -> List[List[int]]:
        return [list(self.x), list(self.y)]

    @classmethod
    def from_list(cls, data: Sequence[Sequence[int]]) -> 'G2Point':
        return cls((int(data[0][0]), int(data[0][1])), (int(data[1][0]), int(data[1][1])))


def _int(value: Any) -> int:
    return value.n if hasattr(value, 'n') else int(value)


def _check_coordinates(*coords: int):
    for c in coords:
        if not 0 <= c < field_modulus:
            raise ValueError("Point coordinate is outside the base field")


class Bn128Backend:
    """
    Narrow interface over py_ecc.optimized_bn128.

    Raises ValueError for points with coordinates outside the base field,
    points off the curve and G2 points outside the order-r subgroup;
    callers in the verifier translate that into a failed verification.
    """

    scalar_field = curve_order

    # -------------------------------------------------------------------------
    # Conversions
    # -------------------------------------------------------------------------

    def _g1(self, p: G1Point):
        if p.is_zero():
            return Z1
        _check_coordinates(p.x, p.y)
        pt = (FQ(p.x), FQ(p.y), FQ.one())
        if not is_on_curve(pt, b):
            raise ValueError("G1 point is not on the curve")
        return pt

    def _g2(self, p: G2Point):
        if p.is_zero():
            return Z2
        _check_coordinates(*p.x, *p.y)
        pt = (FQ2([p.x[0], p.x[1]]), FQ2([p.y[0], p.y[1]]), FQ2.one())
        if not is_on_curve(pt, b2):
            raise ValueError("G2 point is not on the curve")
        # G1 has cofactor 1; the twist does not
        if not is_inf(multiply(pt, curve_order)):
            raise ValueError("G2 point is not in the prime-order subgroup")
        return pt

    @staticmethod
    def _g1_out(pt) -> G1Point:
        if pt[2] == FQ.zero():
            return G1Point(0, 0)
        x, y = normalize(pt)
        return G1Point(_int(x), _int(y))

    @staticmethod
    def _g2_out(pt) -> G2Point:
        if pt[2] == FQ2.zero():
            return G2Point((0, 0), (0, 0))
        x, y = normalize(pt)
        return G2Point(tuple(_int(c) for c in x.coeffs), tuple(_int(c) for c in y.coeffs))

    # -------------------------------------------------------------------------
    # Group operations
    # -------------------------------------------------------------------------

    def g1_generator(self) -> G1Point:
        return self._g1_out(G1)

    def g2_generator(self) -> G2Point:
        return self._g2_out(G2)

    def on_curve_g1(self, p: G1Point) -> bool:
        try:
            self._g1(p)
        except ValueError:
            return False
        return True

    def on_curve_g2(self, p: G2Point) -> bool:
        try:
            self._g2(p)
        except ValueError:
            return False
        return True

    def g1_add(self, p: G1Point, q: G1Point) -> G1Point:
        return self._g1_out(add(self._g1(p), self._g1(q)))

    def g1_mul(self, p: G1Point, scalar: int) -> G1Point:
        return self._g1_out(multiply(self._g1(p), scalar % curve_order))

    def g1_neg(self, p: G1Point) -> G1Point:
        return self._g1_out(neg(self._g1(p)))

    def g2_mul(self, p: G2Point, scalar: int) -> G2Point:
        return self._g2_out(multiply(self._g2(p), scalar % curve_order))

    def pairing_product_is_one(self, pairs: Sequence[Tuple[G1Point, G2Point]]) -> bool:
        """
        Check prod(e(P_i, Q_i)) == 1.

        Miller loops are multiplied first and the final exponentiation
        runs once for the whole product.
        """
        acc = FQ12.one()
        for p1, p2 in pairs:
            acc = acc * pairing(self._g2(p2), self._g1(p1), final_exponentiate=False)
        return final_exponentiate(acc) == FQ12.one()
