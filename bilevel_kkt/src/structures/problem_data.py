import dataclasses
import typing as tp
from dataclasses import dataclass

import numpy as np

from bilevel_kkt.src.base.common import ArrayType
from bilevel_kkt.src.base.errors import BoundInconsistency, DimensionMismatch, InvalidIndex


def _to_array(value, name: str, dtype=float) -> ArrayType:
    try:
        return np.array(value, dtype=dtype)
    except (TypeError, ValueError) as e:
        raise DimensionMismatch(f"{name} is not a regular array: {e}") from e


def _as_vector(value, n: int, name: str, dtype=float) -> ArrayType:
    arr = _to_array(value, name, dtype)
    if arr.ndim != 1 or arr.shape[0] != n:
        raise DimensionMismatch(f"{name} should be a vector of length {n}, got shape {arr.shape}")
    return arr


def _as_matrix(value, rows: int, cols: int, name: str) -> ArrayType:
    arr = _to_array(value, name)
    # empty blocks like `[]` or `np.full((0, 0), 0)` take the declared shape
    if arr.size == 0 and rows * cols == 0:
        arr = arr.reshape(rows, cols)
    if arr.shape != (rows, cols):
        raise DimensionMismatch(f"{name} should have shape {(rows, cols)}, got {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class ProblemData:
    """
    Class that stores the parameters of the bilevel linear program:

    min(cx * x + cy * y, {x, y})
      s.t.  G * x + H * y <= q
            xl <= x <= xu
            x[j] integer for j in Jx

            y ∈ argmin{ (d + F.T * x) * y :
                        A * x + B * y <= b
                        y[j] >= 0 for every j with yl[j] == True }

    Sizes: x has `nu` entries, y has `nl`, the upper level has `mu` constraints and the lower
    level has `ml`. `d` is the cost vector of the lower objective, `F` (nu x nl) the coefficient
    matrix of its bilinear term x * F * y, hence the lower level stationarity d + F.T * x + B.T * la - sigma = 0.

    Indices in `Jx` are 0-based. Arrays are copied and frozen, the instance never changes after
    construction.
    """

    nu: int
    nl: int
    mu: int
    ml: int

    G: ArrayType
    H: ArrayType
    q: ArrayType
    cx: ArrayType
    cy: ArrayType

    A: ArrayType
    B: ArrayType
    b: ArrayType
    d: ArrayType
    yl: ArrayType

    xl: tp.Optional[ArrayType] = None
    xu: tp.Optional[ArrayType] = None
    Jx: tp.Sequence[int] = ()
    F: tp.Optional[ArrayType] = None

    def __post_init__(self):
        for name in ("nu", "nl", "mu", "ml"):
            size = getattr(self, name)
            if int(size) != size or size < 0:
                raise DimensionMismatch(f"Size {name} should be a non-negative integer, got {size}")
            object.__setattr__(self, name, int(size))

        nu, nl, mu, ml = self.nu, self.nl, self.mu, self.ml
        fields = {
            "G": _as_matrix(self.G, mu, nu, "G"),
            "H": _as_matrix(self.H, mu, nl, "H"),
            "q": _as_vector(self.q, mu, "q"),
            "cx": _as_vector(self.cx, nu, "cx"),
            "cy": _as_vector(self.cy, nl, "cy"),
            "A": _as_matrix(self.A, ml, nu, "A"),
            "B": _as_matrix(self.B, ml, nl, "B"),
            "b": _as_vector(self.b, ml, "b"),
            "d": _as_vector(self.d, nl, "d"),
            "yl": _as_vector(self.yl, nl, "yl", dtype=bool),
            "xl": _as_vector(np.full(nu, -np.inf) if self.xl is None else self.xl, nu, "xl"),
            "xu": _as_vector(np.full(nu, np.inf) if self.xu is None else self.xu, nu, "xu"),
            "F": _as_matrix(np.zeros((nu, nl)) if self.F is None else self.F, nu, nl, "F"),
        }

        bad = np.where(fields["xl"] > fields["xu"])[0]
        if bad.shape[0] > 0:
            raise BoundInconsistency(f"xl > xu for indices {bad.tolist()}")

        jx = list()
        for j in self.Jx:
            if isinstance(j, (bool, np.bool_)) or not isinstance(j, (int, np.integer)):
                raise InvalidIndex(f"Index {j!r} in Jx is not an integer")
            if not 0 <= j < nu:
                raise InvalidIndex(f"Index {j} in Jx is out of range [0, {nu})")
            jx.append(int(j))
        object.__setattr__(self, "Jx", tuple(sorted(set(jx))))

        for name, arr in fields.items():
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def upper_objective(self, x, y) -> float:
        return float(self.cx.dot(x) + self.cy.dot(y))

    def lower_objective(self, x, y) -> float:
        return float(self.d.dot(y) + np.asarray(x, dtype=float).dot(self.F).dot(y))

    def fix_upper(self, x) -> "ProblemData":
        """
        Copy of the instance with the upper level decision fixed to `x` through its box bounds.
        """
        x = _as_vector(x, self.nu, "x")
        return dataclasses.replace(self, xl=x, xu=x)

    def check_feasible(self, x, y, eps=10e-7) -> bool:
        x, y = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
        upper_q = (self.G.dot(x) + self.H.dot(y) - self.q <= eps).all()
        lower_q = (self.A.dot(x) + self.B.dot(y) - self.b <= eps).all()
        box_q = (x - self.xl >= -eps).all() and (x - self.xu <= eps).all()
        sign_q = (y[self.yl] >= -eps).all()
        return bool(upper_q and lower_q and box_q and sign_q)
