import typing as tp
from enum import Enum

import numpy as np

from bilevel_kkt.src.base.errors import DimensionMismatch


class LpSign(Enum):
    LessE = 0
    MoreE = 1
    Equal = 2


class LpInstance:
    """
    Class that stores an LP of the form:
        c.x -> min
        Ax `sign` b
        l <= x <= u
    A `nan` entry of `lower_bounds` / `upper_bounds` means that the variable has no such bound.
    """

    def __init__(self, a, b, c, sign: LpSign, lower_bounds=None, upper_bounds=None):
        self._c: np.array = np.array(c, dtype=float)
        self._a: np.array = np.array(a, dtype=float).reshape(-1, self._c.shape[0])
        self._b: np.array = np.array(b, dtype=float)
        self._upper_bounds: tp.Optional[np.array] = None
        self._lower_bounds: tp.Optional[np.array] = None
        self.sign: LpSign = sign
        if upper_bounds is not None:
            self._upper_bounds = np.array(upper_bounds, dtype=float)
        if lower_bounds is not None:
            self._lower_bounds = np.array(lower_bounds, dtype=float)

        n, m = self._a.shape
        if self._b.shape != (n,):
            raise DimensionMismatch(f"b should be a vector of length {n}, got shape {self._b.shape}")
        for bounds in (self._lower_bounds, self._upper_bounds):
            if bounds is not None and bounds.shape != (m,):
                raise DimensionMismatch(f"Bounds should be vectors of length {m}, got shape {bounds.shape}")

    @property
    def a(self) -> np.array:
        return self._a

    @property
    def b(self) -> np.array:
        return self._b

    @property
    def c(self) -> np.array:
        return self._c

    @property
    def upper_bounds(self) -> np.array:
        return self._upper_bounds

    @property
    def lower_bounds(self) -> np.array:
        return self._lower_bounds

    def check_feasible(self, x, eps=10e-7):
        x = np.asarray(x, dtype=float)
        # comparisons with nan are False, so missing bounds never fail
        l_bounds_q = (self.lower_bounds is None) or not (x - self.lower_bounds < -eps).any()
        u_bounds_q = (self.upper_bounds is None) or not (x - self.upper_bounds > eps).any()

        if self.sign == LpSign.Equal:
            q = (np.abs(self.a.dot(x) - self.b) <= eps).all()
        elif self.sign == LpSign.LessE:
            q = (self.a.dot(x) - self.b <= eps).all()
        else:
            q = (self.a.dot(x) - self.b >= -eps).all()
        return bool(q and l_bounds_q and u_bounds_q)
