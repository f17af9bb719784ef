import logging
import typing as tp

import numpy as np

from bilevel_kkt.src.base.errors import DimensionMismatch
from bilevel_kkt.src.base.model import Model
from bilevel_kkt.src.solver.complementarity import ComplementarityStrategy, SOS1Complementarity
from bilevel_kkt.src.structures.problem_data import ProblemData


def _to_array(value, name, dtype=float) -> np.ndarray:
    try:
        return np.array(value, dtype=dtype)
    except (TypeError, ValueError) as e:
        raise DimensionMismatch(f"{name} is not a regular array: {e}") from e


def _matrix(value, name, shape=None) -> np.ndarray:
    arr = _to_array(value, name)
    if arr.ndim != 2:
        raise DimensionMismatch(f"{name} should be a matrix, got shape {arr.shape}")
    if shape is not None and arr.shape != shape:
        raise DimensionMismatch(f"{name} should have shape {shape}, got {arr.shape}")
    return arr


def _vector(value, n, name, dtype=float) -> np.ndarray:
    arr = _to_array(value, name, dtype)
    if arr.shape != (n,):
        raise DimensionMismatch(f"{name} should be a vector of length {n}, got shape {arr.shape}")
    return arr


def _check_len(variables, n, name) -> None:
    if len(variables) != n:
        raise DimensionMismatch(f"{name} should hold {n} variables, got {len(variables)}")


class LowerLevelReformulator:
    """
    Replaces the lower level LP

        min((d + F.T * x) * y, {y})  s.t.  A * x + B * y <= b,  y[j] >= 0 for yl[j]

    with its KKT system:
        A * x + B * y + s == b,             s >= 0
        d + F.T * x + B.T * la - sigma == 0, la >= 0, sigma >= 0
        sigma[j] == 0                        for free y[j]
        s ⟂ la, y[j] ⟂ sigma[j]              for y[j] >= 0

    Complementarity is delegated to the strategy.
    Every call creates new variables and constraints, calling twice duplicates the block.
    """

    def __init__(self, strategy: tp.Optional[ComplementarityStrategy] = None):
        self._strategy = SOS1Complementarity() if strategy is None else strategy
        self._logger = logging.getLogger("LowerLevelReformulator")

    @property
    def strategy(self) -> ComplementarityStrategy:
        return self._strategy

    def add_primal_feasibility(self, model: Model, a, b_mat, b, x, y):
        """
        Slack form of the lower level constraints: A * x + B * y + s == b, s >= 0.

        :return: list of the slack variables s.
        """
        b_mat = _matrix(b_mat, "B")
        ml, nl = b_mat.shape
        a = _matrix(a, "A", (ml, len(x)))
        b = _vector(b, ml, "b")
        _check_len(y, nl, "y")
        return self._add_primal_feasibility(model, a, b_mat, b, x, y)

    def _add_primal_feasibility(self, model, a, b_mat, b, x, y):
        ml, nl = b_mat.shape
        nu = len(x)
        s = model.add_vars("s", ml, lb=0.0)
        model.add_constrs(
            (
                model.lin_sum(x[j] * a[i, j] for j in range(nu)) +
                model.lin_sum(y[j] * b_mat[i, j] for j in range(nl)) + s[i] == float(b[i])
                for i in range(ml)
            ),
            "primal"
        )
        return s

    def _add_dual_block(self, model, b_mat, d, y, s, yl, x=None, f=None):
        ml, nl = b_mat.shape
        la = model.add_vars("lam", ml, lb=0.0)
        # dual of the lower bounds of y
        sigma = model.add_vars("sigma", nl, lb=0.0)

        bounded = [j for j in range(nl) if yl[j]]
        for j in bounded:
            model.set_lower_bound(y[j], 0.0)
        # free y[j] has no bound, hence no multiplier
        model.add_constrs({j: sigma[j] == 0 for j in range(nl) if not yl[j]}, "sigma_fix")

        # d + F.T * x + B.T * la - sigma == 0
        if x is not None:
            cross = [model.lin_sum(x[i] * f[i, j] for i in range(len(x))) for j in range(nl)]
        else:
            cross = [0.0] * nl
        model.add_constrs(
            (
                cross[j] + model.lin_sum(la[i] * b_mat[i, j] for i in range(ml)) - sigma[j] + float(d[j]) == 0
                for j in range(nl)
            ),
            "stationarity"
        )

        self._strategy.enforce(model, [
            (s, la),
            ([y[j] for j in bounded], [sigma[j] for j in bounded]),
        ])
        return la, sigma

    def reformulate(self, model: Model, inst: ProblemData, x, y):
        """
        Full lower level block for variables created by the upper level.

        :return: (la, s, sigma)
        """
        _check_len(x, inst.nu, "x")
        _check_len(y, inst.nl, "y")
        self._strategy.check(model)

        s = self._add_primal_feasibility(model, inst.A, inst.B, inst.b, x, y)
        la, sigma = self._add_dual_block(model, inst.B, inst.d, y, s, inst.yl, x, inst.F)
        self._log_finish(model)
        return la, s, sigma

    def add_dual_block(self, model: Model, b_mat, d, y, s, yl, x=None, f=None):
        """
        Dual feasibility, stationarity d + F.T * x + B.T * la - sigma == 0 and complementarity.
        Without x the F.T * x term is omitted.

        :return: (la, sigma)
        """
        b_mat = _matrix(b_mat, "B")
        ml, nl = b_mat.shape
        d = _vector(d, nl, "d")
        _check_len(y, nl, "y")
        yl = _vector(yl, nl, "yl", dtype=bool)
        if x is not None:
            f = _matrix(f, "F", (len(x), nl))
        _check_len(s, ml, "s")
        self._strategy.check(model)

        return self._add_dual_block(model, b_mat, d, y, s, yl, x, f)

    def reformulate_raw(self, model: Model, b_mat, d, x, y, s, f, yl=None):
        """
        Dual feasibility, stationarity and complementarity for a primal block built elsewhere.

        :param yl: sign restrictions of y, by default every y[j] >= 0.
        :return: (la, sigma)
        """
        if yl is None:
            yl = np.full(len(y), True)
        la, sigma = self.add_dual_block(model, b_mat, d, y, s, yl, x, f)
        self._log_finish(model)
        return la, sigma

    def reformulate_dual_only(self, model: Model, b_mat, d, s):
        """
        Degenerate variant over existing slacks: la >= 0, d + B.T * la == 0, s ⟂ la.

        :return: la
        """
        b_mat = _matrix(b_mat, "B")
        ml, nl = b_mat.shape
        d = _vector(d, nl, "d")
        _check_len(s, ml, "s")
        self._strategy.check(model)

        la = model.add_vars("lam", ml, lb=0.0)
        model.add_constrs(
            (model.lin_sum(la[i] * b_mat[i, j] for i in range(ml)) + float(d[j]) == 0 for j in range(nl)),
            "kkt"
        )
        self._strategy.enforce(model, [(s, la)])
        self._log_finish(model)
        return la

    def _log_finish(self, model: Model) -> None:
        self._logger.info(f"Lower level KKT system is added. "
                          f"Model with {model.n_vars} vars, {model.n_constrs} constraints.")
