import abc
import logging
import typing as tp

from bilevel_kkt.src.base.common import Capability, VarType
from bilevel_kkt.src.base.errors import DimensionMismatch, UnsupportedComplementarityMethod
from bilevel_kkt.src.base.model import Model
from bilevel_kkt.src.config import config

Pair = tp.Tuple[tp.Sequence, tp.Sequence]


class ComplementarityStrategy(abc.ABC):
    """
    Encoding of complementarity conditions u[k] * v[k] == 0, u >= 0, v >= 0.

    Every heir declares the model capability it needs and implements `enforce`.
    The lower level reformulation only talks to this interface.
    """

    capability: Capability = Capability.LINEAR

    def __init__(self):
        self._logger = logging.getLogger(type(self).__name__)

    def check(self, model: Model) -> None:
        if not model.supports(self.capability):
            raise UnsupportedComplementarityMethod(
                f"{type(self).__name__} needs {self.capability.to_str}, "
                f"solver {model.solver.name} does not provide them"
            )

    @staticmethod
    def check_pairs(pairs: tp.Sequence[Pair]) -> None:
        for u, v in pairs:
            if len(u) != len(v):
                raise DimensionMismatch(f"Complementary vectors should have equal length, got {len(u)} and {len(v)}")

    def enforce(self, model: Model, pairs: tp.Sequence[Pair]) -> None:
        self.check(model)
        self.check_pairs(pairs)
        n = 0
        for u, v in pairs:
            if len(u) > 0:
                self._enforce_pair(model, u, v)
                n += len(u)
        self._logger.debug(f"{n} complementarity conditions are added.")

    @abc.abstractmethod
    def _enforce_pair(self, model: Model, u: tp.Sequence, v: tp.Sequence) -> None:
        raise NotImplementedError


class SOS1Complementarity(ComplementarityStrategy):
    """
    (u[k], v[k]) as a special ordered set of type 1: at most one of them is nonzero.
    """

    capability = Capability.SOS1

    def _enforce_pair(self, model, u, v):
        for u_k, v_k in zip(u, v):
            model.add_sos1([u_k, v_k])


class BigMComplementarity(ComplementarityStrategy):
    """
    Binary disjunction:
        u[k] <= M * z[k]
        v[k] <= M * (1 - z[k])
        z[k] ∈ {0, 1}

    Exact only if M bounds u and v on every solution of interest, a small M cuts them off.
    """

    capability = Capability.BINARY

    def __init__(self, big_m=None):
        super().__init__()
        self._big_m = config.BIG_M if big_m is None else float(big_m)
        if not self._big_m > 0:
            raise ValueError(f"Big M should be positive, got {self._big_m}")

    @property
    def big_m(self) -> float:
        return self._big_m

    def _enforce_pair(self, model, u, v):
        big_m = self._big_m
        z = model.add_vars("z", len(u), vtype=VarType.BIN)
        model.add_constrs((u[k] - z[k] * big_m <= 0 for k in range(len(u))), "comp_u")
        model.add_constrs((v[k] + z[k] * big_m <= big_m for k in range(len(v))), "comp_v")


class BilinearComplementarity(ComplementarityStrategy):
    """
    u[k] * v[k] == 0 stated literally, for solvers with nonconvex quadratic constraints.
    """

    capability = Capability.BILINEAR

    def _enforce_pair(self, model, u, v):
        for u_k, v_k in zip(u, v):
            model.add_bilinear_constr(u_k, v_k, "comp")
