import typing as tp
from enum import Enum

import numpy as np
import pulp

ArrayType = np.ndarray
tpBound = tp.Optional[tp.Union[float, tp.Sequence[float], ArrayType]]


def to_bound(num) -> tp.Optional[float]:
    """
    pulp only accepts finite bounds, None stands for "no bound".
    """
    if num is None or not np.isfinite(num):
        return None
    return float(num)


class VarType(Enum):
    REAL = 0
    INTEGER = 1
    BIN = 2

    @property
    def to_pulp(self) -> str:
        return {0: pulp.LpContinuous, 1: pulp.LpInteger, 2: pulp.LpBinary}[self.value]


class Capability(Enum):
    LINEAR = 0
    BINARY = 1
    SOS1 = 2
    BILINEAR = 3

    @property
    def to_str(self) -> str:
        return {0: "linear constraints", 1: "binary variables", 2: "SOS1 sets", 3: "bilinear constraints"}[self.value]
