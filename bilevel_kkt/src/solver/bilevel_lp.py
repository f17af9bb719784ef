import logging
import typing as tp
from dataclasses import dataclass

import numpy as np

from bilevel_kkt.src.base.common import ArrayType
from bilevel_kkt.src.solver import assembly
from bilevel_kkt.src.solver.complementarity import ComplementarityStrategy
from bilevel_kkt.src.structures.problem_data import ProblemData


@dataclass
class BilevelSolution:
    status: str
    objective: float
    x: ArrayType
    y: ArrayType
    lam: ArrayType
    s: ArrayType
    sigma: ArrayType

    @property
    def is_optimal(self) -> bool:
        return self.status == "Optimal"


class BilevelLpSolver:
    """
    Builds the single level model of a bilevel LP, solves it and reads the values back.
    """

    def __init__(self, solver=None, strategy: tp.Optional[ComplementarityStrategy] = None):
        self._solver = solver
        self._strategy = strategy
        self._logger = logging.getLogger("BilevelLpSolver")

    def solve(self, inst: ProblemData, name: str = "BilevelLP") -> BilevelSolution:
        """
        :return: solution, its status is the solver status as is. Values are nan if there are none.
        """
        model, x, y, la, s = assembly.build(inst, self._solver, self._strategy, name)
        sigma = model.var_block("sigma")

        status = model.solve()
        if status != "Optimal":
            self._logger.info(f"Model '{name}' has no optimal solution, status: {status}.")
            return BilevelSolution(
                status, np.nan,
                np.full(inst.nu, np.nan), np.full(inst.nl, np.nan),
                np.full(inst.ml, np.nan), np.full(inst.ml, np.nan), np.full(inst.nl, np.nan),
            )

        solution = BilevelSolution(
            status,
            model.objective_value,
            model.values(x),
            model.values(y),
            model.values(la),
            model.values(s),
            model.values(sigma),
        )
        self._logger.info(f"Bilevel LP is solved, objective = {solution.objective}.")
        return solution
