import logging

from bilevel_kkt.src.base.model import Model
from bilevel_kkt.src.structures.problem_data import ProblemData


class UpperLevelBuilder:
    def __init__(self):
        self._logger = logging.getLogger("UpperLevelBuilder")

    def build(self, model: Model, inst: ProblemData):
        """
        Upper level part of the model: x, y, G * x + H * y <= q, the objective and integrality.

        y gets no bounds here, its sign restrictions belong to the lower level.

        :return: lists of the variables x and y.
        """
        x = model.add_vars("x", inst.nu, lb=inst.xl, ub=inst.xu)
        y = model.add_vars("y", inst.nl)

        # G * x + H * y <= q
        model.add_constrs(
            (
                model.lin_sum(x[j] * inst.G[i, j] for j in range(inst.nu)) +
                model.lin_sum(y[j] * inst.H[i, j] for j in range(inst.nl)) <= float(inst.q[i])
                for i in range(inst.mu)
            ),
            "upper"
        )

        # min(cx * x + cy * y)
        model.set_objective(
            model.lin_sum(x[j] * inst.cx[j] for j in range(inst.nu)) +
            model.lin_sum(y[j] * inst.cy[j] for j in range(inst.nl))
        )

        for j in inst.Jx:
            model.set_integer(x[j])

        self._logger.info(f"Upper level is built: {inst.nu} + {inst.nl} vars, {inst.mu} constraints, "
                          f"{len(inst.Jx)} integer.")
        return x, y
