import numpy as np
import pulp

from bilevel_kkt.src.base.common import to_bound
from bilevel_kkt.src.config import config
from bilevel_kkt.src.structures import lp_instance
from bilevel_kkt.src.structures.problem_data import ProblemData

_SENSE = {
    lp_instance.LpSign.LessE: pulp.LpConstraintLE,
    lp_instance.LpSign.MoreE: pulp.LpConstraintGE,
    lp_instance.LpSign.Equal: pulp.LpConstraintEQ,
}


def create_pulp_model_from_lp_instance(instance: lp_instance.LpInstance, name: str = "UNNAMED"):
    """
    Builds a pulp model from an LpInstance.

    :param instance: LP instance.
    :param name: optional name of the pulp model.
    :return: pulp model and the list of its variables.
    """
    n, m = instance.a.shape

    model = pulp.LpProblem(name, pulp.LpMinimize)
    lower = np.full(m, np.nan) if instance.lower_bounds is None else instance.lower_bounds
    upper = np.full(m, np.nan) if instance.upper_bounds is None else instance.upper_bounds
    x = [model.add_variable(f"x_{i}", to_bound(lower[i]), to_bound(upper[i])) for i in range(m)]

    model.setObjective(pulp.lpSum(x[i] * instance.c[i] for i in range(m)))
    for i in range(n):
        row = pulp.lpSum(x[j] * instance.a[i, j] for j in range(m))
        model.addConstraint(pulp.LpConstraint(row, _SENSE[instance.sign], f"row_{i}", float(instance.b[i])))

    return model, x


def solve_lp_instance(inst: lp_instance.LpInstance, solver=None):
    model, x = create_pulp_model_from_lp_instance(inst)
    model.solve(config.SOLVER if solver is None else solver)
    if model.status != pulp.LpStatusOptimal:
        raise ValueError(f"Status after model solving is {pulp.LpStatus[model.status]}")

    return np.array([v.varValue for v in x], dtype=float)


def lower_level_instance(inst: ProblemData, x) -> lp_instance.LpInstance:
    """
    Lower level LP at a fixed upper level decision:
        (d + F.T * x) * y -> min
        B * y <= b - A * x
        y[j] >= 0 for yl[j]
    """
    x = np.asarray(x, dtype=float)
    lower_bounds = np.where(inst.yl, 0.0, np.nan)
    return lp_instance.LpInstance(
        inst.B,
        inst.b - inst.A.dot(x),
        inst.d + inst.F.T.dot(x),
        lp_instance.LpSign.LessE,
        lower_bounds,
    )


def solve_lower_level(inst: ProblemData, x, solver=None):
    """
    Optimal answer y of the lower level to x, computed without the KKT reformulation.
    """
    return solve_lp_instance(lower_level_instance(inst, x), solver)


def check_complementarity(u, v, eps=None) -> bool:
    eps = config.EPS if eps is None else eps
    u, v = np.asarray(u, dtype=float), np.asarray(v, dtype=float)
    return bool((abs(u * v) < eps).all() and (u >= -eps).all() and (v >= -eps).all())
