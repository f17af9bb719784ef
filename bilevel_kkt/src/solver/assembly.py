"""
Entry points of the KKT reformulation of a bilevel LP.

Each entry point states what has to exist in the model before the call. None of them is
idempotent: every call creates new variables and constraints, so calling one twice on the same
model duplicates its block.
"""
import logging
import typing as tp

from bilevel_kkt.src.base.model import Model
from bilevel_kkt.src.solver.complementarity import ComplementarityStrategy
from bilevel_kkt.src.solver.lower_level import LowerLevelReformulator
from bilevel_kkt.src.solver.upper_level import UpperLevelBuilder
from bilevel_kkt.src.structures.problem_data import ProblemData

logger = logging.getLogger("ModelAssembly")


def build(
        inst: ProblemData,
        solver=None,
        strategy: tp.Optional[ComplementarityStrategy] = None,
        name: str = "BilevelLP"):
    """
    Builds the whole single level model of `inst` for `solver`.

    :return: (model, x, y, la, s)
    """
    model = Model(name, solver)
    reformulator = LowerLevelReformulator(strategy)
    # before anything is created
    reformulator.strategy.check(model)

    x, y = UpperLevelBuilder().build(model, inst)
    la, s, _ = reformulator.reformulate(model, inst, x, y)
    logger.info(f"Model '{name}' is built.")
    return model, x, y, la, s


def augment(
        model: Model,
        inst: ProblemData,
        x,
        y,
        strategy: tp.Optional[ComplementarityStrategy] = None):
    """
    Adds the lower level constraints and optimality conditions of `inst`.

    Precondition: x and y exist in `model`, the upper level constraints and the objective are set.

    :return: (model, x, y, la, s)
    """
    la, s, _ = LowerLevelReformulator(strategy).reformulate(model, inst, x, y)
    return model, x, y, la, s


def augment_raw(
        model: Model,
        b_mat,
        d,
        x,
        y,
        s,
        f,
        strategy: tp.Optional[ComplementarityStrategy] = None,
        yl=None):
    """
    Adds dual feasibility, stationarity d + F.T * x + B.T * la - sigma == 0 and complementarity
    from raw coefficients.

    Precondition: x, y, the slacks s and the primal rows A * x + B * y + s == b exist in `model`.

    :param yl: sign restrictions of y, by default every y[j] >= 0.
    :return: (model, la, s)
    """
    la, _ = LowerLevelReformulator(strategy).reformulate_raw(model, b_mat, d, x, y, s, f, yl)
    return model, la, s


def augment_dual_only(
        model: Model,
        b_mat,
        d,
        s,
        strategy: tp.Optional[ComplementarityStrategy] = None):
    """
    Adds la >= 0, d + B.T * la == 0 and s ⟂ la.

    Precondition: the slacks s of the lower level rows exist in `model`.

    :return: (model, la, s)
    """
    la = LowerLevelReformulator(strategy).reformulate_dual_only(model, b_mat, d, s)
    return model, la, s
