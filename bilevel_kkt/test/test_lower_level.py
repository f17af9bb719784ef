import dataclasses
import logging

import numpy as np
import pulp
import pytest

from bilevel_kkt.src.base.errors import DimensionMismatch, UnsupportedComplementarityMethod
from bilevel_kkt.src.base.model import Model
from bilevel_kkt.src.lpp_generator.random_bilevel_gen import RandomBilevelLp
from bilevel_kkt.src.solver.complementarity import BigMComplementarity
from bilevel_kkt.src.solver.lower_level import LowerLevelReformulator
from bilevel_kkt.src.solver.upper_level import UpperLevelBuilder

logging.basicConfig(format='[%(name)s]: %(message)s', datefmt='%m.%d.%Y %H:%M:%S', level=logging.DEBUG)


def equal_q_f_p(number_1, number_2, eps=10e-7):
    return (np.abs(np.asarray(number_1) - np.asarray(number_2)) < eps).all()


def coef(constr, var):
    return constr.expr.get(var, 0.0)


def random_data(seed=7):
    inst = RandomBilevelLp(3, 4, 2, 3, seed=seed).problem
    return dataclasses.replace(inst, yl=[True, False, True, False])


def test_upper_level():
    inst = dataclasses.replace(random_data(), xl=[0., -np.inf, 1.], xu=[2., 3., np.inf], Jx=[2])
    model = Model()
    x, y = UpperLevelBuilder().build(model, inst)

    assert len(x) == 3 and len(y) == 4
    assert (x[0].lowBound, x[0].upBound) == (0., 2.)
    assert (x[1].lowBound, x[1].upBound) == (None, 3.)
    assert (x[2].lowBound, x[2].upBound) == (1., None)
    assert all(v.lowBound is None and v.upBound is None for v in y)
    assert x[2].isInteger() and not x[0].isInteger() and not x[1].isInteger()

    upper = model.constr_block("upper")
    assert len(upper) == inst.mu
    for i in range(inst.mu):
        assert equal_q_f_p(upper[i].constant, -inst.q[i])
        assert equal_q_f_p([coef(upper[i], v) for v in x], inst.G[i])
        assert equal_q_f_p([coef(upper[i], v) for v in y], inst.H[i])

    objective = model.lp.objective
    assert equal_q_f_p([objective.get(v, 0.0) for v in x], inst.cx)
    assert equal_q_f_p([objective.get(v, 0.0) for v in y], inst.cy)


def test_reformulate_structure():
    inst = random_data()
    model = Model()
    x, y = UpperLevelBuilder().build(model, inst)
    la, s, sigma = LowerLevelReformulator().reformulate(model, inst, x, y)

    assert len(la) == inst.ml and len(s) == inst.ml and len(sigma) == inst.nl
    assert all(v.lowBound == 0 for v in la + s + sigma)

    # y[j] >= 0 only where yl[j]
    assert [v.lowBound for v in y] == [0., None, 0., None]

    sigma_fix = model.constr_block("sigma_fix")
    assert sorted(sigma_fix) == [1, 3]
    for j, constr in sigma_fix.items():
        assert coef(constr, sigma[j]) == 1 and constr.constant == 0
        assert constr.sense == pulp.LpConstraintEQ

    primal = model.constr_block("primal")
    for i in range(inst.ml):
        assert equal_q_f_p(primal[i].constant, -inst.b[i])
        assert equal_q_f_p([coef(primal[i], v) for v in x], inst.A[i])
        assert equal_q_f_p([coef(primal[i], v) for v in y], inst.B[i])
        assert coef(primal[i], s[i]) == 1
        assert primal[i].sense == pulp.LpConstraintEQ

    # d + F.T * x + B.T * la - sigma == 0
    stationarity = model.constr_block("stationarity")
    assert len(stationarity) == inst.nl
    for j in range(inst.nl):
        assert equal_q_f_p(stationarity[j].constant, inst.d[j])
        assert equal_q_f_p([coef(stationarity[j], v) for v in x], inst.F[:, j])
        assert equal_q_f_p([coef(stationarity[j], v) for v in la], inst.B[:, j])
        assert equal_q_f_p([coef(stationarity[j], v) for v in sigma], -np.eye(inst.nl)[j])
        assert all(coef(stationarity[j], v) == 0 for v in y + s)

    # s ⟂ la for every row, y ⟂ sigma for the two sign restricted y
    assert len(model.sos1_sets) == inst.ml + 2
    names = sorted(sorted(v.name for v in sos) for sos in model.sos1_sets)
    assert sorted([y[0].name, sigma[0].name]) in names
    assert sorted([y[2].name, sigma[2].name]) in names
    assert all(sorted([y[j].name, sigma[j].name]) not in names for j in (1, 3))


def test_add_dual_block_without_x():
    inst = random_data()
    model = Model()
    y = model.add_vars("y", inst.nl)
    s = model.add_vars("s", inst.ml, lb=0)

    la, sigma = LowerLevelReformulator().add_dual_block(model, inst.B, inst.d, y, s, inst.yl)

    for j, constr in enumerate(model.constr_block("stationarity")):
        assert equal_q_f_p(constr.constant, inst.d[j])
        assert len([v for v in constr.expr if constr.expr[v] != 0]) == inst.ml + 1


def test_reformulate_raw():
    inst = random_data()
    model = Model()
    x, y = UpperLevelBuilder().build(model, inst)
    reformulator = LowerLevelReformulator()
    s = reformulator.add_primal_feasibility(model, inst.A, inst.B, inst.b, x, y)

    la, sigma = reformulator.reformulate_raw(model, inst.B, inst.d, x, y, s, inst.F)

    # every y is sign restricted by default
    assert all(v.lowBound == 0 for v in y)
    assert model.constr_block("sigma_fix") == dict()
    assert len(model.sos1_sets) == inst.ml + inst.nl
    assert len(la) == inst.ml and len(sigma) == inst.nl


def test_reformulate_dual_only():
    inst = random_data()
    model = Model()
    s = model.add_vars("s", inst.ml, lb=0)

    la = LowerLevelReformulator(BigMComplementarity(100)).reformulate_dual_only(model, inst.B, inst.d, s)

    kkt = model.constr_block("kkt")
    assert len(kkt) == inst.nl
    for j in range(inst.nl):
        assert equal_q_f_p(kkt[j].constant, inst.d[j])
        assert equal_q_f_p([coef(kkt[j], v) for v in la], inst.B[:, j])
    with pytest.raises(KeyError):
        model.var_block("sigma")
    assert len(model.var_block("z")) == inst.ml


def test_shape_failure_is_atomic():
    inst = random_data()
    model = Model()
    x, y = UpperLevelBuilder().build(model, inst)
    reformulator = LowerLevelReformulator()
    s = reformulator.add_primal_feasibility(model, inst.A, inst.B, inst.b, x, y)
    n_vars, n_constrs = model.n_vars, model.n_constrs

    with pytest.raises(DimensionMismatch):
        reformulator.reformulate_raw(model, inst.B, inst.d[:-1], x, y, s, inst.F)
    with pytest.raises(DimensionMismatch):
        reformulator.reformulate_raw(model, inst.B, inst.d, x, y, s, inst.F.T)
    with pytest.raises(DimensionMismatch):
        reformulator.reformulate_raw(model, inst.B, inst.d, x, y, s[:-1], inst.F)
    with pytest.raises(DimensionMismatch):
        reformulator.reformulate_raw(model, inst.B, inst.d, x, y, s, inst.F, yl=[True])
    with pytest.raises(DimensionMismatch):
        reformulator.reformulate_dual_only(model, inst.B, inst.d, s[:-1])
    with pytest.raises(DimensionMismatch):
        reformulator.reformulate_dual_only(model, [[1., 2.], [3.]], inst.d, s)
    with pytest.raises(DimensionMismatch):
        reformulator.add_dual_block(model, inst.B, inst.d, y, s, inst.yl, x, [[0.1], [0.2, 0.3]])
    with pytest.raises(DimensionMismatch):
        reformulator.add_primal_feasibility(model, inst.A[:, :-1], inst.B, inst.b, x, y)
    with pytest.raises(DimensionMismatch):
        reformulator.reformulate(model, inst, x[:-1], y)

    assert (model.n_vars, model.n_constrs) == (n_vars, n_constrs)
    assert model.sos1_sets == []


def test_unsupported_is_atomic():
    inst = random_data()
    model = Model(solver=pulp.GLPK_CMD(msg=False))
    x, y = UpperLevelBuilder().build(model, inst)
    n_vars, n_constrs = model.n_vars, model.n_constrs

    with pytest.raises(UnsupportedComplementarityMethod):
        LowerLevelReformulator().reformulate(model, inst, x, y)
    assert (model.n_vars, model.n_constrs) == (n_vars, n_constrs)
