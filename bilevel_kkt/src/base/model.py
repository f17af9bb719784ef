import logging
import typing as tp

import numpy as np
import pulp

from bilevel_kkt.src.base.common import Capability, VarType, tpBound, to_bound
from bilevel_kkt.src.base.errors import UnsupportedComplementarityMethod
from bilevel_kkt.src.config import config

# pulp solvers whose interface passes SOS sections on to the solver
SOS1_SOLVERS = frozenset({
    "COIN_CMD",
    "PULP_CBC_CMD",
    "CPLEX_CMD",
    "GUROBI_CMD",
    "COPT_CMD",
    "XPRESS",
    "SCIP_CMD",
    "FSCIP_CMD",
})


class Model:
    """
    Minimization model on top of `pulp.LpProblem`.

    Variables and constraints are created in named blocks. A block name is made unique inside
    the model, so building the same block twice creates a second, independent copy
    (`s`, `s2`, `s3`, ...) instead of clashing with the first one.
    """

    def __init__(self, name: str = "UNNAMED", solver=None):
        self._lp = pulp.LpProblem(name, pulp.LpMinimize)
        self._solver = config.SOLVER if solver is None else solver
        self._var_blocks: tp.Dict[str, tp.List[pulp.LpVariable]] = dict()
        self._constr_blocks: tp.Dict[str, tp.Any] = dict()
        self._n_vars = 0
        self._n_constrs = 0
        self._n_sos1 = 0
        self._logger = logging.getLogger("Model")

    @property
    def lp(self) -> pulp.LpProblem:
        return self._lp

    @property
    def solver(self):
        return self._solver

    @property
    def n_vars(self) -> int:
        return self._n_vars

    @property
    def n_constrs(self) -> int:
        return self._n_constrs

    @property
    def sos1_sets(self) -> tp.List[tp.Dict[pulp.LpVariable, int]]:
        return list(self._lp.sos1.values())

    def supports(self, capability: Capability) -> bool:
        if capability == Capability.LINEAR:
            return True
        if capability == Capability.BINARY:
            return bool(getattr(self._solver, "mip", True))
        if capability == Capability.SOS1:
            return self._solver.name in SOS1_SOLVERS
        return False

    def _unique_name(self, name: str, blocks: tp.Dict[str, tp.Any]) -> str:
        unique, k = name, 1
        while unique in blocks:
            k += 1
            unique = f"{name}{k}"
        return unique

    def var_block(self, name: str) -> tp.List[pulp.LpVariable]:
        return list(self._var_blocks[name])

    def constr_block(self, name: str):
        return self._constr_blocks[name]

    def add_var(self, name: str, lb=None, ub=None, vtype: VarType = VarType.REAL) -> pulp.LpVariable:
        unique = self._unique_name(name, self._var_blocks)
        var = self._lp.add_variable(unique, to_bound(lb), to_bound(ub), vtype.to_pulp)
        self._var_blocks[unique] = [var]
        self._n_vars += 1
        return var

    def add_vars(
            self,
            name: str,
            n: int,
            lb: tpBound = None,
            ub: tpBound = None,
            vtype: VarType = VarType.REAL) -> tp.List[pulp.LpVariable]:
        unique = self._unique_name(name, self._var_blocks)
        lbs = np.broadcast_to(np.array(np.nan if lb is None else lb, dtype=float), (n,))
        ubs = np.broadcast_to(np.array(np.nan if ub is None else ub, dtype=float), (n,))

        variables = [
            self._lp.add_variable(f"{unique}_{i}", to_bound(lbs[i]), to_bound(ubs[i]), vtype.to_pulp)
            for i in range(n)
        ]
        self._var_blocks[unique] = variables
        self._n_vars += n
        self._logger.debug(f"Block of {n} variables '{unique}' is added.")
        return variables

    @staticmethod
    def set_lower_bound(var: pulp.LpVariable, lb) -> None:
        var.lowBound = to_bound(lb)

    @staticmethod
    def set_integer(var: pulp.LpVariable) -> None:
        var.cat = pulp.LpInteger

    @staticmethod
    def lin_sum(terms) -> pulp.LpAffineExpression:
        return pulp.lpSum(terms)

    def add_constr(self, constr: tp.Union[pulp.LpConstraint, bool], name: tp.Optional[str] = None) -> pulp.LpConstraint:
        if isinstance(constr, bool):
            raise ValueError("Constant constraint can not be added to the model")
        if not isinstance(constr, pulp.LpConstraint):
            raise TypeError(f"Expected pulp.LpConstraint, got {type(constr)}")
        unique = self._unique_name("c" if name is None else name, self._constr_blocks)
        self._lp.addConstraint(constr, unique)
        self._constr_blocks[unique] = constr
        self._n_constrs += 1
        return constr

    def add_constrs(self, constrs, name: str):
        """
        Adds a block of constraints.

        :param constrs: iterable of constraints, or a mapping key -> constraint.
        :param name: block name, every constraint is named `{block}_{key}`.
        :return: list of constraints, or a dict with the keys of `constrs`.
        """
        unique = self._unique_name(name, self._constr_blocks)
        items = constrs.items() if isinstance(constrs, tp.Mapping) else enumerate(constrs)

        added = dict()
        for key, constr in items:
            if not isinstance(constr, pulp.LpConstraint):
                raise TypeError(f"Expected pulp.LpConstraint, got {type(constr)}")
            self._lp.addConstraint(constr, f"{unique}_{key}")
            added[key] = constr

        block = added if isinstance(constrs, tp.Mapping) else list(added.values())
        self._constr_blocks[unique] = block
        self._n_constrs += len(added)
        self._logger.debug(f"Block of {len(added)} constraints '{unique}' is added.")
        return block

    def set_objective(self, expr) -> None:
        self._lp.sense = pulp.LpMinimize
        self._lp.setObjective(pulp.lpSum(expr))

    def add_sos1(self, variables: tp.Sequence[pulp.LpVariable], name: tp.Optional[str] = None) -> None:
        if not self.supports(Capability.SOS1):
            raise UnsupportedComplementarityMethod(f"Solver {self._solver.name} does not support SOS1 sets")
        self._n_sos1 += 1
        self._lp.sos1[name or f"sos1_{self._n_sos1}"] = {v: k + 1 for k, v in enumerate(variables)}

    def add_bilinear_constr(self, u: pulp.LpVariable, v: pulp.LpVariable, name: tp.Optional[str] = None):
        raise UnsupportedComplementarityMethod("pulp models are linear, u * v == 0 can not be stated")

    def solve(self) -> str:
        kwargs = dict()
        # the MPS writer of pulp drops SOS sections, the LP one keeps them
        if self._lp.sos1 and isinstance(self._solver, pulp.COIN_CMD):
            kwargs["use_mps"] = False

        self._logger.info(f"Solving model with {self._n_vars} vars, {self._n_constrs} constraints.")
        self._lp.solve(self._solver, **kwargs)
        status = pulp.LpStatus[self._lp.status]
        self._logger.info(f"Solver status: {status}.")
        return status

    @staticmethod
    def value(var) -> float:
        val = pulp.value(var)
        return np.nan if val is None else float(val)

    def values(self, variables) -> np.ndarray:
        return np.array([self.value(v) for v in variables], dtype=float)

    @property
    def objective_value(self) -> float:
        if self._lp.objective is None:
            return np.nan
        return self.value(self._lp.objective)

    @property
    def to_str(self) -> str:
        s = f"{self._lp.objective} -> min\n"
        for constr in self._lp.constraints():
            s += f"{constr.name}: {constr}\n"
        for name, sos in self._lp.sos1.items():
            s += f"{name}: SOS1({', '.join(v.name for v in sos)})\n"
        return s.strip("\n")

    def __repr__(self):
        s = self.to_str.replace('\n', '\n\t')
        return f"Model(\n\t{s}\n)"
