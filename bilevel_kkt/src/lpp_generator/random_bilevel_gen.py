import numpy as np

from bilevel_kkt.src.structures.problem_data import ProblemData


class RandomBilevelLp:
    """
    Generator of random bilevel LP instances.

    x lies in the box [0, x_max], y >= 0, B > 0 and b exceeds max(A * x) over the box,
    so the lower level is feasible (y = 0) and bounded for every x.
    The upper level may still be infeasible.
    """

    def __init__(self, nu, nl, mu, ml, seed=None, integer_share=0.0, x_max=10.0):
        """
        :param nu: number of upper level variables.
        :param nl: number of lower level variables.
        :param mu: number of upper level constraints.
        :param ml: number of lower level constraints, at least 1 if nl > 0.
        :param integer_share: share of integer upper level variables.
        """
        if nl > 0 and ml < 1:
            raise ValueError("Lower level needs at least one constraint to be bounded")
        if not 0.0 <= integer_share <= 1.0:
            raise ValueError(f"Integer share should be in [0, 1], got {integer_share}")

        self._rng = np.random.default_rng(seed)
        self._nu, self._nl, self._mu, self._ml = nu, nl, mu, ml
        self._integer_share = integer_share
        self._x_max = float(x_max)

        self.problem = self._init_problem()

    def _init_problem(self) -> ProblemData:
        rng = self._rng
        nu, nl, mu, ml = self._nu, self._nl, self._mu, self._ml

        a = rng.uniform(-1, 1, (ml, nu))
        big_b = rng.uniform(0.1, 1, (ml, nl))
        b = np.abs(a).sum(axis=1) * self._x_max + rng.uniform(1, 10, ml)

        g = rng.uniform(-1, 1, (mu, nu))
        h = rng.uniform(-1, 1, (mu, nl))
        # x = 0, y = 0 satisfies the upper level rows
        q = rng.uniform(0, 10, mu)

        jx = rng.choice(nu, int(round(self._integer_share * nu)), replace=False)

        return ProblemData(
            nu, nl, mu, ml,
            G=g, H=h, q=q,
            cx=rng.uniform(-1, 1, nu),
            cy=rng.uniform(-1, 1, nl),
            A=a, B=big_b, b=b,
            d=rng.uniform(-1, 1, nl),
            yl=np.full(nl, True),
            xl=np.zeros(nu),
            xu=np.full(nu, self._x_max),
            Jx=tuple(int(j) for j in jx),
            F=rng.uniform(-0.1, 0.1, (nu, nl)),
        )
