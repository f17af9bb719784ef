import pulp

# default solver for every model built without an explicit one
SOLVER = pulp.PULP_CBC_CMD(msg=False)

# default constant of the big-M complementarity encoding
BIG_M = 1e4

# tolerance for complementarity and feasibility checks
EPS = 10e-7
