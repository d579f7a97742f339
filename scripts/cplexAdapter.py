'''
cplexAdapter.py

SolverAdapter implementation on top of the IBM CPLEX Python API.

Declarations are buffered and loaded into a cplex.Cplex problem in a few
batched calls when solve() is invoked. The problem is a MILP as soon as one
binary variable is declared, and an LP otherwise.

Requirements:
- IBM CPLEX Python API (cplex)

Author: Joline Uichanco
Created: Oct 14, 2026
'''

import logging

import cplex
from cplex.exceptions import CplexError

from pldErrors import InputValidationError, SolverError
from pldFormulation import BINARY, UNIT, NONNEGATIVE, LESS_EQUAL, EQUAL
from solverAdapter import (SolverAdapter, SolverConfig, OPTIMAL, TIME_LIMIT, INTERRUPTED,
                           INFEASIBLE, UNBOUNDED, ERROR)

logger = logging.getLogger(__name__)

# CPLEX solution status codes (1 = optimal, 101/102 = MIP optimal within tolerance)
CPLEX_STATUS = {
    1: OPTIMAL,            # optimal
    101: OPTIMAL,          # MIP_optimal
    102: OPTIMAL,          # optimal_tolerance
    2: UNBOUNDED,          # unbounded
    118: UNBOUNDED,        # MIP_unbounded
    3: INFEASIBLE,         # infeasible
    103: INFEASIBLE,       # MIP_infeasible
    # The PLD objective is bounded (each customer's choices sum to 1),
    # so "infeasible or unbounded" means infeasible.
    4: INFEASIBLE,         # infeasible_or_unbounded
    119: INFEASIBLE,       # MIP_infeasible_or_unbounded
    11: TIME_LIMIT,        # abort_time_limit
    25: TIME_LIMIT,        # abort_dettime_limit
    107: TIME_LIMIT,       # MIP_time_limit_feasible
    108: TIME_LIMIT,       # MIP_time_limit_infeasible
    131: TIME_LIMIT,       # MIP_dettime_limit_feasible
    132: TIME_LIMIT,       # MIP_dettime_limit_infeasible
    13: INTERRUPTED,       # abort_user
    113: INTERRUPTED,      # MIP_abort_feasible
    114: INTERRUPTED,      # MIP_abort_infeasible
}

_BOUNDS = {
    BINARY: (0.0, 1.0),
    UNIT: (0.0, 1.0),
    NONNEGATIVE: (0.0, cplex.infinity),
}


class CplexSolverAdapter(SolverAdapter):
    '''
    SolverAdapter backed by a cplex.Cplex problem.

    Parameters
    ----------
    config : SolverConfig, optional
        Time limit and log settings; defaults to no limit and a silent solver
    '''

    def __init__(self, config=None):
        self.config = config or SolverConfig()
        self.prob = cplex.Cplex()
        if not self.config.log_output:
            self.prob.set_log_stream(None)
            self.prob.set_results_stream(None)
            self.prob.set_warning_stream(None)
            self.prob.set_error_stream(None)

        self._time_limit = self.config.time_limit
        self._is_integer = False

        # buffered variables
        self._names = []
        self._lb = []
        self._ub = []
        self._types = []

        # buffered constraints
        self._lin_expr = []
        self._senses = []
        self._rhs = []
        self._row_names = []

        self._objective = []
        self._warm_start = {}

        self._solved = False
        self._status_code = None
        self._runtime = None

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def declareVariable(self, name, kind):
        if kind not in _BOUNDS:
            raise ValueError(f"Unknown variable kind: {kind!r}")
        lb, ub = _BOUNDS[kind]
        self._names.append(name)
        self._lb.append(lb)
        self._ub.append(ub)
        if kind == BINARY:
            self._types.append(self.prob.variables.type.binary)
            self._is_integer = True
        else:
            self._types.append(self.prob.variables.type.continuous)
        return len(self._names) - 1

    def addLinearConstraint(self, ind, val, sense, rhs, name=None):
        if sense not in (LESS_EQUAL, EQUAL):
            raise ValueError(f"Unsupported constraint sense: {sense!r}")
        self._lin_expr.append(cplex.SparsePair(ind=[int(h) for h in ind],
                                               val=[float(v) for v in val]))
        self._senses.append(sense)
        self._rhs.append(float(rhs))
        self._row_names.append(name if name is not None else "c" + str(len(self._row_names) + 1))

    def setObjective(self, terms):
        self._objective = [(int(h), float(coef)) for (h, coef) in terms]

    def setTimeLimit(self, seconds):
        self._time_limit = seconds

    def setWarmStart(self, handle, value):
        if not self._is_integer:
            raise InputValidationError("Warm start is only accepted for integer models")
        self._warm_start[int(handle)] = float(value)

    # -------------------------------------------------------------------------
    # Solve
    # -------------------------------------------------------------------------

    def _load(self):
        prob = self.prob
        prob.objective.set_sense(prob.objective.sense.maximize)

        if self._is_integer:
            prob.variables.add(lb=self._lb, ub=self._ub, types=self._types, names=self._names)
        else:
            # passing types at all makes CPLEX switch the problem to MILP
            prob.variables.add(lb=self._lb, ub=self._ub, names=self._names)

        if self._objective:
            prob.objective.set_linear(self._objective)

        if self._lin_expr:
            prob.linear_constraints.add(lin_expr=self._lin_expr,
                                        senses=self._senses,
                                        rhs=self._rhs,
                                        names=self._row_names)

        if self._is_integer:
            prob.set_problem_type(prob.problem_type.MILP)
        else:
            prob.set_problem_type(prob.problem_type.LP)

        if self._time_limit is not None and self._time_limit > 0:
            prob.parameters.timelimit.set(float(self._time_limit))

        if self._warm_start:
            handles = sorted(self._warm_start)
            prob.MIP_starts.add(cplex.SparsePair(ind=handles,
                                                 val=[self._warm_start[h] for h in handles]),
                                prob.MIP_starts.effort_level.auto,
                                "warm_start")

    def solve(self):
        if self._solved:
            raise SolverError("CplexSolverAdapter instances can only be solved once")
        self._solved = True

        try:
            self._load()
        except CplexError as e:
            raise SolverError(f"CPLEX rejected the model: {e}") from e

        logger.info("Number of variables: %d", self.prob.variables.get_num())
        logger.info("Number of constraints: %d", self.prob.linear_constraints.get_num())
        logger.info("Start of solving")

        start = self.prob.get_time()
        try:
            self.prob.solve()
        except CplexError as e:
            raise SolverError(f"CPLEX failed during solve: {e}") from e
        finally:
            self._runtime = self.prob.get_time() - start

        self._status_code = self.prob.solution.get_status()
        status = CPLEX_STATUS.get(self._status_code, ERROR)
        logger.info("Solution status: %s (%s, code %d)", status,
                    self.prob.solution.get_status_string(), self._status_code)
        logger.info("Time elapsed (sec): %.3f", self._runtime)
        return status

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _query(self, fn, *args):
        try:
            return fn(*args)
        except CplexError as e:
            raise SolverError(f"CPLEX query failed: {e}", status=self._status_code) from e

    def hasSolution(self):
        if not self._solved:
            return False
        solution = self.prob.solution
        if self._query(solution.get_solution_type) == solution.type.none:
            return False
        return bool(self._query(solution.is_primal_feasible))

    def getValue(self, handle):
        return self._query(self.prob.solution.get_values, int(handle))

    def getValues(self, handles):
        return self._query(self.prob.solution.get_values, [int(h) for h in handles])

    def getObjectiveValue(self):
        return self._query(self.prob.solution.get_objective_value)

    def getBestBound(self):
        return self._query(self.prob.solution.MIP.get_best_objective)

    def getGap(self):
        return self._query(self.prob.solution.MIP.get_mip_relative_gap)

    def getRuntime(self):
        return self._runtime

    def getStatusCode(self):
        return self._status_code

    def close(self):
        self.prob.end()
