'''
optimizationEngine.py

MILP solver for product line design under the first-choice ranking model.

This module implements:
- solve_ranking_assortment_MIP: builds the Belloni-Freund-Selove-Simester
  formulation for given rankings and solves it (integer problem or its
  continuous relaxation)
- solve_ranking_assortment: the same for Product / RankingChoiceModel objects,
  returning the list of offered product IDs
- loadFormulation and extractSolution: the bridge between a Formulation and a
  SolverAdapter

The formulation itself is described in pldFormulation.py. Any SolverAdapter
can run it; CPLEX is used when none is given.

Requirements:
- IBM CPLEX Python API (cplex), unless another adapter is supplied

Author: Joline Uichanco
Created: Oct 15, 2026
'''

import logging
import math
from collections import namedtuple

import numpy as np

from pldErrors import (InputValidationError, ModelInfeasibleError, ModelUnboundedError,
                       SolveInterruptedError, SolverError)
from pldFormulation import buildFormulation, xName, yName
from solverAdapter import OPTIMAL, INFEASIBLE, UNBOUNDED, ERROR

logger = logging.getLogger(__name__)

# Reported as upperbound and MIPgap when the relaxation is solved
NOT_APPLICABLE = -1

# A product is in the assortment when x is this close to 1
ASSORTMENT_TOL = 1e-4


AssortmentSolution = namedtuple('AssortmentSolution', ['x_val', 'y_val', 'expRevenue', 'upperbound',
                                                       'solutiontime', 'MIPgap', 'status'])
AssortmentSolution.__doc__ = '''
Result of a PLD solve.

x_val : numpy.ndarray of length n, x_val[i-1] is the offer value of product i
y_val : numpy.ndarray of shape (n+1, K), y_val[i-1, k-1] is the probability that
        type k chooses alternative i (row n is no-purchase)
expRevenue : expected revenue per customer of the returned solution
upperbound : best bound at termination, NOT_APPLICABLE for the relaxation
solutiontime : seconds spent by the solver
MIPgap : relative gap at termination, NOT_APPLICABLE for the relaxation
status : "optimal", "time_limit" or "interrupted"
'''


# =============================================================================
# FORMULATION <-> SOLVER
# =============================================================================

def loadFormulation(adapter, formulation):
    '''
    Declare every variable, constraint, objective term and warm start value of
    a formulation on a solver adapter.

    Returns
    -------
    handles : dict
        Variable name -> adapter handle
    '''
    handles = {}
    for var in formulation.variables:
        handles[var.name] = adapter.declareVariable(var.name, var.kind)

    for con in formulation.constraints:
        adapter.addLinearConstraint([handles[name] for name in con.ind], con.val,
                                    con.sense, con.rhs, name=con.name)

    adapter.setObjective([(handles[name], coef) for (name, coef) in formulation.objective])

    for (name, value) in formulation.warm_start:
        adapter.setWarmStart(handles[name], value)

    return handles


def extractSolution(adapter, formulation, handles, status):
    '''
    Read the solution of a finished solve back into an AssortmentSolution.

    Parameters
    ----------
    adapter : SolverAdapter
        Adapter on which solve() has returned
    formulation : Formulation
        The formulation that was solved
    handles : dict
        Variable name -> handle, as returned by loadFormulation
    status : str
        Status returned by adapter.solve()

    Returns
    -------
    solution : AssortmentSolution

    Raises
    ------
    ModelInfeasibleError, ModelUnboundedError
        If the solver proved infeasibility or unboundedness
    SolveInterruptedError
        If the solve stopped early without any feasible solution
    SolverError
        On any other termination without a solution
    '''
    runtime = adapter.getRuntime()
    if status == INFEASIBLE:
        raise ModelInfeasibleError(f"PLD formulation is infeasible (solver time {runtime}s)")
    if status == UNBOUNDED:
        raise ModelUnboundedError("PLD formulation is unbounded")
    if status == ERROR:
        raise SolverError("Solver terminated with an error status", status=adapter.getStatusCode())
    if not adapter.hasSolution():
        if status == OPTIMAL:
            raise SolverError("Solver reported optimality but returned no solution",
                              status=adapter.getStatusCode())
        raise SolveInterruptedError(
            f"Solve stopped ({status}) after {runtime}s without a feasible solution")

    n = formulation.n
    K = formulation.num_types

    x_val = np.array(adapter.getValues([handles[xName(i)] for i in range(1, n + 1)]), dtype=float)

    # one column per customer type
    y_flat = adapter.getValues([handles[yName(i, k)]
                                for k in range(1, K + 1) for i in range(1, n + 2)])
    y_val = np.array(y_flat, dtype=float).reshape(K, n + 1).T

    expRevenue = adapter.getObjectiveValue()

    if formulation.is_integer:
        upperbound = adapter.getBestBound()
        MIPgap = adapter.getGap()
    else:
        upperbound = NOT_APPLICABLE
        MIPgap = NOT_APPLICABLE

    return AssortmentSolution(x_val=x_val, y_val=y_val, expRevenue=expRevenue,
                              upperbound=upperbound, solutiontime=runtime,
                              MIPgap=MIPgap, status=status)


# =============================================================================
# RANKING-BASED PLD
# =============================================================================

def solve_ranking_assortment_MIP(n, revenues, numPermutations, lam, orderings,
                                 MIP_timeLimit=0, isRelaxation=False, x_initial=None,
                                 A_feas=None, b_feas=None, adapter_factory=None):
    '''
    Formulate and solve the Belloni, Freund, Selove and Simester first-choice
    PLD formulation.

    Parameters
    ----------
    n : int
        Number of candidate products
    revenues : array-like of length n
        Marginal revenue/profit of each product
    numPermutations : int
        Number of rankings / customer types K
    lam : array-like of length K
        Probability of each customer type; nonnegative, sums to 1
    orderings : array-like of shape (K, n+1)
        orderings[k][j] is the index of ranking k's (j+1)-th preferred
        alternative; n+1 encodes no-purchase. With n = 5, the row
        [3, 5, 2, 6, 1, 4] prefers 3 over 5 over 2 over not purchasing.
    MIP_timeLimit : float
        Maximum solver time in seconds; 0 means no limit
    isRelaxation : bool
        Solve the LP relaxation (True) or the integer problem (False)
    x_initial : array-like of length n, optional
        Warm start for the x variables; integer problem only
    A_feas, b_feas : array-like, optional
        Side constraints A_feas x <= b_feas; none if b_feas is empty
    adapter_factory : callable, optional
        Returns a fresh SolverAdapter; CplexSolverAdapter by default

    Returns
    -------
    solution : AssortmentSolution
        (x_val, y_val, expRevenue, upperbound, solutiontime, MIPgap, status).
        expRevenue is the value of the best solution found; upperbound equals
        it (up to solver tolerance) when the problem is solved to optimality.

    Raises
    ------
    InputValidationError
        If the inputs are inconsistent; raised before any model is built
    ModelInfeasibleError, ModelUnboundedError, SolveInterruptedError, SolverError
        See extractSolution

    References
    ----------
    A. Belloni, R. Freund, M. Selove, and D. Simester. Optimizing product line
    designs: Efficient methods and comparisons. Management Science,
    54(9):1544-1552, 2008.
    '''
    if (isinstance(MIP_timeLimit, bool) or not isinstance(MIP_timeLimit, (int, float, np.number))
            or not math.isfinite(MIP_timeLimit) or MIP_timeLimit < 0):
        raise InputValidationError(
            f"MIP_timeLimit must be a finite number >= 0, got {MIP_timeLimit!r}")

    logger.info('Start of creating model')
    formulation = buildFormulation(n, revenues, numPermutations, lam, orderings,
                                   isRelaxation=isRelaxation, x_initial=x_initial,
                                   A_feas=A_feas, b_feas=b_feas)
    logger.info("PLD model: %d products, %d customer types, %d variables, %d constraints (%s)",
                formulation.n, formulation.num_types, len(formulation.variables),
                len(formulation.constraints), "relaxation" if isRelaxation else "integer")

    if adapter_factory is None:
        from cplexAdapter import CplexSolverAdapter
        adapter_factory = CplexSolverAdapter

    adapter = adapter_factory()
    try:
        handles = loadFormulation(adapter, formulation)
        adapter.setTimeLimit(MIP_timeLimit)
        status = adapter.solve()
        solution = extractSolution(adapter, formulation, handles, status)
    finally:
        adapter.close()

    logger.info("Objective value = %s", solution.expRevenue)
    return solution


def solve_ranking_assortment(choice_model, product_dict, **kwargs):
    '''
    Solve the PLD problem for a RankingChoiceModel over a product catalog.

    Parameters
    ----------
    choice_model : RankingChoiceModel
        Customer type probabilities and rankings over product IDs
    product_dict : dict
        Dictionary mapping product IDs to Product objects
    **kwargs
        Passed on to solve_ranking_assortment_MIP (MIP_timeLimit,
        isRelaxation, A_feas, b_feas, adapter_factory, ...). A_feas columns
        and x_initial entries follow the order of product_dict.

    Returns
    -------
    opt_assortment : list
        Sorted product IDs whose x value is within ASSORTMENT_TOL of 1
    solution : AssortmentSolution
    '''
    product_ids = list(product_dict.keys())
    revenues = [product_dict[j].margin for j in product_ids]
    orderings = choice_model.getOrderings(product_ids)

    solution = solve_ranking_assortment_MIP(len(product_ids), revenues,
                                            choice_model.getNumTypes(), choice_model.lam,
                                            orderings, **kwargs)

    opt_assortment = []
    for (i, j) in enumerate(product_ids):
        if abs(solution.x_val[i] - 1) < ASSORTMENT_TOL:
            opt_assortment.append(j)
    opt_assortment.sort()

    return (opt_assortment, solution)
