'''
pldFormulation.py

Linear formulation of product line design (PLD) under first-choice rankings.

This module implements:
- validateInputs: checks and normalizes the raw problem data
- encodeRanking: turns one customer ranking into linear constraints
- buildFormulation: assembles variables, constraints and objective into an
  immutable Formulation that any SolverAdapter can load

The formulation is the one of Belloni, Freund, Selove and Simester (2008).
With x_i the offer decision of product i and y_{i,k} the probability that
customer type k picks alternative i (n+1 is the no-purchase option):

    max  sum_k sum_{i<=n} lambda_k * revenue_i * y_{i,k}
    s.t. y_{i,k} <= x_i                          for i <= n, all k
         y_{r_k[q],k} <= 1 - x_{r_k[p]}          for p < q, r_k[p] <= n
         y_{r_k[q],k} <= 0                       for p < q, r_k[p] = n+1, p <= n
         sum_i y_{i,k} = 1                       for all k
         A_feas x <= b_feas
         x_i in {0,1} (or [0,1] for the relaxation), y >= 0

No big-M coefficients are needed: offering a product removes every
alternative ranked below it from that customer's choice set.

References
----------
A. Belloni, R. Freund, M. Selove, and D. Simester. Optimizing product line
designs: Efficient methods and comparisons. Management Science,
54(9):1544-1552, 2008.

Author: Joline Uichanco
Created: Oct 12, 2026
'''

import logging
from collections import namedtuple

import numpy as np

from pldErrors import InputValidationError

logger = logging.getLogger(__name__)

# Tolerance when checking that the customer type probabilities sum to one
LAMBDA_SUM_TOL = 1e-6

# Variable kinds understood by every SolverAdapter
BINARY = "binary"            # {0,1}
UNIT = "unit"                # continuous [0,1]
NONNEGATIVE = "nonnegative"  # continuous [0,inf)

# Constraint senses (same letters as the CPLEX API)
LESS_EQUAL = "L"
EQUAL = "E"


Variable = namedtuple('Variable', ['name', 'kind'])

LinearConstraint = namedtuple('LinearConstraint', ['name', 'ind', 'val', 'sense', 'rhs'])

Formulation = namedtuple('Formulation', ['n', 'num_types', 'is_integer', 'variables',
                                         'constraints', 'objective', 'warm_start'])
Formulation.__doc__ = '''
Immutable PLD model handed once to a SolverAdapter.

n, num_types : problem dimensions
is_integer : False for the continuous relaxation
variables : tuple of Variable
constraints : tuple of LinearConstraint
objective : tuple of (variable name, coefficient), always maximized
warm_start : tuple of (variable name, value), empty if no hint was given
'''


def xName(i):
    '''Name of the offer variable of product i (1-based).'''
    return "x_" + str(i)


def yName(i, k):
    '''Name of the choice variable of alternative i for customer type k (1-based).'''
    return "y_" + str(i) + "_" + str(k)


def countConstraints(n, K, T=0):
    '''
    Number of rows buildFormulation emits for n products, K customer types
    and T side constraints: per type, n offer links, n(n+1)/2 precedence rows
    and one exactly-one row.
    '''
    return T + K * (n + n * (n + 1) // 2 + 1)


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def validateInputs(n, revenues, numPermutations, lam, orderings,
                   isRelaxation=False, x_initial=None, A_feas=None, b_feas=None):
    '''
    Check the raw PLD data and convert it to numpy arrays.

    Every problem is reported before a model is constructed.

    Parameters
    ----------
    n : int
        Number of candidate products
    revenues : array-like of length n
        Marginal revenue of each product
    numPermutations : int
        Number of customer types (rankings) K
    lam : array-like of length K
        Probability of each customer type; nonnegative, sums to 1
    orderings : array-like of shape (K, n+1)
        orderings[k][j] is the index (1-based) of the j-th preferred
        alternative of type k; n+1 is the no-purchase option
    isRelaxation : bool
        Whether the continuous relaxation will be solved
    x_initial : array-like of length n, or None/empty
        Warm start for the offer variables (integer problem only)
    A_feas, b_feas : array-like of shape (T, n) and (T,)
        Side constraints A_feas x <= b_feas; empty b_feas means T = 0

    Returns
    -------
    revenues, lam, orderings, x_initial, A_feas, b_feas : numpy arrays
        x_initial is None when no warm start was given. A_feas has shape
        (T, n) and b_feas shape (T,) even when T = 0.

    Raises
    ------
    InputValidationError
    '''
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise InputValidationError(f"n must be a positive integer, got {n!r}")
    if (isinstance(numPermutations, bool) or not isinstance(numPermutations, (int, np.integer))
            or numPermutations <= 0):
        raise InputValidationError(
            f"numPermutations must be a positive integer, got {numPermutations!r}")
    n = int(n)
    K = int(numPermutations)

    revenues = _asFloatArray(revenues, "revenues")
    if revenues.shape != (n,):
        raise InputValidationError(f"revenues must have length {n}, got shape {revenues.shape}")
    if not np.all(np.isfinite(revenues)):
        raise InputValidationError("revenues must be finite")

    lam = _asFloatArray(lam, "lambda")
    if lam.shape != (K,):
        raise InputValidationError(f"lambda must have length {K}, got shape {lam.shape}")
    if not np.all(np.isfinite(lam)):
        raise InputValidationError("lambda must be finite and nonnegative, got non-finite values")
    if np.any(lam < 0):
        raise InputValidationError("lambda must be finite and nonnegative, got negative values")
    if abs(lam.sum() - 1.0) > LAMBDA_SUM_TOL:
        raise InputValidationError(f"lambda must sum to 1, sums to {lam.sum()}")

    orderings = _asFloatArray(orderings, "orderings")
    if orderings.shape != (K, n + 1):
        raise InputValidationError(
            f"orderings must have shape ({K}, {n + 1}), got {orderings.shape}")
    expected = np.arange(1, n + 2)
    for k in range(K):
        if not np.array_equal(np.sort(orderings[k]), expected):
            raise InputValidationError(
                f"orderings row {k + 1} is not a permutation of 1..{n + 1}: "
                f"{orderings[k].tolist()}")
    orderings = orderings.astype(int)

    if x_initial is not None:
        x_initial = _asFloatArray(x_initial, "x_initial")
    if x_initial is not None and x_initial.size > 0:
        if isRelaxation:
            raise InputValidationError("x_initial is only allowed for the integer problem")
        if x_initial.shape != (n,):
            raise InputValidationError(
                f"x_initial must have length {n}, got shape {x_initial.shape}")
        if not np.all(np.isfinite(x_initial)):
            raise InputValidationError("x_initial must be finite")
    else:
        x_initial = None

    if b_feas is not None:
        b_feas = _asFloatArray(b_feas, "b_feas")
    if b_feas is None or b_feas.size == 0:
        A_feas = np.zeros((0, n))
        b_feas = np.zeros(0)
    else:
        A_feas = _asFloatArray(A_feas if A_feas is not None else [], "A_feas")
        if b_feas.ndim != 1:
            raise InputValidationError(f"b_feas must be a vector, got shape {b_feas.shape}")
        T = b_feas.shape[0]
        if A_feas.ndim != 2 or A_feas.shape[1] != n:
            raise InputValidationError(
                f"A_feas rows must have width {n}, got shape {A_feas.shape}")
        if A_feas.shape[0] != T:
            raise InputValidationError(
                f"A_feas has {A_feas.shape[0]} rows but b_feas has {T} entries")
        if not (np.all(np.isfinite(A_feas)) and np.all(np.isfinite(b_feas))):
            raise InputValidationError("A_feas and b_feas must be finite")

    return revenues, lam, orderings, x_initial, A_feas, b_feas


def _asFloatArray(values, label):
    try:
        return np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"{label} is not a numeric array: {e}") from e


# =============================================================================
# PREFERENCE ENCODER
# =============================================================================

def encodeRanking(ranking, k, n):
    '''
    Encode first-choice behavior of one customer type as linear constraints.

    Scanning the ranking from the top, every product a at position p removes
    all alternatives at positions q > p from the choice set once it is
    offered:

        y_{r[q],k} <= 1 - x_a

    If the no-purchase option appears before the last position, the
    alternatives below it can never be chosen:

        y_{r[q],k} <= 0

    NOTE: the second case never occurs with rankings that end in the
    no-purchase option. It is kept exactly as formulated and should be
    reviewed by a domain expert before relying on truncated rankings.

    In addition, products can only be chosen if offered (y_{i,k} <= x_i; the
    no-purchase option is always available) and exactly one alternative is
    chosen (sum_i y_{i,k} = 1).

    Parameters
    ----------
    ranking : sequence of int
        Permutation of 1..n+1, most preferred first; n+1 is no-purchase
    k : int
        Customer type index (1-based), used in variable names
    n : int
        Number of products

    Returns
    -------
    constraints : list of LinearConstraint
    '''
    constraints = []

    # Offer links: y_{i,k} - x_i <= 0
    for i in range(1, n + 1):
        constraints.append(LinearConstraint("offer_" + str(i) + "_" + str(k),
                                            (yName(i, k), xName(i)), (1.0, -1.0),
                                            LESS_EQUAL, 0.0))

    # Precedence: positions p = 1..n against every later position
    for p in range(n):
        a = int(ranking[p])
        for q in range(p + 1, n + 1):
            b = int(ranking[q])
            if a <= n:
                # y_{b,k} + x_a <= 1
                constraints.append(LinearConstraint(
                    "pref_" + str(a) + "_" + str(b) + "_" + str(k),
                    (yName(b, k), xName(a)), (1.0, 1.0), LESS_EQUAL, 1.0))
            else:
                constraints.append(LinearConstraint(
                    "after_nopurchase_" + str(b) + "_" + str(k),
                    (yName(b, k),), (1.0,), LESS_EQUAL, 0.0))

    # Exactly one alternative is chosen
    constraints.append(LinearConstraint("choice_" + str(k),
                                        tuple(yName(i, k) for i in range(1, n + 2)),
                                        (1.0,) * (n + 1), EQUAL, 1.0))
    return constraints


# =============================================================================
# FORMULATION BUILDER
# =============================================================================

def buildFormulation(n, revenues, numPermutations, lam, orderings,
                     isRelaxation=False, x_initial=None, A_feas=None, b_feas=None):
    '''
    Assemble the PLD formulation for all customer types.

    Parameters are those of validateInputs.

    Returns
    -------
    formulation : Formulation

    Raises
    ------
    InputValidationError
        If the inputs fail validation; nothing is built in that case.
    '''
    revenues, lam, orderings, x_initial, A_feas, b_feas = validateInputs(
        n, revenues, numPermutations, lam, orderings,
        isRelaxation=isRelaxation, x_initial=x_initial, A_feas=A_feas, b_feas=b_feas)
    K = int(numPermutations)
    T = b_feas.shape[0]

    # -------------------------------------------------------------------------
    # Decision Variables
    # -------------------------------------------------------------------------

    # x_i: offer decision, binary for the integer problem
    x_kind = UNIT if isRelaxation else BINARY
    variables = [Variable(xName(i), x_kind) for i in range(1, n + 1)]

    # y_{i,k}: choice of alternative i by customer type k, one column per type
    variables += [Variable(yName(i, k), NONNEGATIVE)
                  for k in range(1, K + 1) for i in range(1, n + 2)]

    warm_start = ()
    if x_initial is not None:
        warm_start = tuple((xName(i), float(x_initial[i - 1])) for i in range(1, n + 1))

    # -------------------------------------------------------------------------
    # Constraints
    # -------------------------------------------------------------------------

    constraints = []

    # Side constraints: sum_i A_feas[t,i] x_i <= b_feas[t]
    for t in range(T):
        nonzero = [i for i in range(1, n + 1) if A_feas[t, i - 1] != 0]
        constraints.append(LinearConstraint("side_" + str(t + 1),
                                            tuple(xName(i) for i in nonzero),
                                            tuple(float(A_feas[t, i - 1]) for i in nonzero),
                                            LESS_EQUAL, float(b_feas[t])))

    for k in range(1, K + 1):
        constraints.extend(encodeRanking(orderings[k - 1], k, n))

    # -------------------------------------------------------------------------
    # Objective: expected revenue, no-purchase earns nothing
    # -------------------------------------------------------------------------

    objective = []
    for k in range(1, K + 1):
        for i in range(1, n + 1):
            coef = float(lam[k - 1] * revenues[i - 1])
            if coef != 0:
                objective.append((yName(i, k), coef))

    logger.debug("Built PLD formulation: %d variables, %d constraints (expected %d)",
                 len(variables), len(constraints), countConstraints(n, K, T))

    return Formulation(n=n, num_types=K, is_integer=not isRelaxation,
                       variables=tuple(variables), constraints=tuple(constraints),
                       objective=tuple(objective), warm_start=warm_start)
