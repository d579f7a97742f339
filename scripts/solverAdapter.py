'''
solverAdapter.py

Solver interface used by the PLD engine.

This module implements:
- SolverAdapter: the capability set the engine needs from a MILP/LP solver
  (declare variables, add constraints, set objective, time limit, warm start,
  solve, query the solution)
- SolverConfig: per-adapter settings
- the termination statuses returned by SolverAdapter.solve()

Backends live in their own modules (cplexAdapter.py). An adapter instance
serves exactly one solve. Turning a termination status into an exception is
left to the caller.

Author: Joline Uichanco
Created: Oct 14, 2026
'''

import abc
from collections import namedtuple

# Termination statuses
OPTIMAL = "optimal"
TIME_LIMIT = "time_limit"      # stopped on the time limit, incumbent may exist
INTERRUPTED = "interrupted"    # aborted for another reason, incumbent may exist
INFEASIBLE = "infeasible"
UNBOUNDED = "unbounded"
ERROR = "error"

SolverConfig = namedtuple('SolverConfig', ['time_limit', 'log_output'], defaults=[0.0, False])
SolverConfig.__doc__ = '''
Settings of a solver adapter.

time_limit : float
    Wall-clock limit in seconds; 0 or less means no limit
log_output : bool
    Whether the solver may write its own log to stdout
'''


class SolverAdapter(abc.ABC):
    '''
    Capabilities the PLD engine needs from an external MILP/LP solver.

    Variables are referred to by the handle returned from declareVariable.
    The objective is always maximized.
    '''

    @abc.abstractmethod
    def declareVariable(self, name, kind):
        '''Declare a variable of kind BINARY, UNIT or NONNEGATIVE and return its handle.'''

    @abc.abstractmethod
    def addLinearConstraint(self, ind, val, sense, rhs, name=None):
        '''Add sum_j val[j] * ind[j] (sense) rhs, sense in {"L", "E"}.'''

    @abc.abstractmethod
    def setObjective(self, terms):
        '''Maximize sum of coef * var over (handle, coef) pairs.'''

    @abc.abstractmethod
    def setTimeLimit(self, seconds):
        '''Limit the solve to seconds of wall-clock time; <= 0 means unlimited.'''

    @abc.abstractmethod
    def setWarmStart(self, handle, value):
        '''Hint a starting value for a variable. Integer models only.'''

    @abc.abstractmethod
    def solve(self):
        '''Run the solver to termination and return a status string.'''

    @abc.abstractmethod
    def hasSolution(self):
        '''Whether a primal solution can be queried after solve().'''

    @abc.abstractmethod
    def getValue(self, handle):
        pass

    def getValues(self, handles):
        return [self.getValue(h) for h in handles]

    @abc.abstractmethod
    def getObjectiveValue(self):
        pass

    @abc.abstractmethod
    def getBestBound(self):
        pass

    @abc.abstractmethod
    def getGap(self):
        pass

    @abc.abstractmethod
    def getRuntime(self):
        '''Seconds spent in solve().'''

    def getStatusCode(self):
        '''Raw backend status code, if the backend has one.'''
        return None

    def close(self):
        '''Release backend resources.'''
