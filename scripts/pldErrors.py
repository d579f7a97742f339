'''
pldErrors.py

Exceptions raised by the ranking-based product line design (PLD) solver.

Validation problems are detected before any model is built. The remaining
classes describe how a solve terminated when no usable solution came back.

Author: Joline Uichanco
Created: Oct 12, 2026
'''


class PLDError(Exception):
    '''Base class for every error raised by the PLD solver.'''


class InputValidationError(PLDError, ValueError):
    '''Inputs to the formulation are malformed or inconsistent.'''


class ModelInfeasibleError(PLDError):
    '''The solver proved that the formulation has no feasible point.'''


class ModelUnboundedError(PLDError):
    '''The solver reported an unbounded objective.'''


class SolveInterruptedError(PLDError):
    '''The solve stopped (e.g. on the time limit) before any incumbent was found.'''


class SolverError(PLDError):
    '''
    Internal failure of the solver backend.

    Attributes
    ----------
    status : int or None
        Raw status code reported by the backend, if one was available.
    '''
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status
