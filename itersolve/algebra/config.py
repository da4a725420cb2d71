'''
file:       itersolve/algebra/config.py

Default parameters of the iterative solvers.

The defaults can be overridden per process through environment variables:

    ITERSOLVE_TOL       relative residual tolerance (float, > 0)
    ITERSOLVE_MAXITER   iteration budget (int, >= 1)
'''

import os
from dataclasses import dataclass, replace
from typing import Optional, Mapping

# -----------------------------------------------------------------------------

DEFAULT_TOL         = 1e-6
DEFAULT_MAXITER     = 100

ENV_SOLVER_TOL      = 'ITERSOLVE_TOL'
ENV_SOLVER_MAXITER  = 'ITERSOLVE_MAXITER'

# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SolverConfig:
    '''
    Stopping parameters shared by all solvers.

    Attributes:
        tol (float):
            Tolerance on the relative residual ||b - Ax|| / ||b||.
        maxiter (int):
            Maximum number of passes through the iteration loop.
    '''
    tol         : float = DEFAULT_TOL
    maxiter     : int   = DEFAULT_MAXITER

    def __post_init__(self):
        if not (self.tol > 0):
            raise ValueError(f"tol must be positive, got {self.tol}")
        if int(self.maxiter) < 1:
            raise ValueError(f"maxiter must be >= 1, got {self.maxiter}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SolverConfig':
        """
        Build the configuration from the environment, falling back to the defaults.
        """
        env     = os.environ if environ is None else environ
        tol     = float(env.get(ENV_SOLVER_TOL, DEFAULT_TOL))
        maxiter = int(env.get(ENV_SOLVER_MAXITER, DEFAULT_MAXITER))
        return cls(tol=tol, maxiter=maxiter)

    def override(self, tol: Optional[float] = None, maxiter: Optional[int] = None) -> 'SolverConfig':
        """ Copy with the non-None values replaced. """
        changes = {}
        if tol is not None:
            changes['tol']      = tol
        if maxiter is not None:
            changes['maxiter']  = maxiter
        return replace(self, **changes) if changes else self

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
