'''
file:       itersolve/algebra/solver.py

Defines the abstract interface and helper structures for solving linear systems

$$
Ax = b
$$

with stationary (Richardson, Jacobi, Gauss-Seidel) and gradient based
(steepest descent, conjugate gradient) iterations, optionally preconditioned
by a matrix P ~ A

$$
x^{(k+1)} = x^{(k)} + P^{-1} (b - A x^{(k)}).
$$

All methods share one loop skeleton: evaluate the residual, record its
relative norm, stop below the tolerance, otherwise update the iterate.
Concrete algorithms live in `itersolve.algebra.solvers` and expose a static
`solve` as well as a plain function (`richardson`, `jacobi`, ...).
'''

import numpy as np
from typing import Optional, Callable, Union, Any, NamedTuple
from abc import ABC, abstractmethod
from enum import Enum, auto, unique

# -----------------------------------------------------------------------------

from .config import SolverConfig
from .history import ConvergenceHistory
from ..common.flog import get_global_logger

# -----------------------------------------------------------------------------
#! Type hints
# -----------------------------------------------------------------------------

Array               = np.ndarray
StepFunc            = Callable[[Array, Array], Array]
CallbackFunc        = Callable[[int, Array], Any]

# -----------------------------------------------------------------------------

@unique
class SolverType(Enum):
    """
    Enumeration class for the different types of solvers.
    """

    # stationary
    RICHARDSON          = auto() # x += P^-1 r
    JACOBI              = auto() # Richardson with P = diag(A)
    GAUSS_SEIDEL        = auto() # Richardson with P = tril(A)
    # gradient based
    STEEPEST_DESCENT    = auto() # line search along the residual
    CG                  = auto() # Conjugate gradient

# -----------------------------------------------------------------------------
#! Errors
# -----------------------------------------------------------------------------

class SolverErrorMsg(Enum):
    '''
    Enumeration class for solver error messages.
    '''
    MAT_NOT_SET         = 102
    DIM_MISMATCH        = 106
    MAT_SINGULAR        = 108
    METHOD_NOT_IMPL     = 109
    PRECOND_INVALID     = 110
    INVALID_INPUT       = 112
    ZERO_DIAGONAL       = 114

    def __str__(self):
        return self.name.replace('_', ' ').title()

    def __repr__(self):
        return f"<{self.__class__.__name__}.{self.name}: '{str(self)}'>"

class SolverError(Exception):
    '''
    Base class for exceptions in the solver module.
    '''
    def __init__(self, code: SolverErrorMsg, message: Optional[str] = None):
        self.code       = code
        self.message    = message if message else str(code)
        super().__init__(self.message)

    def __str__(self):
        return f"[SolverError {self.code.name} ({self.code.value})]: {self.message}"

    def __repr__(self):
        return self.__str__()

class SolverResult(NamedTuple):
    '''
    Stores the result of a solver's static execution.

    Unpacks as `x, history = solver(...)`.

    Attributes:
        x (Array):
            The last iterate.
        history (ConvergenceHistory):
            Relative residual norms, one per pass through the loop.
    '''
    x               : Array
    history         : ConvergenceHistory

    @property
    def converged(self) -> bool:
        ''' Whether the relative residual dropped below the tolerance. '''
        return self.history.converged

    @property
    def iterations(self) -> int:
        ''' Number of updates applied to the initial guess. '''
        return self.history.updates

    @property
    def residual_norm(self) -> Optional[float]:
        '''
        Last recorded relative residual norm.

        On convergence or breakdown it belongs to the returned `x`. When
        `maxiter` runs out, `x` is one update past it: the residual was
        recorded before the final update and is not re-evaluated.
        '''
        return self.history.last

# -----------------------------------------------------------------------------
#! Shared helpers
# -----------------------------------------------------------------------------

def check_parameters(tol: Any, maxiter: Any):
    '''
    Validate the stopping parameters.

    Returns:
        (float, int): tol and maxiter converted.
    Raises:
        SolverError(INVALID_INPUT): for tol <= 0 or maxiter < 1.
    '''
    try:
        tol     = float(tol)
        maxiter = int(maxiter)
    except (TypeError, ValueError) as e:
        raise SolverError(SolverErrorMsg.INVALID_INPUT, f"Invalid stopping parameters: {e}") from e
    if not (tol > 0.0) or not np.isfinite(tol):
        raise SolverError(SolverErrorMsg.INVALID_INPUT, f"tol must be a positive number, got {tol}")
    if maxiter < 1:
        raise SolverError(SolverErrorMsg.INVALID_INPUT, f"maxiter must be >= 1, got {maxiter}")
    return tol, maxiter

def notify(callback: Optional[CallbackFunc], k: int, x: Array):
    ''' Pass a read-only view of the iterate to the user callback. '''
    if callback is None:
        return
    view                    = x.view()
    view.flags.writeable    = False
    callback(k, view)

def report(name: str, history: ConvergenceHistory, maxiter: int):
    ''' Log the outcome of a solve. '''
    logger = get_global_logger()
    if history.converged:
        logger.debug(f"({name}) Converged after {history.updates} iterations, relative residual {history.last:.4e}", lvl=1)
    elif history.stopped:
        logger.warning(f"({name}) Stopped after {history.updates} iterations, relative residual {history.last:.4e}", lvl=1)
    else:
        logger.warning(f"({name}) No convergence within maxiter={maxiter}, relative residual {history.last:.4e} "
                       f"(tol={history.tol:.1e})", lvl=1)

def record_residual(history: ConvergenceHistory, op: Any, b: Array, x: Array, r: Array):
    '''
    Record the norm of an incrementally updated residual. Termination is
    confirmed with the true residual b - A x, which then replaces the
    updated one.

    Returns:
        (bool, Array): whether to stop and the residual to continue with.
    '''
    res_norm = np.linalg.norm(r)
    if res_norm / history.norm_b < history.tol:
        r        = b - op.apply(x)
        res_norm = np.linalg.norm(r)
    return history.record(res_norm), r

def breakdown(name: str, history: ConvergenceHistory, what: str, k: int):
    ''' Terminate a gradient method whose step length is undefined. '''
    get_global_logger().warning(f"({name}) Breakdown at iteration {k}: {what}. Is A symmetric positive definite?", lvl=1)
    history.stop()

def fixed_point_iteration(op        : Any,
                        b           : Array,
                        x           : Array,
                        step        : StepFunc,
                        *,
                        tol         : float,
                        maxiter     : int,
                        callback    : Optional[CallbackFunc] = None,
                        name        : str = "FixedPoint") -> SolverResult:
    '''
    Loop skeleton of the stationary methods.

    For k = 1..maxiter
        r = b - A x
        record ||r|| / ||b||, stop if below tol
        x = step(x, r)

    Args:
        op:
            Operator with `apply(v) = A v`.
        b (Array):
            Right-hand side (not modified).
        x (Array):
            Initial iterate, owned by the loop.
        step (Callable):
            Update rule (x, r) -> x_new. Must return a new array.
        tol (float):
            Relative residual tolerance.
        maxiter (int):
            Maximal number of passes.
        callback (Callable, optional):
            Called as callback(k, x) after the k-th update.
        name (str):
            Used in log messages.
    Returns:
        SolverResult
    '''
    history = ConvergenceHistory(tol, np.linalg.norm(b))
    get_global_logger().debug(f"({name}) Starting: n={b.shape[0]}, tol={tol:.1e}, maxiter={maxiter}", lvl=1)

    for k in range(1, maxiter + 1):
        r = b - op.apply(x)
        if history.record(np.linalg.norm(r)):
            break
        x = step(x, r)
        notify(callback, k, x)

    report(name, history, maxiter)
    return SolverResult(x, history)

# -----------------------------------------------------------------------------
#! General Solver Abstract Base Class
# -----------------------------------------------------------------------------

class Solver(ABC):
    '''
    Abstract base class for the iterative solvers of

    $$
    Ax = b.
    $$

    The algorithm lives in the static `solve`, which takes every input
    explicitly and keeps no state. An instance only stores defaults
    (tolerance, iteration budget, matrix, preconditioner) for repeated calls
    through `solve_instance` and remembers the last result.
    '''
    _solver_type        : Optional[SolverType]  = None # To be set by concrete subclasses
    _uses_precond       : bool                  = True

    def __init__(self,
                tol             : Optional[float]           = None,
                maxiter         : Optional[int]             = None,
                default_precond : Any                       = None,
                a               : Any                       = None,
                config          : Optional[SolverConfig]    = None):
        '''
        Args:
            tol (float, optional):
                Default tolerance, falls back to the configuration.
            maxiter (int, optional):
                Default iteration budget, falls back to the configuration.
            default_precond (optional):
                Preconditioner used when `solve_instance` gets none.
            a (optional):
                Default system matrix.
            config (SolverConfig, optional):
                Defaults; read from the environment if not given.
        '''
        try:
            base            = config if config is not None else SolverConfig.from_env()
            self._config    = base.override(tol=tol, maxiter=maxiter)
        except ValueError as e:
            raise SolverError(SolverErrorMsg.INVALID_INPUT, str(e)) from e

        if default_precond is not None and not self._uses_precond:
            raise SolverError(SolverErrorMsg.PRECOND_INVALID,
                f"{self.__class__.__name__} does not accept a preconditioner.")

        self._default_precond           = default_precond
        self._conf_a                    = a

        # Store results from last instance solve call
        self._last_solution             : Optional[Array]               = None
        self._last_history              : Optional[ConvergenceHistory]  = None

    # -------------------------------------------------------------------------
    #! Static Solve Interface
    # -------------------------------------------------------------------------

    @staticmethod
    @abstractmethod
    def solve(a         : Any,
            b           : Array,
            x0          : Optional[Array] = None,
            *,
            tol         : float,
            maxiter     : int,
            precond     : Any = None,
            callback    : Optional[CallbackFunc] = None,
            **kwargs) -> SolverResult:
        """
        Abstract Static:
            Solves the linear system Ax = b using a specific algorithm.

        Args:
            a:
                System matrix (array, scipy sparse matrix or operator).
            b:
                Right-hand side vector.
            x0:
                Initial guess, zeros if None. Never modified.
            tol:
                Relative residual tolerance ||b - Ax|| / ||b||.
            maxiter:
                Maximum number of passes through the loop.
            precond:
                Preconditioner P (None for identity) where supported.
            callback:
                Called as callback(k, x) after each update.

        Returns:
            SolverResult
        """
        raise NotImplementedError(str(SolverErrorMsg.METHOD_NOT_IMPL))

    # -------------------------------------------------------------------------
    #! Instance Interface
    # -------------------------------------------------------------------------

    def solve_instance(self,
                    b               : Array,
                    x0              : Optional[Array]   = None,
                    *,
                    a               : Any               = None,
                    tol             : Optional[float]   = None,
                    maxiter         : Optional[int]     = None,
                    precond         : Any               = 'default',
                    callback        : Optional[CallbackFunc] = None,
                    **kwargs) -> SolverResult:
        """
        Convenience instance method to run the solver.

        Args:
            b (Array):
                Right-hand side vector.
            x0 (Array, optional):
                Initial guess. Defaults to zeros.
            a (optional):
                Matrix override, the instance matrix is used if None.
            tol, maxiter (optional):
                Overrides of the instance defaults.
            precond:
                Preconditioner for this call.
                    - 'default': the instance preconditioner
                    - None: no preconditioning
                    - anything accepted by `choose_precond`
        Returns:
            SolverResult
        """
        a = a if a is not None else self._conf_a
        if a is None:
            raise SolverError(SolverErrorMsg.MAT_NOT_SET, "No matrix given and none configured for the instance.")

        current_tol                 = tol if tol is not None else self._config.tol
        current_maxiter             = maxiter if maxiter is not None else self._config.maxiter

        if self._uses_precond:
            kwargs['precond']       = self._default_precond if isinstance(precond, str) and precond == 'default' else precond
        elif not (precond is None or (isinstance(precond, str) and precond == 'default')):
            raise SolverError(SolverErrorMsg.PRECOND_INVALID,
                f"{self.__class__.__name__} does not accept a preconditioner.")

        result = self.__class__.solve(a, b, x0,
                                    tol         = current_tol,
                                    maxiter     = current_maxiter,
                                    callback    = callback,
                                    **kwargs)

        self._last_solution         = result.x
        self._last_history          = result.history
        return result

    def __call__(self, b: Array, x0: Optional[Array] = None, **kwargs) -> SolverResult:
        return self.solve_instance(b, x0, **kwargs)

    # -------------------------------------------------------------------------
    #! Properties for Last Result
    # -------------------------------------------------------------------------

    @property
    def solution(self) -> Optional[Array]:
        ''' What is the last solution? '''
        return self._last_solution

    @property
    def history(self) -> Optional[ConvergenceHistory]:
        return self._last_history

    @property
    def converged(self) -> Optional[bool]:
        ''' Is it converged solution? '''
        return None if self._last_history is None else self._last_history.converged

    @property
    def iterations(self) -> Optional[int]:
        ''' How many iterations? '''
        return None if self._last_history is None else self._last_history.updates

    @property
    def residual_norm(self) -> Optional[float]:
        ''' What is the quality of the last result? '''
        return None if self._last_history is None else self._last_history.last

    # -------------------------------------------------------------------------
    #! Properties for Configuration (Read-only access)
    # -------------------------------------------------------------------------

    @property
    def solver_type(self) -> Optional[SolverType]:
        return self._solver_type

    @property
    def config(self) -> SolverConfig:
        return self._config

    @property
    def default_tol(self) -> float:
        ''' Default tolerance '''
        return self._config.tol

    @property
    def default_maxiter(self) -> int:
        ''' Default maximal number of iterations '''
        return self._config.maxiter

    @property
    def default_precond(self) -> Any:
        return self._default_precond

    # -------------------------------------------------------------------------

    def __repr__(self) -> str:
        ''' Returns the name and configuration of the solver. '''
        name = self._solver_type.name if self._solver_type else 'Unknown'
        return f"{self.__class__.__name__}(type={name}, tol={self.default_tol:.1e}, maxiter={self.default_maxiter})"

    def __str__(self) -> str:
        return self.__repr__()

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
