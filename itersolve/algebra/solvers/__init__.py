'''
Solver module for the iterative linear solvers.

Initialization file for the solvers module. Exports the solver functions and
classes, the SolverType enum, and the choose_solver factory function.
----------------------------------------------------------------
File        : itersolve/algebra/solvers/__init__.py
Description : Factory to choose and instantiate the iterative solvers
              (Richardson, Jacobi, Gauss-Seidel, steepest descent,
              conjugate gradient) by name, enum, integer code or class.
              Solver modules are imported on first use.
----------------------------------------------------------------
'''

import inspect
import importlib
from typing import Union, Type

from ..solver           import Solver, SolverResult, SolverError, SolverErrorMsg, SolverType
from ..preconditioners  import Preconditioner, choose_precond

# -----------------------------------------------------------------------------
# Lazy Loading Configuration
# -----------------------------------------------------------------------------

_LAZY_MODULES = {
    'RichardsonSolver'          : '.fixed_point',
    'richardson'                : '.fixed_point',
    'JacobiSolver'              : '.stationary',
    'jacobi'                    : '.stationary',
    'GaussSeidelSolver'         : '.stationary',
    'gauss_seidel'              : '.stationary',
    'SteepestDescentSolver'     : '.descent',
    'steepest_descent'          : '.descent',
    'CgSolver'                  : '.cg',
    'conjugate_gradient'        : '.cg',
}

_SOLVER_CLASSES = {
    SolverType.RICHARDSON       : ('.fixed_point',  'RichardsonSolver'),
    SolverType.JACOBI           : ('.stationary',   'JacobiSolver'),
    SolverType.GAUSS_SEIDEL     : ('.stationary',   'GaussSeidelSolver'),
    SolverType.STEEPEST_DESCENT : ('.descent',      'SteepestDescentSolver'),
    SolverType.CG               : ('.cg',           'CgSolver'),
}

_ALIASES = {
    'GS'                        : SolverType.GAUSS_SEIDEL,
    'SD'                        : SolverType.STEEPEST_DESCENT,
    'CONJUGATE_GRADIENT'        : SolverType.CG,
}

# -----------------------------------------------------------------------------

def _resolve_solver_type(solver_id) -> SolverType:
    if isinstance(solver_id, SolverType):
        return solver_id
    if isinstance(solver_id, str):
        key = solver_id.strip().upper().replace('-', '_').replace(' ', '_')
        if key in SolverType.__members__:
            return SolverType[key]
        if key in _ALIASES:
            return _ALIASES[key]
    elif isinstance(solver_id, int) and not isinstance(solver_id, bool):
        try:
            return SolverType(solver_id)
        except ValueError:
            pass
    raise SolverError(SolverErrorMsg.INVALID_INPUT, f"Unknown solver identifier: {solver_id!r}")

def choose_solver(solver_id : Union[str, int, SolverType, Type[Solver], Solver], **kwargs) -> Solver:
    """
    Factory function to select and instantiate a solver based on identifier.
    Uses lazy loading to import specific solver classes only when requested.

    Parameters
    ----------
    solver_id : Union[str, int, SolverType, Type[Solver], Solver]
        Identifier for the solver. Can be a string name ('cg', 'gauss-seidel',
        'gs', ...), integer code, SolverType enum, a Solver subclass or an
        instance (returned as is).
    **kwargs
        Keyword arguments for the solver constructor (tol, maxiter,
        default_precond, a, config). Unknown keys are ignored with a warning.

    Returns
    -------
    Solver
        An instance of the selected solver class.

    Examples
    --------
    >>> solver = choose_solver("CG", tol=1e-10)
    >>> solver = choose_solver(SolverType.RICHARDSON, default_precond='jacobi')
    """
    if isinstance(solver_id, Solver):
        return solver_id

    if isinstance(solver_id, type) and issubclass(solver_id, Solver):
        target_class        = solver_id
    else:
        module_name, cls    = _SOLVER_CLASSES[_resolve_solver_type(solver_id)]
        module              = importlib.import_module(module_name, package=__name__)
        target_class        = getattr(module, cls)

    valid_params    = inspect.signature(target_class.__init__).parameters
    ignored         = {k: v for k, v in kwargs.items() if k not in valid_params}
    if ignored:
        from ...common.flog import get_global_logger
        get_global_logger().warning(f"Ignoring invalid kwargs for {target_class.__name__}: {list(ignored)}")
    return target_class(**{k: v for k, v in kwargs.items() if k in valid_params})

# -----------------------------------------------------------------------------
# Module-level __getattr__ for Lazy Imports
# -----------------------------------------------------------------------------

def __getattr__(name):
    """
    Lazy import of solver classes when accessed directly (e.g. solvers.CgSolver).
    """
    if name in _LAZY_MODULES:
        module = importlib.import_module(_LAZY_MODULES[name], package=__name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    'Solver', 'SolverResult', 'SolverError', 'SolverErrorMsg', 'SolverType',
    'Preconditioner', 'choose_precond', 'choose_solver',
    'RichardsonSolver', 'richardson',
    'JacobiSolver', 'jacobi', 'GaussSeidelSolver', 'gauss_seidel',
    'SteepestDescentSolver', 'steepest_descent',
    'CgSolver', 'conjugate_gradient',
]

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
