"""
Iterative solvers for linear systems Ax = b.

Key functionalities provided include:
    - Richardson, Jacobi and Gauss-Seidel fixed-point iterations.
    - Steepest descent and conjugate gradient for SPD matrices.
    - Dense, diagonal, tridiagonal and sparse matrix operators.
    - Identity, Jacobi, Gauss-Seidel and explicit-matrix preconditioners.
    - Convergence histories and analysis helpers (spectral radius, rates).
    - Test problem generators.

This module uses lazy imports to minimize startup overhead. Submodules (and
numba compilation of the sweep kernels) are only loaded when accessed.

Example:
    >>> from itersolve.algebra import conjugate_gradient, laplacian_1d
    >>> x, history = conjugate_gradient(laplacian_1d(50), np.ones(50), tol=1e-10)

# -----------------------------------------------------------------------------------------------
Version         : 1.0
Description     : Iterative solvers module with lazy imports
# -----------------------------------------------------------------------------------------------
"""

from typing import TYPE_CHECKING
import importlib

# -----------------------------------------------------------------------------------------------
# Lazy Import Configuration
# -----------------------------------------------------------------------------------------------

# Mapping of attribute names to their module paths and actual attribute names
_LAZY_IMPORTS = {
    # Solver functions
    'richardson'            : ('.solvers.fixed_point', 'richardson'),
    'jacobi'                : ('.solvers.stationary', 'jacobi'),
    'gauss_seidel'          : ('.solvers.stationary', 'gauss_seidel'),
    'steepest_descent'      : ('.solvers.descent', 'steepest_descent'),
    'conjugate_gradient'    : ('.solvers.cg', 'conjugate_gradient'),
    # Solver classes and types
    'Solver'                : ('.solver', 'Solver'),
    'SolverResult'          : ('.solver', 'SolverResult'),
    'SolverError'           : ('.solver', 'SolverError'),
    'SolverErrorMsg'        : ('.solver', 'SolverErrorMsg'),
    'SolverType'            : ('.solver', 'SolverType'),
    'choose_solver'         : ('.solvers', 'choose_solver'),
    'ConvergenceHistory'    : ('.history', 'ConvergenceHistory'),
    'SolverConfig'          : ('.config', 'SolverConfig'),
    # Preconditioners
    'Preconditioner'        : ('.preconditioners', 'Preconditioner'),
    'choose_precond'        : ('.preconditioners', 'choose_precond'),
    # Operators
    'OperatorKind'          : ('.operators', 'OperatorKind'),
    'DenseOperator'         : ('.operators', 'DenseOperator'),
    'DiagonalOperator'      : ('.operators', 'DiagonalOperator'),
    'TridiagonalOperator'   : ('.operators', 'TridiagonalOperator'),
    'SparseOperator'        : ('.operators', 'SparseOperator'),
    'as_operator'           : ('.operators', 'as_operator'),
    # Analysis
    'condition_number'      : ('.convergence', 'condition_number'),
    'iteration_matrix'      : ('.convergence', 'iteration_matrix'),
    'spectral_radius'       : ('.convergence', 'spectral_radius'),
    'richardson_converges'  : ('.convergence', 'richardson_converges'),
    'steepest_descent_rate' : ('.convergence', 'steepest_descent_rate'),
    'cg_rate'               : ('.convergence', 'cg_rate'),
    'relative_error'        : ('.convergence', 'relative_error'),
    # Test problems
    'random_spd'            : ('.ran_matrices', 'random_spd'),
    'diagonally_dominant'   : ('.ran_matrices', 'diagonally_dominant'),
    'laplacian_1d'          : ('.ran_matrices', 'laplacian_1d'),
    'laplacian_2d'          : ('.ran_matrices', 'laplacian_2d'),
    # Utility imports from common
    'get_logger'            : ('..common.flog', 'get_global_logger'),
    # Submodules (lazy)
    'solvers'               : ('.solvers', None),
    'preconditioners'       : ('.preconditioners', None),
    'operators'             : ('.operators', None),
    'convergence'           : ('.convergence', None),
    'ran_matrices'          : ('.ran_matrices', None),
}

# Cache for lazily loaded modules/attributes
_LAZY_CACHE = {}

# For type checking, import types without runtime overhead
if TYPE_CHECKING:
    from .solvers.fixed_point import richardson
    from .solvers.stationary import jacobi, gauss_seidel
    from .solvers.descent import steepest_descent
    from .solvers.cg import conjugate_gradient
    from .solver import Solver, SolverResult, SolverError, SolverErrorMsg, SolverType
    from .solvers import choose_solver
    from .history import ConvergenceHistory
    from .preconditioners import Preconditioner, choose_precond
    from ..common.flog import get_global_logger as get_logger

# -----------------------------------------------------------------------------------------------
# Lazy Import Implementation
# -----------------------------------------------------------------------------------------------

def _lazy_import(name: str):
    """
    Lazily import a module or attribute based on _LAZY_IMPORTS configuration.

    Parameters
    ----------
    name : str
        The name of the attribute to import lazily.

    Returns
    -------
    The imported module or attribute.
    """
    if name in _LAZY_CACHE:
        return _LAZY_CACHE[name]

    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_path, attr_name  = _LAZY_IMPORTS[name]
    module                  = importlib.import_module(module_path, package=__name__)
    result                  = module if attr_name is None else getattr(module, attr_name)

    _LAZY_CACHE[name] = result
    return result

def __getattr__(name: str):
    """
    Module-level __getattr__ for lazy imports.
    """
    return _lazy_import(name)

def __dir__():
    return sorted(list(globals().keys()) + list(_LAZY_IMPORTS.keys()))

__all__ = list(_LAZY_IMPORTS.keys())

# -----------------------------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------------------------
