r'''
file:       itersolve/algebra/solvers/stationary.py

Classical stationary iterations written as component-wise sweeps.

Split :math:`A = L + D + U` (strictly lower, diagonal, strictly upper).

Jacobi uses only values of the previous iterate

.. math::
    x^{(k+1)}_i = \frac{1}{a_{ii}} \Big( b_i - \sum_{j \ne i} a_{ij} x^{(k)}_j \Big),

which equals Richardson with :math:`P = D`. Gauss-Seidel walks the rows in
ascending order and uses every component as soon as it is updated

.. math::
    x^{(k+1)}_i = \frac{1}{a_{ii}} \Big( b_i - \sum_{j < i} a_{ij} x^{(k+1)}_j
                                            - \sum_{j > i} a_{ij} x^{(k)}_j \Big),

which equals Richardson with :math:`P = L + D`. Both converge e.g. for
strictly diagonally dominant A; Gauss-Seidel also for SPD A.

The sweeps are compiled with numba, for dense rows and for CSR storage
(diagonal and tridiagonal operators are swept through their CSR form).
'''

from typing import Optional, Any, Callable

import numpy as np
import numba

from ..solver           import (Solver, SolverResult, SolverError, SolverErrorMsg, SolverType, Array,
                                CallbackFunc, check_parameters, fixed_point_iteration)
from ..operators        import LinearOperator, OperatorKind, prepare_system
from ..preconditioners  import check_diagonal
from ..config           import DEFAULT_TOL, DEFAULT_MAXITER

# -----------------------------------------------------------------------------
#! Numba sweep kernels
# -----------------------------------------------------------------------------

@numba.njit(cache=True)
def _jacobi_sweep_dense(a, b, x):
    n       = b.shape[0]
    x_new   = np.empty(n)
    for i in range(n):
        s = b[i]
        for j in range(n):
            if j != i:
                s -= a[i, j] * x[j]
        x_new[i] = s / a[i, i]
    return x_new

@numba.njit(cache=True)
def _gauss_seidel_sweep_dense(a, b, x):
    n       = b.shape[0]
    x_new   = x.copy()
    for i in range(n):
        s = b[i]
        for j in range(n):
            if j != i:
                s -= a[i, j] * x_new[j]
        x_new[i] = s / a[i, i]
    return x_new

@numba.njit(cache=True)
def _jacobi_sweep_csr(indptr, indices, data, diag, b, x):
    n       = b.shape[0]
    x_new   = np.empty(n)
    for i in range(n):
        s = b[i]
        for k in range(indptr[i], indptr[i + 1]):
            j = indices[k]
            if j != i:
                s -= data[k] * x[j]
        x_new[i] = s / diag[i]
    return x_new

@numba.njit(cache=True)
def _gauss_seidel_sweep_csr(indptr, indices, data, diag, b, x):
    n       = b.shape[0]
    x_new   = x.copy()
    for i in range(n):
        s = b[i]
        for k in range(indptr[i], indptr[i + 1]):
            j = indices[k]
            if j != i:
                s -= data[k] * x_new[j]
        x_new[i] = s / diag[i]
    return x_new

# -----------------------------------------------------------------------------

SweepStep = Callable[[Array, Array], Array]

def _make_sweep(op: LinearOperator, b: Array, dense_kernel, csr_kernel, name: str) -> SweepStep:
    '''
    Bind the system to a sweep kernel. Raises ZERO_DIAGONAL before any sweep.
    '''
    diag = op.diagonal()
    check_diagonal(diag, name)

    if op.kind is OperatorKind.DENSE:
        a = np.ascontiguousarray(op.array, dtype=np.float64)

        def step(x: Array, r: Array) -> Array:
            return dense_kernel(a, b, x)
        return step

    csr     = op.to_csr()
    csr.sum_duplicates()
    indptr  = np.ascontiguousarray(csr.indptr, dtype=np.int64)
    indices = np.ascontiguousarray(csr.indices, dtype=np.int64)
    data    = np.ascontiguousarray(csr.data, dtype=np.float64)
    diag    = np.ascontiguousarray(diag, dtype=np.float64)

    def step(x: Array, r: Array) -> Array:
        return csr_kernel(indptr, indices, data, diag, b, x)
    return step

# -----------------------------------------------------------------------------
#! Jacobi
# -----------------------------------------------------------------------------

def jacobi(a        : Any,
        b           : Array,
        x0          : Optional[Array]           = None,
        tol         : float                     = DEFAULT_TOL,
        maxiter     : int                       = DEFAULT_MAXITER,
        callback    : Optional[CallbackFunc]    = None) -> SolverResult:
    """
    Jacobi iteration. All components of the new iterate are computed from the
    previous iterate only.

    Args:
        a:
            System matrix with non-zero diagonal.
        b (Array):
            Right-hand side.
        x0 (Array, optional):
            Initial guess, zeros if None. Not modified.
        tol (float):
            Tolerance on ||b - Ax|| / ||b||.
        maxiter (int):
            Maximal number of sweeps.
        callback (Callable, optional):
            Called as callback(k, x) after the k-th sweep.

    Returns:
        SolverResult: (x, history).

    Raises:
        SolverError: ZERO_DIAGONAL if some a_ii = 0.
    """
    tol, maxiter    = check_parameters(tol, maxiter)
    op, b, x        = prepare_system(a, b, x0)
    step            = _make_sweep(op, b, _jacobi_sweep_dense, _jacobi_sweep_csr, "Jacobi")
    return fixed_point_iteration(op, b, x, step, tol=tol, maxiter=maxiter, callback=callback, name="Jacobi")

# -----------------------------------------------------------------------------
#! Gauss-Seidel
# -----------------------------------------------------------------------------

def gauss_seidel(a  : Any,
        b           : Array,
        x0          : Optional[Array]           = None,
        tol         : float                     = DEFAULT_TOL,
        maxiter     : int                       = DEFAULT_MAXITER,
        callback    : Optional[CallbackFunc]    = None) -> SolverResult:
    """
    Gauss-Seidel iteration. Rows are processed in ascending order and each
    updated component is used immediately by the following rows.

    Arguments and errors as in `jacobi`.
    """
    tol, maxiter    = check_parameters(tol, maxiter)
    op, b, x        = prepare_system(a, b, x0)
    step            = _make_sweep(op, b, _gauss_seidel_sweep_dense, _gauss_seidel_sweep_csr, "Gauss-Seidel")
    return fixed_point_iteration(op, b, x, step, tol=tol, maxiter=maxiter, callback=callback, name="Gauss-Seidel")

# -----------------------------------------------------------------------------
#! Solver classes
# -----------------------------------------------------------------------------

class _StationarySolver(Solver):
    _uses_precond   = False

    @staticmethod
    def _reject_precond(precond: Any, name: str):
        if precond is not None:
            raise SolverError(SolverErrorMsg.PRECOND_INVALID, f"{name} does not accept a preconditioner.")

class JacobiSolver(_StationarySolver):
    '''
    Jacobi iteration solver.
    '''
    _solver_type    = SolverType.JACOBI

    @staticmethod
    def solve(a         : Any,
            b           : Array,
            x0          : Optional[Array] = None,
            *,
            tol         : float,
            maxiter     : int,
            precond     : Any = None,
            callback    : Optional[CallbackFunc] = None,
            **kwargs) -> SolverResult:
        """ Static Jacobi execution, see `jacobi`. """
        _StationarySolver._reject_precond(precond, "Jacobi")
        return jacobi(a, b, x0=x0, tol=tol, maxiter=maxiter, callback=callback)

class GaussSeidelSolver(_StationarySolver):
    '''
    Gauss-Seidel iteration solver.
    '''
    _solver_type    = SolverType.GAUSS_SEIDEL

    @staticmethod
    def solve(a         : Any,
            b           : Array,
            x0          : Optional[Array] = None,
            *,
            tol         : float,
            maxiter     : int,
            precond     : Any = None,
            callback    : Optional[CallbackFunc] = None,
            **kwargs) -> SolverResult:
        """ Static Gauss-Seidel execution, see `gauss_seidel`. """
        _StationarySolver._reject_precond(precond, "Gauss-Seidel")
        return gauss_seidel(a, b, x0=x0, tol=tol, maxiter=maxiter, callback=callback)

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
