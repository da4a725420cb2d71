r'''
file:       itersolve/algebra/solvers/fixed_point.py

Preconditioned Richardson iteration for :math:`Ax = b`.

Mathematical Formulation:
-------------------------
With a preconditioner :math:`P \approx A` (:math:`P = I` if none is given):

1.  :math:`r_k = b - A x_k`
2.  stop if :math:`\|r_k\| / \|b\| < \epsilon`
3.  :math:`u_k = P^{-1} r_k`
4.  :math:`x_{k+1} = x_k + u_k`

The error evolves as :math:`e_{k+1} = (I - P^{-1}A) e_k`, hence the iteration
converges for every initial guess iff the spectral radius
:math:`\rho(I - P^{-1}A) < 1`. This is not checked at runtime, see
`itersolve.algebra.convergence.richardson_converges`.

Jacobi (:math:`P = D`) and Gauss-Seidel (:math:`P = L + D`) are special cases.
'''

from typing import Optional, Any

from ..solver           import (Solver, SolverResult, SolverType, Array, CallbackFunc,
                                check_parameters, fixed_point_iteration)
from ..operators        import prepare_system
from ..preconditioners  import prepare_precond
from ..config           import DEFAULT_TOL, DEFAULT_MAXITER

# -----------------------------------------------------------------------------

def richardson(a        : Any,
            b           : Array,
            P           : Any                       = None,
            x0          : Optional[Array]           = None,
            tol         : float                     = DEFAULT_TOL,
            maxiter     : int                       = DEFAULT_MAXITER,
            callback    : Optional[CallbackFunc]    = None) -> SolverResult:
    """
    Preconditioned Richardson iteration x <- x + P^{-1}(b - A x).

    Args:
        a:
            System matrix (array, scipy sparse matrix or LinearOperator).
        b (Array):
            Right-hand side.
        P (optional):
            Preconditioner: None (identity), a matrix, a LinearOperator, a
            Preconditioner, a name such as 'jacobi', or a function r -> P^{-1}r.
        x0 (Array, optional):
            Initial guess, zeros if None. Not modified.
        tol (float):
            Tolerance on ||b - Ax|| / ||b||.
        maxiter (int):
            Maximal number of passes through the loop.
        callback (Callable, optional):
            Called as callback(k, x) after the k-th update.

    Returns:
        SolverResult: (x, history).

    Raises:
        SolverError: MAT_SINGULAR if P is singular, before the first iteration.

    Example:
        >>> x, history = richardson(A, b, P=np.diag(np.diag(A)), tol=1e-8)
    """
    tol, maxiter    = check_parameters(tol, maxiter)
    op, b, x        = prepare_system(a, b, x0)
    pc              = prepare_precond(P, op)

    if pc is None:
        def step(x: Array, r: Array) -> Array:
            return x + r
    else:
        def step(x: Array, r: Array) -> Array:
            return x + pc(r)

    return fixed_point_iteration(op, b, x, step, tol=tol, maxiter=maxiter, callback=callback, name="Richardson")

# -----------------------------------------------------------------------------

class RichardsonSolver(Solver):
    '''
    Richardson iteration solver, optionally preconditioned.
    '''
    _solver_type    = SolverType.RICHARDSON

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
        """ Static Richardson execution, see `richardson`. """
        return richardson(a, b, P=precond, x0=x0, tol=tol, maxiter=maxiter, callback=callback)

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
