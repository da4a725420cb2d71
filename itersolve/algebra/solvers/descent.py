r'''
file:       itersolve/algebra/solvers/descent.py

Steepest descent for symmetric positive definite :math:`A`.

Minimizes :math:`\phi(x) = \frac{1}{2} x^T A x - b^T x` along the
(preconditioned) residual direction with an exact line search:

1.  :math:`r_0 = b - A x_0`
2.  Iterate until :math:`\|r_k\| / \|b\| < \epsilon`:
    *   :math:`z_k = P^{-1} r_k` (:math:`z_k = r_k` without preconditioner)
    *   :math:`w_k = A z_k`
    *   :math:`\alpha_k = (r_k^T z_k) / (z_k^T w_k)`
    *   :math:`x_{k+1} = x_k + \alpha_k z_k`
    *   :math:`r_{k+1} = r_k - \alpha_k w_k`

The residual is updated incrementally, one product with A per iteration.
The error in the A-norm contracts at least by :math:`(\kappa - 1)/(\kappa + 1)`
per step, :math:`\kappa` the condition number of A (of :math:`P^{-1}A` with
preconditioner).
'''

from typing import Optional, Any

import numpy as np

from ..solver           import (Solver, SolverResult, SolverType, Array, CallbackFunc,
                                check_parameters, notify, report, record_residual, breakdown)
from ..history          import ConvergenceHistory
from ..operators        import prepare_system
from ..preconditioners  import prepare_precond
from ..config           import DEFAULT_TOL, DEFAULT_MAXITER
from ...common.flog     import get_global_logger

# -----------------------------------------------------------------------------

def steepest_descent(a  : Any,
            b           : Array,
            P           : Any                       = None,
            x0          : Optional[Array]           = None,
            tol         : float                     = DEFAULT_TOL,
            maxiter     : int                       = DEFAULT_MAXITER,
            callback    : Optional[CallbackFunc]    = None) -> SolverResult:
    """
    Steepest descent with exact line search, optionally preconditioned.

    Args:
        a:
            Symmetric positive definite system matrix.
        b (Array):
            Right-hand side.
        P (optional):
            Symmetric positive definite preconditioner, see `richardson`.
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
    """
    tol, maxiter    = check_parameters(tol, maxiter)
    op, b, x        = prepare_system(a, b, x0)
    pc              = prepare_precond(P, op)
    name            = "SteepestDescent"

    history         = ConvergenceHistory(tol, np.linalg.norm(b))
    get_global_logger().debug(f"({name}) Starting: n={op.n}, tol={tol:.1e}, maxiter={maxiter}, precond={pc}", lvl=1)

    r = b - op.apply(x)
    for k in range(1, maxiter + 1):
        stop, r = record_residual(history, op, b, x, r)
        if stop:
            break

        z       = r if pc is None else pc(r)
        w       = op.apply(z)
        zw      = np.dot(z, w)
        if zw == 0.0 or not np.isfinite(zw):
            breakdown(name, history, f"z^T A z = {zw}", k)
            break

        alpha   = np.dot(r, z) / zw
        x       = x + alpha * z
        r       = r - alpha * w
        notify(callback, k, x)

    report(name, history, maxiter)
    return SolverResult(x, history)

# -----------------------------------------------------------------------------

class SteepestDescentSolver(Solver):
    '''
    Steepest descent solver for symmetric positive definite systems.
    '''
    _solver_type    = SolverType.STEEPEST_DESCENT

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
        """ Static steepest descent execution, see `steepest_descent`. """
        return steepest_descent(a, b, P=precond, x0=x0, tol=tol, maxiter=maxiter, callback=callback)

# -----------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------
